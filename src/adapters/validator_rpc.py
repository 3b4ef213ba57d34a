"""Cliente JSON-RPC del validador (solo `getIdentity`).

Cualquier fallo (transporte, status != 200, JSON inválido, campo `error`,
resultado sin `identity`) se normaliza como `IdentityQueryFailure`.
"""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import BaseModel, Field, ValidationError

from adapters.http_client import build_async_client
from core.config import DEFAULT_USER_AGENT, ValidatorSettings
from core.domain.errors import IdentityQueryFailure
from core.log_setup import get_logger

logger = get_logger("rpc")


class JSONRPCRequest(BaseModel):
    jsonrpc: str = "2.0"
    id: int = 1
    method: str
    params: list[Any] = Field(default_factory=list)


class JSONRPCError(BaseModel):
    code: int
    message: str


class JSONRPCResponse(BaseModel):
    jsonrpc: str = "2.0"
    id: int | str | None = None
    result: Any = None
    error: JSONRPCError | None = None


class IdentityResult(BaseModel):
    identity: str = Field(..., min_length=1)


class ValidatorRPCClient:
    """Consulta la identidad del validador con timeout propio por llamada."""

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._timeout_seconds = timeout_seconds
        self._user_agent = user_agent
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: ValidatorSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "ValidatorRPCClient":
        if not settings.rpc_url:
            raise ValueError("validator.rpc_url is not configured")
        return cls(settings.rpc_url, timeout_seconds=settings.timeout_seconds, transport=transport)

    @property
    def url(self) -> str:
        return self._url

    async def call(self, method: str, params: list[Any] | None = None) -> Any:
        request = JSONRPCRequest(method=method, params=params or [])
        try:
            async with build_async_client(
                timeout_seconds=self._timeout_seconds,
                user_agent=self._user_agent,
                extra_headers={"Content-Type": "application/json"},
                transport=self._transport,
            ) as client:
                response = await client.post(self._url, json=request.model_dump())
        except httpx.HTTPError as exc:
            raise IdentityQueryFailure(f"failed to make request to {self._url}: {exc}") from exc

        if response.status_code != 200:
            raise IdentityQueryFailure(f"request failed with status: {response.status_code}")

        try:
            rpc_response = JSONRPCResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise IdentityQueryFailure(f"failed to decode response: {exc}") from exc

        if rpc_response.error is not None:
            raise IdentityQueryFailure(f"RPC error: {rpc_response.error.message}")
        return rpc_response.result

    async def get_identity(self) -> str:
        """Pubkey (base58) con la que corre el validador en este momento."""

        try:
            result = await self.call("getIdentity")
        except IdentityQueryFailure as exc:
            raise IdentityQueryFailure(f"failed to get identity: {exc}") from exc

        logger.debug("identity response result=%s", result)
        if not isinstance(result, dict):
            raise IdentityQueryFailure("invalid response format")
        try:
            return IdentityResult.model_validate(result).identity
        except ValidationError as exc:
            raise IdentityQueryFailure("invalid identity format") from exc

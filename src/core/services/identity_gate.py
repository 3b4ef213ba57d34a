"""Gate por identidad del validador.

Solo se sincroniza cuando es seguro respecto del rol del validador colocado:

- identidad desconocida            -> `UnknownIdentity`
- activa y no permitido            -> `ActiveIdentityBlocked`
- activa y `enabled_when_active`   -> sigue, con warning
- pasiva                           -> sigue

La identidad se consulta en cada ciclo (sin cache).
"""

from __future__ import annotations

from core.domain.errors import ActiveIdentityBlocked, UnknownIdentity
from core.domain.models import ValidatorRole
from core.interfaces.collaborators import IdentityProvider
from core.log_setup import get_logger

logger = get_logger("sync")


def classify_identity(reported: str, active_key: str, passive_key: str) -> ValidatorRole:
    if reported == active_key:
        return ValidatorRole.ACTIVE
    if reported == passive_key:
        return ValidatorRole.PASSIVE
    return ValidatorRole.UNKNOWN


def evaluate_identity(
    reported: str,
    *,
    active_key: str,
    passive_key: str,
    allow_sync_when_active: bool,
) -> ValidatorRole:
    """Aplica la tabla de decisión; devuelve el rol si se puede seguir."""

    role = classify_identity(reported, active_key, passive_key)
    if role is ValidatorRole.UNKNOWN:
        raise UnknownIdentity(reported, active_key, passive_key)
    if role is ValidatorRole.ACTIVE:
        if not allow_sync_when_active:
            logger.warning("validator is running as active identity - refusing to sync")
            raise ActiveIdentityBlocked(reported)
        logger.warning("validator is running as active identity - proceeding with sync (enabled_when_active=true)")
        return role
    logger.info("validator is running as passive identity - proceeding with sync")
    return role


class IdentityGate:
    def __init__(
        self,
        provider: IdentityProvider,
        *,
        active_key: str,
        passive_key: str,
        allow_sync_when_active: bool = False,
    ) -> None:
        if active_key == passive_key:
            raise ValueError("active and passive identities must differ")
        self._provider = provider
        self._active_key = active_key
        self._passive_key = passive_key
        self._allow_sync_when_active = allow_sync_when_active

    @property
    def allow_sync_when_active(self) -> bool:
        return self._allow_sync_when_active

    async def check(self) -> ValidatorRole:
        reported = await self._provider.get_identity()
        return evaluate_identity(
            reported,
            active_key=self._active_key,
            passive_key=self._passive_key,
            allow_sync_when_active=self._allow_sync_when_active,
        )

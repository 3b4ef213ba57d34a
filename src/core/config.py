"""Configuración del Core.

Por qué aquí:
- Centraliza el YAML del operador y las variables de entorno (pydantic-settings)
  sin contaminar la CLI.
- Permite que adaptadores (HTTP/RPC/subprocess) lean config de forma consistente.

Orden de prioridad: valores del YAML > variables `DZ_VERSION_SYNC_*` > defaults.
Las variables anidadas usan `__`, p.ej. `DZ_VERSION_SYNC_CLUSTER__NAME=testnet`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal
from urllib.parse import urlsplit

import yaml
from pydantic import BaseModel, Field, PrivateAttr, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.domain.cluster import Cluster
from core.domain.constraints import VersionConstraint
from core.domain.errors import ConfigError

DEFAULT_CONFIG_PATH = "~/doublezero-version-sync/config.yaml"
DEFAULT_DOCS_URL = "https://docs.malbeclabs.com/setup/#1-install-doublezero-packages"
DEFAULT_USER_AGENT = "doublezero-version-sync/1.0"

_LOG_LEVEL_ALIASES = {"warn": "warning", "fatal": "critical"}


def resolve_path(path: str | Path, base_dir: Path | None = None) -> Path:
    """Resuelve un path a absoluto.

    - `~/...` se expande al home del usuario.
    - Paths relativos se resuelven contra `base_dir` (o el cwd).
    - Absolutos se normalizan y devuelven tal cual.
    """

    p = Path(path).expanduser()
    if not p.is_absolute():
        p = (base_dir if base_dir is not None else Path.cwd()) / p
    return Path(os.path.normpath(p))


def is_file_path(value: str) -> bool:
    """True si `value` parece un path y no solo un nombre de comando del PATH."""

    if not value:
        return False
    return "/" in value or "\\" in value or value.startswith("~")


class LogSettings(BaseModel):
    level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    format: Literal["text", "plain"] = Field(
        default="text",
        description="`text` usa Rich (colores); `plain` es apto para journald.",
    )

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, value: object) -> object:
        if isinstance(value, str):
            v = value.strip().lower()
            return _LOG_LEVEL_ALIASES.get(v, v)
        return value


class ClusterSettings(BaseModel):
    name: Cluster = Field(..., description="Cluster DoubleZero en el que corre esta instancia.")

    @field_validator("name", mode="before")
    @classmethod
    def _parse_name(cls, value: object) -> object:
        if isinstance(value, str):
            return Cluster.from_name(value)
        return value


class DoubleZeroSettings(BaseModel):
    bin: str = Field(
        default="doublezero",
        min_length=1,
        description="Binario para `--version`; p.ej. `doublezero` o `/usr/bin/doublezero`.",
    )
    version_constraint: str | None = Field(
        default=None,
        description="Rango aceptable, p.ej. '>= 0.6.9, < 0.8.0'.",
    )
    probe_timeout_seconds: float = Field(default=30.0, gt=0)

    _parsed_constraint: VersionConstraint | None = PrivateAttr(default=None)

    @model_validator(mode="after")
    def _parse_constraint(self) -> "DoubleZeroSettings":
        if self.version_constraint and self.version_constraint.strip():
            try:
                self._parsed_constraint = VersionConstraint.parse(self.version_constraint)
            except ValueError as exc:
                raise ValueError(f"failed to parse doublezero.version_constraint: {exc}") from exc
        return self

    @property
    def parsed_version_constraint(self) -> VersionConstraint | None:
        return self._parsed_constraint


class IdentitiesSettings(BaseModel):
    """Claves del validador: keypair de solana-keygen o pubkey literal por rol."""

    active: Path | None = Field(default=None, description="Keypair JSON de la identidad activa.")
    passive: Path | None = Field(default=None, description="Keypair JSON de la identidad pasiva.")
    active_pubkey: str | None = None
    passive_pubkey: str | None = None

    @model_validator(mode="after")
    def _one_source_per_role(self) -> "IdentitiesSettings":
        if self.active and self.active_pubkey:
            raise ValueError("set only one of validator.identities.active / active_pubkey")
        if self.passive and self.passive_pubkey:
            raise ValueError("set only one of validator.identities.passive / passive_pubkey")
        if self.active_pubkey and self.active_pubkey == self.passive_pubkey:
            raise ValueError("validator active and passive identities must differ")
        return self

    def has_active(self) -> bool:
        return bool(self.active or self.active_pubkey)

    def has_passive(self) -> bool:
        return bool(self.passive or self.passive_pubkey)


class ValidatorSettings(BaseModel):
    rpc_url: str | None = Field(default=None, description="Endpoint JSON-RPC del validador.")
    enabled_when_active: bool = Field(
        default=False,
        description="Permitir sync aunque el validador corra con la identidad activa.",
    )
    timeout_seconds: float = Field(default=30.0, gt=0)
    identities: IdentitiesSettings = Field(default_factory=IdentitiesSettings)

    @field_validator("rpc_url")
    @classmethod
    def _validate_url(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        parts = urlsplit(value.strip())
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"validator.rpc_url {value} is not a valid URL")
        return value.strip()

    @property
    def identity_gate_configured(self) -> bool:
        return bool(self.rpc_url) and self.identities.has_active() and self.identities.has_passive()

    @property
    def partially_configured(self) -> bool:
        parts = (bool(self.rpc_url), self.identities.has_active(), self.identities.has_passive())
        return any(parts) and not all(parts)


class CommandSettings(BaseModel):
    """Un paso del sync. `cmd`, `args` y `environment` son templates Jinja2."""

    name: str = Field(..., min_length=1)
    cmd: str = Field(..., min_length=1)
    args: list[str] = Field(default_factory=list)
    environment: dict[str, str] = Field(default_factory=dict)
    allow_failure: bool = False
    stream_output: bool = False
    disabled: bool = False


class SyncSettings(BaseModel):
    commands: list[CommandSettings] = Field(default_factory=list)
    lock_file: Path | None = Field(
        default=None,
        description="Si se define, la fase de comandos toma un lock exclusivo sobre este archivo.",
    )


class SourceSettings(BaseModel):
    docs_url: str = Field(default=DEFAULT_DOCS_URL, min_length=8)
    user_agent: str = Field(default=DEFAULT_USER_AGENT, min_length=1)
    timeout_seconds: float = Field(default=30.0, gt=0)
    cluster_order: list[Cluster] = Field(
        default_factory=lambda: list(Cluster),
        description="Orden posicional de los bloques de instalación en la documentación.",
    )

    @field_validator("cluster_order")
    @classmethod
    def _unique(cls, value: list[Cluster]) -> list[Cluster]:
        if len(set(value)) != len(value):
            raise ValueError("source.cluster_order must not repeat clusters")
        return value


class AppSettings(BaseSettings):
    """Configuración central de la aplicación.

    Por qué pydantic-settings:
    - Tipado + validación en el borde (YAML/env vars) sin ensuciar el Core.
    - Un único contrato de configuración para CLI/adapters.
    """

    model_config = SettingsConfigDict(
        env_prefix="DZ_VERSION_SYNC_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    log: LogSettings = Field(default_factory=LogSettings)
    cluster: ClusterSettings
    doublezero: DoubleZeroSettings = Field(default_factory=DoubleZeroSettings)
    validator: ValidatorSettings = Field(default_factory=ValidatorSettings)
    source: SourceSettings = Field(default_factory=SourceSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)

    config_file: Path | None = Field(default=None, exclude=True)

    @model_validator(mode="after")
    def _resolve_paths(self) -> "AppSettings":
        base_dir = self.config_file.parent if self.config_file else None

        if is_file_path(self.doublezero.bin):
            self.doublezero.bin = str(resolve_path(self.doublezero.bin, base_dir))

        identities = self.validator.identities
        if identities.active is not None:
            identities.active = resolve_path(identities.active, base_dir)
        if identities.passive is not None:
            identities.passive = resolve_path(identities.passive, base_dir)
        if identities.active and identities.active == identities.passive:
            raise ValueError("validator active and passive identities must differ")

        if self.sync.lock_file is not None:
            self.sync.lock_file = resolve_path(self.sync.lock_file, base_dir)
        return self


def load_settings(config_file: str | Path | None = None) -> AppSettings:
    """Carga y valida el YAML; cualquier problema se reporta como `ConfigError`."""

    path = resolve_path(config_file or DEFAULT_CONFIG_PATH)
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigError(f"config file not found: {path}") from exc
    except OSError as exc:
        raise ConfigError(f"failed to read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"error loading config file {path}: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"config file {path} must contain a mapping at the top level")
    raw.pop("config_file", None)

    try:
        return AppSettings(**raw, config_file=path)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration in {path}:\n{exc}") from exc

"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Validación estricta en el borde (versiones, identidades, datos de template)
  sin acoplar el Core a librerías de I/O.
- Modelos inmutables (`frozen`) para todo lo que vive un solo ciclo de sync.

Nota:
- Estos modelos describen *qué* es la información, no *cómo* se obtiene.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from core.domain.errors import AmbiguousSourceLayout, ClusterNotFound, VersionParseFailure, VersionSyncError

_SEMVER_RE = re.compile(
    r"^v?(?P<major>\d+)\.(?P<minor>\d+)\.(?P<patch>\d+)"
    r"(?:-(?P<prerelease>[0-9A-Za-z.-]+))?"
    r"(?:\+(?P<build>[0-9A-Za-z.-]+))?$"
)


class ParsedVersion(BaseModel):
    """Versión semántica parseada.

    Igualdad y orden usan solo el core (major, minor, patch); pre-release y
    build son metadata que se conserva para mostrar pero no se compara.
    """

    model_config = ConfigDict(frozen=True)

    major: int = Field(..., ge=0)
    minor: int = Field(..., ge=0)
    patch: int = Field(..., ge=0)
    prerelease: str | None = Field(
        default=None,
        description="Sufijo tras '-', p.ej. la revisión '1' de '0.7.1-1'.",
    )
    build: str | None = Field(default=None, description="Metadata tras '+'.")

    @classmethod
    def parse(cls, text: str) -> "ParsedVersion":
        match = _SEMVER_RE.match((text or "").strip())
        if match is None:
            raise VersionParseFailure(f"malformed semantic version: {text!r}")
        return cls(
            major=int(match.group("major")),
            minor=int(match.group("minor")),
            patch=int(match.group("patch")),
            prerelease=match.group("prerelease"),
            build=match.group("build"),
        )

    @property
    def core(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def core_string(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    def __str__(self) -> str:
        out = self.core_string()
        if self.prerelease:
            out += f"-{self.prerelease}"
        if self.build:
            out += f"+{self.build}"
        return out

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParsedVersion):
            return NotImplemented
        return self.core == other.core

    def __hash__(self) -> int:
        return hash(self.core)

    def __lt__(self, other: "ParsedVersion") -> bool:
        if not isinstance(other, ParsedVersion):
            return NotImplemented
        return self.core < other.core

    def __le__(self, other: "ParsedVersion") -> bool:
        if not isinstance(other, ParsedVersion):
            return NotImplemented
        return self.core <= other.core

    def __gt__(self, other: "ParsedVersion") -> bool:
        if not isinstance(other, ParsedVersion):
            return NotImplemented
        return self.core > other.core

    def __ge__(self, other: "ParsedVersion") -> bool:
        if not isinstance(other, ParsedVersion):
            return NotImplemented
        return self.core >= other.core


class SyncDirection(str, Enum):
    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"
    NO_CHANGE = "no-change"


class VersionDiff(BaseModel):
    """Delta entre la versión instalada y la recomendada.

    Reglas:
    - Un lado ausente nunca es "igual".
    - `direction` solo está definida cuando ambos lados existen.
    """

    model_config = ConfigDict(frozen=True)

    from_version: ParsedVersion | None = None
    to_version: ParsedVersion | None = None

    @property
    def is_same_version(self) -> bool:
        if self.from_version is None or self.to_version is None:
            return False
        return self.from_version.core == self.to_version.core

    @property
    def direction(self) -> SyncDirection | None:
        if self.is_same_version:
            return SyncDirection.NO_CHANGE
        if self.from_version is None or self.to_version is None:
            return None
        if self.to_version > self.from_version:
            return SyncDirection.UPGRADE
        return SyncDirection.DOWNGRADE

    @property
    def direction_symbol(self) -> str:
        direction = self.direction
        if direction is SyncDirection.NO_CHANGE:
            return "="
        if direction is SyncDirection.UPGRADE:
            return "↑"
        if direction is SyncDirection.DOWNGRADE:
            return "↓"
        return "?"

    def __str__(self) -> str:
        left = self.from_version.core_string() if self.from_version else "unknown"
        right = self.to_version.core_string() if self.to_version else "unknown"
        return f"{left} -> {right}"


def compare(from_version: ParsedVersion | None, to_version: ParsedVersion | None) -> VersionDiff:
    """Construye el `VersionDiff` instalado -> recomendado (puro, sin efectos)."""

    return VersionDiff(from_version=from_version, to_version=to_version)


class InstalledState(BaseModel):
    """Estado local refrescado al inicio de cada ciclo."""

    model_config = ConfigDict(frozen=True)

    cluster: str = Field(..., min_length=1)
    version_string: str = Field(..., min_length=1, description="Texto tal cual lo reportó el binario.")
    version: ParsedVersion


class RecommendedVersionMap(BaseModel):
    """Mapa cluster -> versión de paquete construido desde un único fetch.

    `binding` indica cómo se asignaron los bloques de código:
    - `marker`: por el texto "the current recommended deployment for <cluster> is".
    - `positional`: primer match -> primer cluster, segundo -> segundo.
    """

    model_config = ConfigDict(frozen=True)

    entries: dict[str, str] = Field(default_factory=dict)
    binding: Literal["marker", "positional"] = "positional"
    matches_found: int = Field(default=0, ge=0)
    ambiguous: dict[str, str] = Field(
        default_factory=dict,
        description="Clusters con binding conflictivo -> motivo.",
    )

    def lookup(self, cluster: str) -> str:
        key = cluster.strip().lower()
        if key in self.ambiguous:
            raise AmbiguousSourceLayout(key, self.ambiguous[key])
        if key in self.entries:
            return self.entries[key]
        if self.binding == "marker":
            raise AmbiguousSourceLayout(
                key,
                f"document marks clusters {sorted(self.entries)} but none for {key}",
            )
        raise ClusterNotFound(key, self.matches_found)


class ValidatorRole(str, Enum):
    UNKNOWN = "unknown"
    ACTIVE = "active"
    PASSIVE = "passive"


class CommandTemplateData(BaseModel):
    """Variables expuestas a los templates de los comandos de sync."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    cluster_name: str = Field(..., alias="ClusterName")
    command_index: int = Field(..., ge=0, alias="CommandIndex")
    commands_count: int = Field(..., ge=1, alias="CommandsCount")
    version_from: str = Field(..., alias="VersionFrom", description="Semver core, p.ej. 0.6.9.")
    version_to: str = Field(..., alias="VersionTo", description="Semver core, p.ej. 0.7.1.")
    package_version_to: str = Field(
        ...,
        alias="PackageVersionTo",
        description="Versión con revisión para el gestor de paquetes, p.ej. 0.7.1-1.",
    )

    def as_template_vars(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class SyncOutcome(str, Enum):
    NO_CHANGE = "no-change"
    BLOCKED_BY_IDENTITY = "blocked-by-identity"
    BLOCKED_BY_CONSTRAINT = "blocked-by-constraint"
    NO_COMMANDS_CONFIGURED = "no-commands-configured"
    PROCEED = "proceed"


class SyncDecision(BaseModel):
    """Salida terminal de un ciclo.

    `template_data` solo se llena en `proceed` (un registro por comando).
    `error` guarda el motivo de un bloqueo para que el orquestador lo relance.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    outcome: SyncOutcome
    cluster: str
    diff: VersionDiff
    package_version: str | None = None
    template_data: list[CommandTemplateData] = Field(default_factory=list)
    error: VersionSyncError | None = Field(default=None, exclude=True)

    @property
    def blocked(self) -> bool:
        return self.outcome in (SyncOutcome.BLOCKED_BY_IDENTITY, SyncOutcome.BLOCKED_BY_CONSTRAINT)

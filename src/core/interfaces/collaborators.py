"""Contratos de los colaboradores del pipeline de sync.

Por qué Protocol:
- Define contratos estructurales (duck typing) sin herencia rígida.
- El orquestador depende de estas abstracciones; los adaptadores concretos
  (httpx, subprocess, JSON-RPC) son intercambiables por fakes en tests.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.domain.models import CommandTemplateData, InstalledState, ParsedVersion


@runtime_checkable
class RecommendedVersionSource(Protocol):
    """Fuente de la versión recomendada por cluster."""

    async def resolve(self, cluster_name: str) -> str:
        """Devuelve la versión de paquete (p.ej. `0.7.1-1`) para el cluster."""

        ...

    async def get_recommended_semver_version(self, cluster_name: str) -> ParsedVersion:
        """Devuelve la versión semántica (sin revisión) para el cluster."""

        ...


@runtime_checkable
class InstalledVersionProbe(Protocol):
    async def probe(self, cluster_name: str) -> InstalledState:
        ...


@runtime_checkable
class IdentityProvider(Protocol):
    """Consulta bloqueante (con timeout propio) de la identidad del validador."""

    async def get_identity(self) -> str:
        ...


@runtime_checkable
class CommandRunner(Protocol):
    """Ejecutor externo de comandos: recibe datos de template ya resueltos."""

    @property
    def commands_count(self) -> int:
        """Cantidad de comandos habilitados."""

        ...

    async def execute(self, index: int, data: CommandTemplateData) -> None:
        """Ejecuta el comando `index`; lanza `CommandExecutionFailure` si no es tolerable."""

        ...

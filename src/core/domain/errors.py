"""Errores del dominio.

Por qué una jerarquía propia:
- Cada fallo de un ciclo de sync tiene un tipo distinto, así el scheduler y la
  CLI pueden loguear/decidir sin inspeccionar mensajes.
- Todos heredan de `VersionSyncError`: un único `except` en el borde basta
  para convertir cualquier fallo en "ciclo fallido".
"""

from __future__ import annotations


class VersionSyncError(Exception):
    """Base de todos los errores que terminan un ciclo de sync."""


class ConfigError(VersionSyncError):
    """Configuración inválida o imposible de cargar."""


class FetchFailure(VersionSyncError):
    """Red, timeout o status no-2xx al descargar la documentación."""


class ParseFailure(VersionSyncError):
    """HTML no parseable o sin patrón de instalación."""


class AmbiguousSourceLayout(ParseFailure):
    """Los marcadores de cluster del documento no permiten un binding único."""

    def __init__(self, cluster: str, reason: str) -> None:
        self.cluster = cluster
        self.reason = reason
        super().__init__(f"ambiguous source layout for cluster {cluster}: {reason}")


class ClusterNotFound(VersionSyncError):
    """El documento no tiene un match posicional para el cluster pedido."""

    def __init__(self, cluster: str, matches_found: int) -> None:
        self.cluster = cluster
        self.matches_found = matches_found
        super().__init__(
            f"version not found for cluster {cluster} ({matches_found} install pattern match(es) found)"
        )


class VersionParseFailure(VersionSyncError):
    """Texto de versión semántica mal formado."""


class ProbeFailure(VersionSyncError):
    """No se pudo obtener la versión instalada desde el binario."""


class IdentityQueryFailure(VersionSyncError):
    """Fallo de transporte o error JSON-RPC en `getIdentity`."""


class UnknownIdentity(VersionSyncError):
    """El validador reporta una identidad que no es ni la activa ni la pasiva."""

    def __init__(self, identity: str, active: str, passive: str) -> None:
        self.identity = identity
        super().__init__(
            f"validator identity {identity} does not match configured active ({active}) "
            f"or passive ({passive}) identities"
        )


class ActiveIdentityBlocked(VersionSyncError):
    """El validador corre con la identidad activa y no se permite sincronizar."""

    def __init__(self, identity: str) -> None:
        self.identity = identity
        super().__init__(
            "sync not allowed when validator is active "
            "(set validator.enabled_when_active=true to allow)"
        )


class ConstraintViolation(VersionSyncError):
    """La versión objetivo cae fuera del rango aceptable declarado."""

    def __init__(self, version: str, constraint: str) -> None:
        self.version = version
        self.constraint = constraint
        super().__init__(
            f"target version {version} does not satisfy doublezero.version_constraint {constraint}"
        )


class CommandExecutionFailure(VersionSyncError):
    """Un comando de sync falló y no estaba marcado como tolerable."""

    def __init__(self, name: str, detail: str, *, exit_code: int | None = None) -> None:
        self.name = name
        self.exit_code = exit_code
        super().__init__(f"command {name!r} failed: {detail}")


class InstanceLockHeld(VersionSyncError):
    """El lock de sync no se pudo tomar: otra instancia lo tiene o el path no es usable."""

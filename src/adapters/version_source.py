"""Fuente de la versión recomendada: la documentación pública de DoubleZero.

Responsabilidad:
- Descargar la página de setup (httpx) y parsearla (BeautifulSoup).
- Extraer, por cluster, la versión de paquete de los comandos de ejemplo
  (`apt-get install doublezero=0.7.1-1`).

Binding cluster -> bloque de código:
1. Por contenido: un párrafo "The current recommended deployment for <cluster> is:"
   se asocia al siguiente bloque de código que contenga un comando de instalación.
2. Posicional (solo si el documento no tiene ningún marcador): el primer match
   es el primer cluster de `cluster_order`, el segundo es el segundo.

Estos scrapers están en adapters porque son I/O puro (HTTP).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

import httpx
from bs4 import BeautifulSoup, Tag
from bs4.builder import ParserRejectedMarkup

from adapters.http_client import HTML_ACCEPT, build_async_client
from core.config import DEFAULT_DOCS_URL, DEFAULT_USER_AGENT, SourceSettings
from core.domain.cluster import Cluster
from core.domain.errors import FetchFailure, ParseFailure, VersionParseFailure
from core.domain.models import ParsedVersion, RecommendedVersionMap
from core.log_setup import get_logger

logger = get_logger("versionsource")

# Elementos cuyo texto puede contener el marcador de cluster.
_MARKER_TAGS = frozenset(
    {"p", "h1", "h2", "h3", "h4", "h5", "h6", "li", "dt", "dd", "td", "th", "caption", "figcaption", "summary"}
)


@dataclass(frozen=True)
class _CodeMatch:
    package_version: str
    marker: str | None


class DocsVersionSource:
    """Resuelve la versión recomendada por cluster desde la documentación."""

    def __init__(
        self,
        *,
        docs_url: str = DEFAULT_DOCS_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_seconds: float = 30.0,
        cluster_order: Sequence[str] | None = None,
        package: str = "doublezero",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._docs_url = docs_url
        self._user_agent = user_agent
        self._timeout_seconds = timeout_seconds
        self._transport = transport
        self._cluster_order: tuple[str, ...] = tuple(
            str(getattr(c, "value", c)).lower() for c in (cluster_order or Cluster.names())
        )

        # Compilados una vez por instancia; solo lectura de ahí en adelante.
        self._install_re = re.compile(
            r"(?P<tool>[\w.-]+)\s+install\b[^\n]*?(?<![\w.-])"
            + re.escape(package)
            + r"=(?P<version>\d+\.\d+\.\d+-\d+)"
        )
        clusters = "|".join(re.escape(c) for c in sorted(self._cluster_order, key=len, reverse=True))
        self._marker_re = re.compile(
            r"the current recommended deployment for\s+(?P<cluster>" + clusters + r")\s+is\b"
        )

    @classmethod
    def from_settings(
        cls,
        settings: SourceSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "DocsVersionSource":
        return cls(
            docs_url=settings.docs_url,
            user_agent=settings.user_agent,
            timeout_seconds=settings.timeout_seconds,
            cluster_order=[c.value for c in settings.cluster_order],
            transport=transport,
        )

    @property
    def docs_url(self) -> str:
        return self._docs_url

    async def resolve(self, cluster_name: str) -> str:
        """Versión de paquete recomendada (p.ej. `0.7.1-1`) para `cluster_name`."""

        version_map = await self.fetch_version_map()
        package_version = version_map.lookup(cluster_name)
        logger.debug(
            "parsed version from docs cluster=%s version=%s binding=%s",
            cluster_name,
            package_version,
            version_map.binding,
        )
        return package_version

    async def get_recommended_semver_version(self, cluster_name: str) -> ParsedVersion:
        """Versión semántica recomendada: la de paquete sin el sufijo de revisión."""

        package_version = await self.resolve(cluster_name)
        semver_string = package_version.split("-")[0]
        try:
            version = ParsedVersion.parse(semver_string)
        except VersionParseFailure as exc:
            raise VersionParseFailure(
                f"failed to parse recommended version {semver_string} (from package version {package_version})"
            ) from exc
        logger.info("recommended version cluster=%s version=%s", cluster_name, version)
        return version

    async def fetch_version_map(self) -> RecommendedVersionMap:
        html = await self._fetch_document()
        return self.parse_document(html)

    def parse_document(self, html: str) -> RecommendedVersionMap:
        if not html or not html.strip():
            raise ParseFailure("failed to parse HTML: empty document")
        try:
            soup = BeautifulSoup(html, "html.parser")
        except ParserRejectedMarkup as exc:
            raise ParseFailure(f"failed to parse HTML: {exc}") from exc
        return self._build_map(self._scan(soup))

    async def _fetch_document(self) -> str:
        try:
            async with build_async_client(
                timeout_seconds=self._timeout_seconds,
                user_agent=self._user_agent,
                extra_headers={"Accept": HTML_ACCEPT},
                transport=self._transport,
            ) as client:
                response = await client.get(self._docs_url)
        except httpx.TimeoutException as exc:
            raise FetchFailure(f"timed out fetching docs {self._docs_url}") from exc
        except httpx.HTTPError as exc:
            raise FetchFailure(f"failed to fetch docs {self._docs_url}: {exc}") from exc

        if not response.is_success:
            raise FetchFailure(f"docs returned status {response.status_code}")
        return response.text

    def _scan(self, soup: BeautifulSoup) -> list[_CodeMatch]:
        """Recorrido DFS iterativo en orden de documento."""

        matches: list[_CodeMatch] = []
        pending_marker: str | None = None
        stack: list[Tag] = [soup]
        while stack:
            node = stack.pop()
            if _is_code_block(node):
                found = self._install_re.search(node.get_text())
                if found:
                    matches.append(_CodeMatch(package_version=found.group("version"), marker=pending_marker))
                    pending_marker = None
                # Un <pre> ya incluye el texto de su <code>.
                continue
            if node.name in _MARKER_TAGS:
                marker = self._marker_in(node)
                if marker:
                    pending_marker = marker
            stack.extend(child for child in reversed(node.contents) if isinstance(child, Tag))
        return matches

    def _marker_in(self, node: Tag) -> str | None:
        text = " ".join(node.get_text(" ").split()).lower()
        found = self._marker_re.search(text)
        return found.group("cluster") if found else None

    def _build_map(self, matches: list[_CodeMatch]) -> RecommendedVersionMap:
        if not matches:
            raise ParseFailure(
                "no install pattern found: could not find a package version string "
                "(doublezero=X.Y.Z-N) in documentation"
            )

        marked = [m for m in matches if m.marker]
        if marked:
            entries: dict[str, str] = {}
            ambiguous: dict[str, str] = {}
            for m in marked:
                assert m.marker is not None
                previous = entries.get(m.marker)
                if previous is None:
                    entries[m.marker] = m.package_version
                elif previous != m.package_version:
                    ambiguous[m.marker] = f"marked with conflicting versions {previous} and {m.package_version}"
            for cluster in ambiguous:
                entries.pop(cluster, None)
            return RecommendedVersionMap(
                entries=entries,
                binding="marker",
                matches_found=len(matches),
                ambiguous=ambiguous,
            )

        return RecommendedVersionMap(
            entries={cluster: m.package_version for cluster, m in zip(self._cluster_order, matches)},
            binding="positional",
            matches_found=len(matches),
        )


def _is_code_block(node: Tag) -> bool:
    if node.name == "code":
        return True
    if node.name == "pre":
        return any(isinstance(child, Tag) and child.name == "code" for child in node.children)
    return False

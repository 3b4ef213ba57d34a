"""Shared test fixtures for doublezero-version-sync."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from core.domain.errors import VersionSyncError
from core.domain.models import CommandTemplateData, InstalledState, ParsedVersion
from core.log_setup import LOGGER_NAME

POSITIONAL_DOCS = """
<html><body>
<h2>1. Install DoubleZero packages</h2>
<p>Mainnet-beta:</p>
<pre><code>sudo apt-get update
sudo apt-get install doublezero=1.2.3-1</code></pre>
<p>Testnet:</p>
<pre><code>sudo apt-get install doublezero=1.3.0-2</code></pre>
</body></html>
"""

MARKER_DOCS = """
<html><body>
<h2>1. Install DoubleZero packages</h2>
<p>The current recommended deployment for <strong>Testnet</strong> is:</p>
<pre><code>sudo yum install doublezero=0.7.2-1</code></pre>
<p>The current recommended deployment for Mainnet-Beta is:</p>
<pre><code>sudo apt-get install -y doublezero=0.7.1-1</code></pre>
</body></html>
"""

NO_INSTALL_DOCS = """
<html><body><p>Nothing to install here.</p><pre><code>doublezero --version</code></pre></body></html>
"""


class FakeVersionSource:
    """RecommendedVersionSource que devuelve siempre la misma versión de paquete."""

    def __init__(self, package_version: str, *, error: VersionSyncError | None = None) -> None:
        self.package_version = package_version
        self.error = error
        self.calls = 0

    async def resolve(self, cluster_name: str) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.package_version

    async def get_recommended_semver_version(self, cluster_name: str) -> ParsedVersion:
        return ParsedVersion.parse((await self.resolve(cluster_name)).split("-")[0])


class FakeProbe:
    def __init__(self, version_string: str) -> None:
        self.version_string = version_string

    async def probe(self, cluster_name: str) -> InstalledState:
        return InstalledState(
            cluster=cluster_name,
            version_string=self.version_string,
            version=ParsedVersion.parse(self.version_string),
        )


class FakeIdentityProvider:
    def __init__(self, identity: str) -> None:
        self.identity = identity
        self.calls = 0

    async def get_identity(self) -> str:
        self.calls += 1
        return self.identity


class RecordingRunner:
    """CommandRunner que guarda cada ejecución en lugar de lanzar procesos."""

    def __init__(self, commands_count: int) -> None:
        self._count = commands_count
        self.executed: list[tuple[int, CommandTemplateData]] = []

    @property
    def commands_count(self) -> int:
        return self._count

    async def execute(self, index: int, data: CommandTemplateData) -> None:
        self.executed.append((index, data))


@pytest.fixture
def write_config(tmp_path: Path):
    """Escribe un config.yaml en tmp_path y devuelve su path."""

    def _write(text: str, name: str = "config.yaml") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


def _reset_logger() -> None:
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture(autouse=True)
def reset_package_logger():
    """La CLI instala handlers con propagate=False; caplog necesita propagación."""

    _reset_logger()
    yield
    _reset_logger()

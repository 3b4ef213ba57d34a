"""Probe de la versión instalada de DoubleZero.

El binario es la fuente de verdad: se ejecuta `<bin> --version` y se busca
la primera versión (`0.7.1` o `0.7.1-1`) en la salida combinada.
"""

from __future__ import annotations

import asyncio
import re

from core.config import DoubleZeroSettings
from core.domain.errors import ProbeFailure, VersionParseFailure
from core.domain.models import InstalledState, ParsedVersion
from core.log_setup import get_logger

logger = get_logger("doublezero")


class DoubleZeroProbe:
    def __init__(self, bin_path: str = "doublezero", *, timeout_seconds: float = 30.0) -> None:
        self._bin = bin_path or "doublezero"
        self._timeout_seconds = timeout_seconds
        self._version_re = re.compile(r"(\d+\.\d+\.\d+(?:-\d+)?)")

    @classmethod
    def from_settings(cls, settings: DoubleZeroSettings) -> "DoubleZeroProbe":
        return cls(settings.bin, timeout_seconds=settings.probe_timeout_seconds)

    @property
    def bin(self) -> str:
        return self._bin

    async def probe(self, cluster_name: str) -> InstalledState:
        output = await self._run_version()
        match = self._version_re.search(output)
        if match is None:
            raise ProbeFailure(f"could not extract version from bin output: {output}")

        version_string = match.group(1)
        try:
            version = ParsedVersion.parse(version_string)
        except VersionParseFailure as exc:
            raise VersionParseFailure(f"failed to parse version from bin output: {exc}") from exc

        logger.debug("found installed version from bin bin=%s version=%s output=%r", self._bin, version, output)
        return InstalledState(cluster=cluster_name, version_string=version_string, version=version)

    async def _run_version(self) -> str:
        try:
            process = await asyncio.create_subprocess_exec(
                self._bin,
                "--version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            raise ProbeFailure(f"bin command failed: {self._bin}: {exc}") from exc

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self._timeout_seconds)
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise ProbeFailure(f"bin command timed out after {self._timeout_seconds}s: {self._bin}") from exc

        output = stdout.decode(errors="replace").strip()
        if process.returncode != 0:
            raise ProbeFailure(f"bin command failed with exit code {process.returncode}: {output}")
        return output

"""Motor de ejecución de los comandos de sync.

Por qué está en adapters:
- Es I/O puro (subprocesos); el Core solo entrega un `CommandTemplateData`.

Cada comando declara `cmd`, `args` y `environment` como templates Jinja2 con
las variables `ClusterName`, `CommandIndex`, `CommandsCount`, `VersionFrom`,
`VersionTo` y `PackageVersionTo`. Los templates se compilan al construir el
runner (arranque), así un template roto es un error de config y no de ciclo.
"""

from __future__ import annotations

import asyncio
import os
import shlex
from typing import Sequence

from jinja2 import Environment, StrictUndefined, Template, TemplateError, TemplateSyntaxError

from core.config import CommandSettings
from core.domain.errors import CommandExecutionFailure, ConfigError
from core.domain.models import CommandTemplateData
from core.log_setup import get_logger

logger = get_logger("sync_commands")

_STREAM_CHUNK_SIZE = 4096


def build_template_env() -> Environment:
    return Environment(undefined=StrictUndefined, autoescape=False)


class SyncCommand:
    """Un comando con sus templates ya compilados."""

    def __init__(self, spec: CommandSettings, env: Environment) -> None:
        self.spec = spec
        try:
            self._cmd: Template = env.from_string(spec.cmd)
            self._args: list[Template] = [env.from_string(arg) for arg in spec.args]
            self._environment: dict[str, Template] = {
                key: env.from_string(value) for key, value in spec.environment.items()
            }
        except TemplateSyntaxError as exc:
            raise ConfigError(
                f"failed to parse command {spec.name!r}: {exc} (templates use Jinja2 syntax, e.g. "
                "{{ PackageVersionTo }})"
            ) from exc

    @property
    def name(self) -> str:
        return self.spec.name

    def render(self, data: CommandTemplateData) -> tuple[list[str], dict[str, str]]:
        variables = data.as_template_vars()
        try:
            argv = shlex.split(self._cmd.render(variables))
            argv.extend(arg.render(variables) for arg in self._args)
            environment = {key: tpl.render(variables) for key, tpl in self._environment.items()}
        except (TemplateError, ValueError) as exc:
            raise CommandExecutionFailure(self.name, f"failed to render template: {exc}") from exc
        if not argv:
            raise CommandExecutionFailure(self.name, "rendered command is empty")
        return argv, environment


class SubprocessCommandRunner:
    """Ejecuta los comandos habilitados, en orden, como subprocesos."""

    def __init__(self, commands: Sequence[CommandSettings]) -> None:
        env = build_template_env()
        self._commands: list[SyncCommand] = []
        for spec in commands:
            if spec.disabled:
                logger.debug("command disabled, skipping name=%s", spec.name)
                continue
            self._commands.append(SyncCommand(spec, env))

    @property
    def commands_count(self) -> int:
        return len(self._commands)

    @property
    def names(self) -> list[str]:
        return [c.name for c in self._commands]

    async def execute(self, index: int, data: CommandTemplateData) -> None:
        command = self._commands[index]
        argv, environment = command.render(data)
        logger.info(
            "executing command [%d/%d] %s: %s",
            index + 1,
            self.commands_count,
            command.name,
            shlex.join(argv),
        )

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                env={**os.environ, **environment},
            )
        except OSError as exc:
            self._handle_failure(command, f"failed to start {argv[0]}: {exc}", exit_code=None)
            return

        if command.spec.stream_output:
            try:
                await _stream_lines(process, command.name)
                await process.wait()
            finally:
                if process.returncode is None:
                    process.kill()
                    await process.wait()
        else:
            stdout, _ = await process.communicate()
            for line in stdout.decode(errors="replace").splitlines():
                logger.debug("[%s] %s", command.name, line)

        if process.returncode != 0:
            self._handle_failure(command, f"exited with code {process.returncode}", exit_code=process.returncode)
            return
        logger.debug("command succeeded name=%s", command.name)

    def _handle_failure(self, command: SyncCommand, detail: str, *, exit_code: int | None) -> None:
        if command.spec.allow_failure:
            logger.warning("command %s failed (allow_failure=true, continuing): %s", command.name, detail)
            return
        raise CommandExecutionFailure(command.name, detail, exit_code=exit_code)


async def _stream_lines(process: asyncio.subprocess.Process, name: str) -> None:
    """Loguea la salida línea a línea leyendo por bloques, sin límite de largo de línea."""

    assert process.stdout is not None
    pending = b""
    while True:
        chunk = await process.stdout.read(_STREAM_CHUNK_SIZE)
        if not chunk:
            break
        pending += chunk
        *lines, pending = pending.split(b"\n")
        for raw_line in lines:
            logger.info("[%s] %s", name, raw_line.decode(errors="replace").rstrip())
    if pending:
        logger.info("[%s] %s", name, pending.decode(errors="replace").rstrip())

"""CLI principal (Typer).

Comandos:
- `run`: un ciclo de sync, o bucle alineado al reloj con `--on-interval`.
- `check`: dry run; calcula y muestra la decisión sin ejecutar comandos.
- `version`: versión del paquete.
- `doctor run`: diagnósticos del entorno.

Los errores de dominio (`VersionSyncError`) se convierten en exit code 1.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version as package_version
from pathlib import Path

import typer
from rich.console import Console

from cli import doctor
from cli.ui_components import build_decision_panel, print_banner
from core.config import DEFAULT_CONFIG_PATH, AppSettings, load_settings
from core.domain.errors import VersionSyncError
from core.log_setup import configure_logging, get_logger
from core.services.scheduler import parse_interval, run_on_interval, run_once
from core.services.sync_pipeline import build_sync_pipeline

app = typer.Typer(
    name="doublezero-version-sync",
    no_args_is_help=True,
    help="Keep the local DoubleZero package in sync with the recommended version.",
)
app.add_typer(doctor.app, name="doctor")

_console = Console()
logger = get_logger("cli")

_DIST_NAME = "doublezero-version-sync"


@dataclass
class CLIState:
    config: Path
    log_level: str | None = None


def _load(ctx: typer.Context) -> AppSettings:
    state: CLIState = ctx.obj
    settings = load_settings(state.config)
    configure_logging(state.log_level or settings.log.level, settings.log.format)
    return settings


def _fail(exc: BaseException) -> typer.Exit:
    logger.error("%s", exc)
    return typer.Exit(code=1)


@app.callback()
def main(
    ctx: typer.Context,
    config: Path = typer.Option(
        Path(DEFAULT_CONFIG_PATH),
        "--config",
        "-c",
        help="Path to the YAML configuration file.",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Override log.level (debug, info, warning, error).",
    ),
) -> None:
    ctx.obj = CLIState(config=config, log_level=log_level.lower() if log_level else None)
    # Logging mínimo hasta que se lea la config (errores de carga incluidos).
    configure_logging(ctx.obj.log_level or "info")


@app.command(name="run")
def run_command(
    ctx: typer.Context,
    on_interval: str | None = typer.Option(
        None,
        "--on-interval",
        "-i",
        help="Run continuously on wall-clock boundaries, e.g. 30s, 5m, 1h.",
    ),
) -> None:
    """Run a sync cycle (or loop on an interval)."""

    try:
        interval = parse_interval(on_interval) if on_interval else None
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--on-interval") from exc

    try:
        settings = _load(ctx)
        pipeline = build_sync_pipeline(settings)
        logger.info(
            "starting doublezero-version-sync cluster=%s config=%s",
            settings.cluster.name.value,
            settings.config_file,
        )
        if interval is None:
            asyncio.run(run_once(pipeline))
        else:
            asyncio.run(run_on_interval(pipeline, interval))
    except VersionSyncError as exc:
        raise _fail(exc) from exc
    except KeyboardInterrupt:
        logger.info("interrupted - exiting")
        raise typer.Exit(code=0)


@app.command()
def check(ctx: typer.Context) -> None:
    """Compute the sync decision without executing any command."""

    try:
        settings = _load(ctx)
        pipeline = build_sync_pipeline(settings)
        decision = asyncio.run(pipeline.plan())
    except VersionSyncError as exc:
        raise _fail(exc) from exc

    print_banner(_console)
    names = [c.name for c in settings.sync.commands if not c.disabled]
    _console.print(build_decision_panel(decision, command_names=names))
    if decision.blocked:
        raise typer.Exit(code=1)


@app.command(name="version")
def show_version() -> None:
    """Print the package version."""

    try:
        current = package_version(_DIST_NAME)
    except PackageNotFoundError:
        current = "dev"
    _console.print(f"{_DIST_NAME} {current}")


def run() -> None:
    app()

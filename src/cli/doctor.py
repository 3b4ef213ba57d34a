"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from adapters.doublezero_probe import DoubleZeroProbe
from adapters.identity_keys import resolve_identity_keys
from adapters.sync_commands import SubprocessCommandRunner
from adapters.validator_rpc import ValidatorRPCClient
from adapters.version_source import DocsVersionSource
from cli.ui_components import build_version_map_table
from core.config import AppSettings, load_settings
from core.domain.errors import VersionSyncError
from core.domain.models import RecommendedVersionMap, ValidatorRole
from core.services.identity_gate import classify_identity

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_docs(settings: AppSettings) -> tuple[bool, str, RecommendedVersionMap | None]:
    source = DocsVersionSource.from_settings(settings.source)
    try:
        version_map = await source.fetch_version_map()
    except VersionSyncError as exc:
        return False, str(exc), None
    return True, f"{version_map.matches_found} install pattern match(es), {version_map.binding} binding", version_map


def _check_cluster(settings: AppSettings, version_map: RecommendedVersionMap | None) -> tuple[bool, str]:
    if version_map is None:
        return False, "docs not available"
    try:
        return True, version_map.lookup(settings.cluster.name.value)
    except VersionSyncError as exc:
        return False, str(exc)


async def _check_probe(settings: AppSettings) -> tuple[bool, str]:
    probe = DoubleZeroProbe.from_settings(settings.doublezero)
    try:
        state = await probe.probe(settings.cluster.name.value)
    except VersionSyncError as exc:
        return False, str(exc)
    return True, f"{probe.bin} reports {state.version_string}"


async def _check_validator(settings: AppSettings) -> tuple[str, str]:
    validator = settings.validator
    if not validator.identity_gate_configured:
        if validator.partially_configured:
            return "WARN", "partially configured -> identity gate disabled"
        return "SKIPPED", "no validator.rpc_url / identities configured"

    try:
        active_key, passive_key = resolve_identity_keys(validator.identities)
        identity = await ValidatorRPCClient.from_settings(validator).get_identity()
    except VersionSyncError as exc:
        return "FAIL", str(exc)

    assert active_key is not None and passive_key is not None
    role = classify_identity(identity, active_key, passive_key)
    if role is ValidatorRole.ACTIVE and not validator.enabled_when_active:
        return "WARN", f"{identity} is the active identity -> sync will be blocked"
    if role is ValidatorRole.UNKNOWN:
        return "FAIL", f"{identity} matches neither configured identity"
    return "OK", f"{identity} ({role.value})"


def _check_commands(settings: AppSettings) -> tuple[str, str]:
    try:
        runner = SubprocessCommandRunner(settings.sync.commands)
    except VersionSyncError as exc:
        return "FAIL", str(exc)
    if runner.commands_count == 0:
        return "WARN", "no enabled commands -> syncs will only be logged"
    return "OK", ", ".join(runner.names)


@app.command()
def run(ctx: typer.Context) -> None:
    """Run baseline diagnostics against the configured environment."""

    config_path: Path | None = ctx.obj.config if ctx.obj is not None else None

    table = Table(title="doublezero-version-sync Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    # Config
    try:
        settings = load_settings(config_path)
    except VersionSyncError as exc:
        table.add_row("Config", "FAIL", str(exc))
        _console.print(table)
        raise typer.Exit(code=1)
    table.add_row("Config", "OK", str(settings.config_file))
    table.add_row("Cluster", "OK", settings.cluster.name.value)
    constraint = settings.doublezero.parsed_version_constraint
    table.add_row("Version constraint", "OK" if constraint else "OPTIONAL", str(constraint) if constraint else "none")

    # Docs
    ok_docs, detail_docs, version_map = asyncio.run(_check_docs(settings))
    table.add_row("Docs fetch", "OK" if ok_docs else "FAIL", detail_docs)
    ok_cluster, detail_cluster = _check_cluster(settings, version_map)
    table.add_row("Recommended version", "OK" if ok_cluster else "FAIL", detail_cluster)

    # Local binary
    ok_probe, detail_probe = asyncio.run(_check_probe(settings))
    table.add_row("Installed version", "OK" if ok_probe else "FAIL", detail_probe)

    # Validator
    status_validator, detail_validator = asyncio.run(_check_validator(settings))
    table.add_row("Validator identity", status_validator, detail_validator)

    status_commands, detail_commands = _check_commands(settings)
    table.add_row("Sync commands", status_commands, detail_commands)

    _console.print(table)
    if version_map is not None:
        _console.print(build_version_map_table(version_map))

    failed = not (ok_docs and ok_cluster and ok_probe) or "FAIL" in (status_validator, status_commands)
    if failed:
        raise typer.Exit(code=1)

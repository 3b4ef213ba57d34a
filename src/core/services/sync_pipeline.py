"""Sync orchestration.

This module composes one sync cycle out of its collaborators:

1. refresh the installed state (probe),
2. resolve the recommended semantic version and package version,
3. run the validator identity gate (when configured),
4. run the version-constraint gate (when configured),
5. diff installed -> recommended and, if needed, delegate to the command runner.

`plan()` stops before executing anything and reports blocked outcomes as a
`SyncDecision`; `sync()` runs the full cycle and raises the blocking error so
every failure is fatal to the cycle. Side effects (printing, scheduling) stay
in the CLI and scheduler layers.
"""

from __future__ import annotations

from contextlib import nullcontext
from dataclasses import dataclass
from pathlib import Path

import httpx

from adapters.doublezero_probe import DoubleZeroProbe
from adapters.identity_keys import resolve_identity_keys
from adapters.instance_lock import InstanceLock
from adapters.sync_commands import SubprocessCommandRunner
from adapters.validator_rpc import ValidatorRPCClient
from adapters.version_source import DocsVersionSource
from core.config import AppSettings
from core.domain.constraints import VersionConstraint
from core.domain.errors import ActiveIdentityBlocked, ConstraintViolation, ParseFailure, UnknownIdentity
from core.domain.models import CommandTemplateData, ParsedVersion, SyncDecision, SyncOutcome, compare
from core.interfaces.collaborators import CommandRunner, InstalledVersionProbe, RecommendedVersionSource
from core.log_setup import get_logger
from core.services.constraint_gate import check_constraint
from core.services.identity_gate import IdentityGate

logger = get_logger("sync")


@dataclass
class SyncPipeline:
    """One configured instance; `plan()`/`sync()` are called once per cycle."""

    cluster: str
    version_source: RecommendedVersionSource
    probe: InstalledVersionProbe
    runner: CommandRunner | None = None
    identity_gate: IdentityGate | None = None
    version_constraint: VersionConstraint | None = None
    lock_path: Path | None = None

    async def plan(self) -> SyncDecision:
        installed = await self.probe.probe(self.cluster)
        logger.debug("installed state cluster=%s version=%s", self.cluster, installed.version_string)

        to_version = await self.version_source.get_recommended_semver_version(self.cluster)
        package_version = await self.version_source.resolve(self.cluster)
        if ParsedVersion.parse(package_version.split("-")[0]) != to_version:
            raise ParseFailure(
                f"recommended version changed between fetches ({to_version.core_string()} vs {package_version})"
            )
        logger.debug("final target sync version cluster=%s target=%s", self.cluster, to_version.core_string())

        diff = compare(installed.version, to_version)

        if self.identity_gate is not None:
            try:
                await self.identity_gate.check()
            except (UnknownIdentity, ActiveIdentityBlocked) as exc:
                return SyncDecision(
                    outcome=SyncOutcome.BLOCKED_BY_IDENTITY,
                    cluster=self.cluster,
                    diff=diff,
                    package_version=package_version,
                    error=exc,
                )

        try:
            check_constraint(to_version, self.version_constraint)
        except ConstraintViolation as exc:
            return SyncDecision(
                outcome=SyncOutcome.BLOCKED_BY_CONSTRAINT,
                cluster=self.cluster,
                diff=diff,
                package_version=package_version,
                error=exc,
            )

        if diff.is_same_version:
            logger.info("DoubleZero already running target version %s - nothing to do", to_version.core_string())
            return SyncDecision(
                outcome=SyncOutcome.NO_CHANGE,
                cluster=self.cluster,
                diff=diff,
                package_version=package_version,
            )

        direction = diff.direction.value if diff.direction else "sync"
        logger.info("%s %s required v%s", diff.direction_symbol, direction, diff)

        commands_count = self.runner.commands_count if self.runner is not None else 0
        if commands_count == 0:
            logger.warning("no configured commands to execute - skipping")
            return SyncDecision(
                outcome=SyncOutcome.NO_COMMANDS_CONFIGURED,
                cluster=self.cluster,
                diff=diff,
                package_version=package_version,
            )

        template_data = [
            CommandTemplateData(
                cluster_name=self.cluster,
                command_index=index,
                commands_count=commands_count,
                version_from=installed.version.core_string(),
                version_to=to_version.core_string(),
                package_version_to=package_version,
            )
            for index in range(commands_count)
        ]
        return SyncDecision(
            outcome=SyncOutcome.PROCEED,
            cluster=self.cluster,
            diff=diff,
            package_version=package_version,
            template_data=template_data,
        )

    async def sync(self) -> SyncDecision:
        decision = await self.plan()
        if decision.blocked and decision.error is not None:
            raise decision.error
        if decision.outcome is SyncOutcome.PROCEED:
            await self._execute(decision)
        return decision

    async def _execute(self, decision: SyncDecision) -> None:
        assert self.runner is not None
        lock = InstanceLock(self.lock_path) if self.lock_path is not None else nullcontext()
        logger.info("executing commands")
        with lock:
            for data in decision.template_data:
                await self.runner.execute(data.command_index, data)
        logger.info("commands executed successfully")


def build_identity_gate(
    settings: AppSettings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> IdentityGate | None:
    """Gate por identidad, o `None` si no aplica (sin RPC o sin alguna de las claves)."""

    validator = settings.validator
    if not validator.identity_gate_configured:
        if validator.partially_configured:
            logger.warning(
                "validator identity check disabled: validator.rpc_url and both "
                "validator.identities (active and passive) are required"
            )
        return None

    active_key, passive_key = resolve_identity_keys(validator.identities)
    assert active_key is not None and passive_key is not None
    return IdentityGate(
        ValidatorRPCClient.from_settings(validator, transport=transport),
        active_key=active_key,
        passive_key=passive_key,
        allow_sync_when_active=validator.enabled_when_active,
    )


def build_sync_pipeline(
    settings: AppSettings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SyncPipeline:
    """Cablea adaptadores concretos según la configuración (una vez, al arrancar)."""

    pipeline = SyncPipeline(
        cluster=settings.cluster.name.value,
        version_source=DocsVersionSource.from_settings(settings.source, transport=transport),
        probe=DoubleZeroProbe.from_settings(settings.doublezero),
        runner=SubprocessCommandRunner(settings.sync.commands),
        identity_gate=build_identity_gate(settings, transport=transport),
        version_constraint=settings.doublezero.parsed_version_constraint,
        lock_path=settings.sync.lock_file,
    )
    logger.debug(
        "created sync pipeline cluster=%s bin=%s validator_rpc_url=%s identity_gate=%s constraint=%s",
        pipeline.cluster,
        settings.doublezero.bin,
        settings.validator.rpc_url,
        pipeline.identity_gate is not None,
        pipeline.version_constraint,
    )
    return pipeline

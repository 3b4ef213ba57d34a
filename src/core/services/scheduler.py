"""Scheduler: ejecución única o en bucle alineado al reloj.

Los límites se calculan en UTC: se trunca el tiempo transcurrido desde la
medianoche al múltiplo del intervalo y se suma un intervalo. Con `5m`, un
arranque a las 10:02:30 corre a las 10:05:00, 10:10:00, ...

Los fallos de un ciclo se loguean y el bucle sigue; el reintento es
simplemente el siguiente límite.
"""

from __future__ import annotations

import asyncio
import re
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from core.domain.errors import VersionSyncError
from core.domain.models import SyncDecision
from core.log_setup import get_logger
from core.services.sync_pipeline import SyncPipeline

logger = get_logger("scheduler")

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_interval(text: str) -> timedelta:
    """Parsea una duración estilo Go (`30s`, `5m`, `1h30m`); debe ser > 0."""

    raw = (text or "").strip()
    if not raw:
        raise ValueError("interval must not be empty")

    pos = 0
    seconds = 0.0
    for match in _DURATION_PART_RE.finditer(raw):
        if match.start() != pos:
            break
        seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if pos != len(raw):
        raise ValueError(f"invalid interval {text!r} (expected e.g. 30s, 5m, 1h30m)")

    interval = timedelta(seconds=seconds)
    if interval <= timedelta(0):
        raise ValueError(f"interval must be greater than zero: {text!r}")
    return interval


def format_duration(value: timedelta) -> str:
    total = max(int(round(value.total_seconds())), 0)
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    out = ""
    if hours:
        out += f"{hours}h"
    if hours or minutes:
        out += f"{minutes}m"
    return out + f"{seconds}s"


def next_boundary(now: datetime, interval: timedelta) -> datetime:
    if interval <= timedelta(0):
        raise ValueError("interval must be greater than zero")
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)

    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    since_midnight = now - midnight
    truncated = since_midnight - (since_midnight % interval)
    return midnight + truncated + interval


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def run_once(pipeline: SyncPipeline) -> SyncDecision:
    decision = await pipeline.sync()
    logger.info("sync finished outcome=%s diff=%s", decision.outcome.value, decision.diff)
    return decision


async def run_on_interval(
    pipeline: SyncPipeline,
    interval: timedelta,
    *,
    clock: Callable[[], datetime] = utcnow,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    max_cycles: int | None = None,
) -> None:
    """Bucle continuo; `max_cycles` solo existe para tests."""

    now = clock()
    first = next_boundary(now, interval)
    logger.info(
        "running on interval %s - first sync in %s at %s",
        format_duration(interval),
        format_duration(first - now),
        first.isoformat(),
    )
    await sleep(max((first - now).total_seconds(), 0.0))

    cycles = 0
    while True:
        try:
            await run_once(pipeline)
            status = "succeeded"
        except VersionSyncError as exc:
            logger.error("sync failed: %s", exc)
            status = "failed"
        except Exception:
            # Un fallo inesperado tampoco detiene el bucle: se reintenta en el próximo límite.
            logger.exception("sync failed with unexpected error")
            status = "failed"
        cycles += 1

        now = clock()
        upcoming = next_boundary(now, interval)
        wait = upcoming - now
        logger.info(
            "sync %s - next sync in %s at %s",
            status,
            format_duration(wait),
            upcoming.isoformat(),
        )
        if max_cycles is not None and cycles >= max_cycles:
            return
        await sleep(max(wait.total_seconds(), 0.0))

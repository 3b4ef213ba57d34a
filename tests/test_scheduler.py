"""Tests for interval parsing, boundary arithmetic and the run loop."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import FakeProbe, FakeVersionSource, RecordingRunner
from core.domain.errors import FetchFailure
from core.domain.models import ParsedVersion, SyncDecision, SyncOutcome, compare
from core.services.scheduler import format_duration, next_boundary, parse_interval, run_on_interval, run_once
from core.services.sync_pipeline import SyncPipeline


class TestParseInterval:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("30s", timedelta(seconds=30)),
            ("5m", timedelta(minutes=5)),
            ("1h30m", timedelta(hours=1, minutes=30)),
            ("1.5h", timedelta(minutes=90)),
            ("500ms", timedelta(milliseconds=500)),
        ],
    )
    def test_valid(self, text, expected):
        assert parse_interval(text) == expected

    @pytest.mark.parametrize("text", ["", "5", "0s", "5 minutes", "m5", "-5m"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_interval(text)


class TestNextBoundary:
    def test_truncates_and_adds_one_interval(self):
        now = datetime(2026, 3, 1, 10, 2, 30, tzinfo=timezone.utc)
        assert next_boundary(now, timedelta(minutes=5)) == datetime(2026, 3, 1, 10, 5, tzinfo=timezone.utc)

    def test_exact_boundary_moves_forward(self):
        now = datetime(2026, 3, 1, 10, 5, tzinfo=timezone.utc)
        assert next_boundary(now, timedelta(minutes=5)) == datetime(2026, 3, 1, 10, 10, tzinfo=timezone.utc)

    def test_crosses_midnight(self):
        now = datetime(2026, 3, 1, 23, 58, tzinfo=timezone.utc)
        assert next_boundary(now, timedelta(minutes=5)) == datetime(2026, 3, 2, 0, 0, tzinfo=timezone.utc)

    def test_interval_not_dividing_the_day(self):
        now = datetime(2026, 3, 1, 0, 16, tzinfo=timezone.utc)
        assert next_boundary(now, timedelta(minutes=7)) == datetime(2026, 3, 1, 0, 21, tzinfo=timezone.utc)

    def test_converts_to_utc(self):
        minus_three = timezone(timedelta(hours=-3))
        now = datetime(2026, 3, 1, 7, 2, tzinfo=minus_three)
        assert next_boundary(now, timedelta(hours=1)) == datetime(2026, 3, 1, 11, 0, tzinfo=timezone.utc)


def test_format_duration():
    assert format_duration(timedelta(seconds=42)) == "42s"
    assert format_duration(timedelta(minutes=4, seconds=59)) == "4m59s"
    assert format_duration(timedelta(hours=1, seconds=5)) == "1h0m5s"


class _ScriptedPipeline:
    """Pipeline falso: cada llamada a `sync` consume un resultado (decisión o error)."""

    def __init__(self, results):
        self.results = list(results)
        self.calls = 0

    async def sync(self) -> SyncDecision:
        self.calls += 1
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def _decision() -> SyncDecision:
    v = ParsedVersion.parse("0.7.1")
    return SyncDecision(outcome=SyncOutcome.NO_CHANGE, cluster="testnet", diff=compare(v, v))


class _FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> datetime:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += timedelta(seconds=seconds)


class TestRunLoop:
    @pytest.mark.asyncio
    async def test_run_once_propagates_errors(self):
        with pytest.raises(FetchFailure):
            await run_once(_ScriptedPipeline([FetchFailure("down")]))

    @pytest.mark.asyncio
    async def test_waits_for_boundaries_and_survives_failures(self, caplog):
        clock = _FakeClock(datetime(2026, 3, 1, 10, 2, 30, tzinfo=timezone.utc))
        pipeline = _ScriptedPipeline([_decision(), FetchFailure("down"), _decision()])

        with caplog.at_level("INFO"):
            await run_on_interval(
                pipeline,
                timedelta(minutes=5),
                clock=clock,
                sleep=clock.sleep,
                max_cycles=3,
            )

        assert pipeline.calls == 3
        # Primer límite a las 10:05, luego cada 5 minutos exactos.
        assert clock.sleeps == [150.0, 300.0, 300.0]
        messages = [r.getMessage() for r in caplog.records]
        assert any(m.startswith("sync succeeded - next sync in 5m0s") for m in messages)
        assert any(m.startswith("sync failed - next sync in 5m0s") for m in messages)

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_stop_the_loop(self, caplog):
        clock = _FakeClock(datetime(2026, 3, 1, 10, 0, 1, tzinfo=timezone.utc))
        pipeline = _ScriptedPipeline([RuntimeError("bug"), _decision()])

        with caplog.at_level("INFO"):
            await run_on_interval(pipeline, timedelta(minutes=1), clock=clock, sleep=clock.sleep, max_cycles=2)

        assert pipeline.calls == 2
        messages = [r.getMessage() for r in caplog.records]
        assert any(m.startswith("sync failed - next sync in") for m in messages)
        assert any(m.startswith("sync succeeded - next sync in") for m in messages)

    @pytest.mark.asyncio
    async def test_unusable_lock_path_fails_each_cycle_without_stopping(self, tmp_path, caplog):
        blocker = tmp_path / "regular-file"
        blocker.write_text("")
        commands = RecordingRunner(1)
        pipeline = SyncPipeline(
            cluster="testnet",
            version_source=FakeVersionSource("0.7.1-1"),
            probe=FakeProbe("0.6.9"),
            runner=commands,
            lock_path=blocker / "sync.lock",
        )
        clock = _FakeClock(datetime(2026, 3, 1, 10, 2, 30, tzinfo=timezone.utc))

        with caplog.at_level("INFO"):
            await run_on_interval(pipeline, timedelta(minutes=5), clock=clock, sleep=clock.sleep, max_cycles=2)

        assert commands.executed == []
        failed = [r for r in caplog.records if r.getMessage().startswith("sync failed - next sync in")]
        assert len(failed) == 2
        assert any("cannot open sync lock" in r.getMessage() for r in caplog.records)

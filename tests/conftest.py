"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from statuskeeper.monitor.clock import ManualClock
from statuskeeper.monitor.models import ProbeResult, Status
from statuskeeper.monitor.scheduler import ManualTimer
from statuskeeper.monitor.service import UptimeMonitor
from statuskeeper.monitor.store import LedgerStore


class ScriptedProbe:
    """Returns queued results in order; repeats the last one when exhausted.

    ``latency`` advances the clock while the "request" is in flight.
    """

    def __init__(self, *results: ProbeResult, clock: ManualClock,
                 latency: timedelta = timedelta(0)) -> None:
        self.results = list(results)
        self.clock = clock
        self.latency = latency
        self.calls = 0

    async def __call__(self) -> ProbeResult:
        self.calls += 1
        if self.latency:
            self.clock.advance(self.latency.total_seconds())
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]


@pytest.fixture
def up_result() -> ProbeResult:
    return ProbeResult(status=Status.ONLINE, outcome=200, message="200 OK")


@pytest.fixture
def down_result() -> ProbeResult:
    return ProbeResult(status=Status.OFFLINE, outcome=503, message="Unexpected status 503")


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(datetime(2025, 1, 1, 10, 3, 15, tzinfo=timezone.utc))


@pytest.fixture
def timer(clock: ManualClock) -> ManualTimer:
    return ManualTimer(clock)


@pytest.fixture
def make_probe(clock: ManualClock):
    """Factory: a probe replaying the given results against the test clock."""

    def _make(*results: ProbeResult, latency: timedelta = timedelta(0)) -> ScriptedProbe:
        return ScriptedProbe(*results, clock=clock, latency=latency)

    return _make


@pytest.fixture
def ledger_path(tmp_path: Path) -> Path:
    return tmp_path / "uptime.json"


@pytest.fixture
def store(ledger_path: Path) -> LedgerStore:
    return LedgerStore(ledger_path)


@pytest.fixture
def make_monitor(store: LedgerStore, clock: ManualClock, timer: ManualTimer, make_probe):
    """Factory: a monitor on synthetic time with a scripted probe."""

    def _make(*results: ProbeResult, latency: timedelta = timedelta(0)) -> UptimeMonitor:
        return UptimeMonitor(
            store=store, probe=make_probe(*results, latency=latency), clock=clock, timer=timer,
        )

    return _make

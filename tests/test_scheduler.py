"""Tests for boundary alignment, timers and the probe scheduler."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from statuskeeper.monitor.accountant import UptimeAccountant
from statuskeeper.monitor.checker import HealthChecker
from statuskeeper.monitor.clock import ManualClock, SystemClock
from statuskeeper.monitor.models import MonitorState, UptimeLedger
from statuskeeper.monitor.scheduler import (
    AsyncioTimer,
    ManualTimer,
    ProbeScheduler,
    next_boundary,
    round_up_to,
)

FIVE_MIN = timedelta(minutes=5)


def at(h: int, m: int, s: int = 0, us: int = 0) -> datetime:
    return datetime(2025, 1, 1, h, m, s, us, tzinfo=timezone.utc)


# ── Boundary math ────────────────────────────────────────────────────────────


class TestNextBoundary:
    @pytest.mark.parametrize(
        ("moment", "expected"),
        [
            (at(10, 3, 15), at(10, 5)),
            (at(10, 7, 31), at(10, 10)),
            (at(10, 5), at(10, 10)),
            (at(10, 4, 59, 999_999), at(10, 5)),
            (at(23, 58), datetime(2025, 1, 2, 0, 0, tzinfo=timezone.utc)),
        ],
    )
    def test_five_minute_boundaries(self, moment: datetime, expected: datetime) -> None:
        assert next_boundary(moment, FIVE_MIN) == expected

    def test_naive_is_treated_as_utc(self) -> None:
        assert next_boundary(datetime(2025, 1, 1, 10, 3, 15), FIVE_MIN) == at(10, 5)

    def test_non_utc_offset_lands_on_same_instant(self) -> None:
        plus_two = timezone(timedelta(hours=2))
        moment = datetime(2025, 1, 1, 12, 3, 15, tzinfo=plus_two)
        assert next_boundary(moment, FIVE_MIN) == at(10, 5)


class TestRoundUpTo:
    def test_first_half_minute(self) -> None:
        assert round_up_to(at(10, 0, 12), 30) == at(10, 0, 30)

    def test_second_half_minute(self) -> None:
        assert round_up_to(at(10, 0, 45), 30) == at(10, 1)

    def test_exact_mark_advances(self) -> None:
        assert round_up_to(at(10, 0, 30), 30) == at(10, 1)


# ── Timers ───────────────────────────────────────────────────────────────────


class TestManualTimer:
    def test_fires_in_time_order(self) -> None:
        clock = ManualClock(at(10, 0))
        timer = ManualTimer(clock)
        fired: list[tuple[str, datetime]] = []

        def record(name: str):
            async def cb() -> None:
                fired.append((name, clock.now()))
            return cb

        timer.schedule_at(at(10, 2), record("b"))
        timer.schedule_at(at(10, 1), record("a"))
        timer.schedule_at(at(10, 9), record("late"))

        count = asyncio.run(timer.run_until(at(10, 5)))
        assert count == 2
        assert fired == [("a", at(10, 1)), ("b", at(10, 2))]
        assert clock.now() == at(10, 5)
        assert [c.when for c in timer.pending] == [at(10, 9)]

    def test_cancelled_call_does_not_fire(self) -> None:
        clock = ManualClock(at(10, 0))
        timer = ManualTimer(clock)
        fired: list[int] = []

        async def cb() -> None:
            fired.append(1)

        call = timer.schedule_at(at(10, 1), cb)
        call.cancel()
        asyncio.run(timer.run_until(at(10, 5)))
        assert fired == []

    def test_overdue_call_fires_immediately(self) -> None:
        clock = ManualClock(at(10, 0))
        timer = ManualTimer(clock)
        fired: list[datetime] = []

        async def cb() -> None:
            fired.append(clock.now())

        timer.schedule_at(at(9, 55), cb)
        asyncio.run(timer.run_until(clock.now()))
        assert fired == [at(10, 0)]


class TestAsyncioTimer:
    def test_past_instant_fires_without_delay(self) -> None:
        clock = SystemClock()
        fired: list[int] = []

        async def cb() -> None:
            fired.append(1)

        async def scenario() -> None:
            timer = AsyncioTimer(clock)
            timer.schedule_at(clock.now() - timedelta(seconds=30), cb)
            await asyncio.sleep(0.05)
            await timer.drain()

        asyncio.run(scenario())
        assert fired == [1]

    def test_cancel_prevents_fire(self) -> None:
        clock = SystemClock()
        fired: list[int] = []

        async def cb() -> None:
            fired.append(1)

        async def scenario() -> None:
            timer = AsyncioTimer(clock)
            call = timer.schedule_at(clock.now() + timedelta(milliseconds=20), cb)
            call.cancel()
            await asyncio.sleep(0.05)

        asyncio.run(scenario())
        assert fired == []


# ── ProbeScheduler ───────────────────────────────────────────────────────────


def make_scheduler(clock: ManualClock, probe) -> ProbeScheduler:
    ledger = UptimeLedger()
    accountant = UptimeAccountant(ledger, anchor=clock.now())
    checker = HealthChecker(MonitorState(), ledger, accountant, probe)
    return ProbeScheduler(checker, clock, ManualTimer(clock), interval=FIVE_MIN)


class TestProbeScheduler:
    def test_first_probe_waits_for_boundary(self, clock, make_probe, up_result) -> None:
        probe = make_probe(up_result)
        sched = make_scheduler(clock, probe)
        sched.start()

        assert sched.next_run_at == at(10, 5)
        assert probe.calls == 0

    def test_probes_stay_on_boundaries(self, clock, make_probe, up_result) -> None:
        probe = make_probe(up_result, latency=timedelta(seconds=7))
        sched = make_scheduler(clock, probe)
        sched.start()

        asyncio.run(sched.timer.run_until(at(10, 21)))
        assert probe.calls == 4  # 10:05, 10:10, 10:15, 10:20
        assert sched.next_run_at == at(10, 25)
        assert sched.checker.state.last_check_at == at(10, 20)

    def test_slow_probe_skips_to_following_boundary(self, clock, make_probe, up_result) -> None:
        clock.set(at(10, 3))
        probe = make_probe(up_result, latency=timedelta(minutes=6))
        sched = make_scheduler(clock, probe)
        sched.start()

        asyncio.run(sched.timer.run_until(at(10, 5)))
        # Probe started 10:05 and finished 10:11.
        assert sched.next_run_at == at(10, 15)

    def test_nothing_scheduled_while_check_in_flight(self, clock, up_result) -> None:
        seen: list[datetime | None] = []

        async def slow_check():
            clock.advance(3)
            seen.append(sched.next_run_at)
            return up_result

        sched = make_scheduler(clock, slow_check)
        sched.start()
        asyncio.run(sched.timer.run_until(at(10, 5)))

        assert seen == [None]
        assert sched.next_run_at == at(10, 10)

    def test_early_wake_does_not_repeat_slot(self, clock, up_result) -> None:
        calls: list[datetime] = []

        async def lagging_wall_clock():
            # Wall clock reads a few ms short of the boundary the wake was set for.
            clock.set(at(10, 4, 59, 995_000))
            calls.append(clock.now())
            return up_result

        sched = make_scheduler(clock, lagging_wall_clock)
        sched.start()
        asyncio.run(sched.timer.run_until(at(10, 5)))

        assert len(calls) == 1
        assert sched.next_run_at == at(10, 10)

    def test_probe_error_keeps_loop_alive(self, clock, caplog) -> None:
        clock.set(at(10, 3))

        async def broken():
            raise RuntimeError("boom")

        sched = make_scheduler(clock, broken)
        sched.start()

        asyncio.run(sched.timer.run_until(at(10, 5)))
        assert sched.next_run_at == at(10, 10)
        assert "Health check error" in caplog.text

    def test_stop_cancels_next_wake(self, clock, make_probe, up_result, down_result) -> None:
        probe = make_probe(up_result, down_result)
        sched = make_scheduler(clock, probe)
        sched.start()
        sched.stop()

        assert sched.next_run_at is None
        asyncio.run(sched.timer.run_until(at(10, 30)))
        assert probe.calls == 0

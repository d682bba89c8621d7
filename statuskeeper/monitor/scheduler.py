"""Probe scheduler — fires checks on fixed wall-clock boundaries.

Each wake is scheduled at an absolute instant (the next multiple of the check
interval since the epoch) rather than "interval seconds from now", so slow
probes or restarts never push the cadence off :00, :05, :10 ...

Timers are pluggable: ``AsyncioTimer`` drives production on the event loop,
``ManualTimer`` is stepped by hand against a ``ManualClock`` in tests.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from .checker import HealthChecker
from .clock import Clock, ManualClock

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

Callback = Callable[[], Awaitable[Any]]


def next_boundary(moment: datetime, step: timedelta) -> datetime:
    """First multiple of ``step`` strictly after ``moment``."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return EPOCH + ((moment - EPOCH) // step + 1) * step


def round_up_to(moment: datetime, seconds: int) -> datetime:
    """Next ``seconds``-aligned instant, e.g. 30 → :00 / :30 marks."""
    return next_boundary(moment, timedelta(seconds=seconds))


# ── Timers ───────────────────────────────────────────────────────────────────


class ScheduledCall:
    """Handle for a one-shot wake at an absolute instant."""

    def __init__(self, when: datetime, callback: Callback) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False
        self._handle: asyncio.TimerHandle | None = None

    def cancel(self) -> None:
        self.cancelled = True
        if self._handle is not None:
            self._handle.cancel()


class Timer(Protocol):
    def schedule_at(self, when: datetime, callback: Callback) -> ScheduledCall: ...

    async def drain(self) -> None: ...


class AsyncioTimer:
    """Schedules coroutine callbacks on the running event loop."""

    def __init__(self, clock: Clock) -> None:
        self.clock = clock
        self._running: set[asyncio.Task[Any]] = set()

    def schedule_at(self, when: datetime, callback: Callback) -> ScheduledCall:
        call = ScheduledCall(when, callback)
        # Overdue wakes fire immediately.
        delay = max(0.0, (when - self.clock.now()).total_seconds())
        call._handle = asyncio.get_running_loop().call_later(delay, self._fire, call)
        return call

    def _fire(self, call: ScheduledCall) -> None:
        if call.cancelled:
            return
        task = asyncio.ensure_future(call.callback())
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def drain(self) -> None:
        """Wait for callbacks that already fired (e.g. an in-flight probe)."""
        if self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)


class ManualTimer:
    """Deterministic timer: nothing fires until ``run_until`` is awaited."""

    def __init__(self, clock: ManualClock) -> None:
        self.clock = clock
        self._pending: list[ScheduledCall] = []

    def schedule_at(self, when: datetime, callback: Callback) -> ScheduledCall:
        call = ScheduledCall(when, callback)
        self._pending.append(call)
        return call

    @property
    def pending(self) -> list[ScheduledCall]:
        return sorted(
            (c for c in self._pending if not c.cancelled), key=lambda c: c.when,
        )

    async def run_until(self, until: datetime) -> int:
        """Fire every call due at or before ``until`` in time order.

        The clock is moved to each call's instant before it runs (callbacks
        may advance it further to simulate slow work). Returns calls fired.
        """
        fired = 0
        while True:
            due = [c for c in self.pending if c.when <= until]
            if not due:
                break
            call = due[0]
            self._pending.remove(call)
            if call.when > self.clock.now():
                self.clock.set(call.when)
            await call.callback()
            fired += 1
        if until > self.clock.now():
            self.clock.set(until)
        return fired

    async def drain(self) -> None:
        return None


# ── Probe scheduler ──────────────────────────────────────────────────────────


class ProbeScheduler:
    """Runs ``HealthChecker.probe`` on every interval boundary."""

    def __init__(
        self,
        checker: HealthChecker,
        clock: Clock,
        timer: Timer,
        interval: timedelta = timedelta(minutes=5),
    ) -> None:
        self.checker = checker
        self.clock = clock
        self.timer = timer
        self.interval = interval
        self._next: ScheduledCall | None = None
        self._running = False

    @property
    def next_run_at(self) -> datetime | None:
        if self._next is None or self._next.cancelled:
            return None
        return self._next.when

    def start(self) -> None:
        """Schedule the first probe on the next boundary (not immediately)."""
        if self._running:
            return
        self._running = True
        self._schedule_next()
        logger.info(
            "Probe scheduler started (interval=%s, first check at %s)",
            self.interval, self.next_run_at.isoformat() if self.next_run_at else None,
        )

    def stop(self) -> None:
        self._running = False
        if self._next is not None:
            self._next.cancel()
            self._next = None
        logger.info("Probe scheduler stopped")

    def _schedule_next(self, fired_at: datetime | None = None) -> None:
        # A wake that lands early on the wall clock must not reuse its own slot.
        now = self.clock.now()
        when = next_boundary(max(now, fired_at) if fired_at else now, self.interval)
        self._next = self.timer.schedule_at(when, self._wake)

    async def _wake(self) -> None:
        fired_at = self._next.when if self._next is not None else None
        self._next = None  # nothing is scheduled while the probe is in flight
        try:
            await self.checker.probe(self.clock.now())
        except Exception:
            logger.exception("Health check error")
        finally:
            if self._running:
                self._schedule_next(fired_at)

"""Uptime monitor — owns every component for one monitored endpoint.

Replaces process-wide globals with one context object: the monitor holds the
clock, the transient state, the ledger, the accountant, the checker, the
probe scheduler and the store, and every mutation happens from callbacks
scheduled on a single event loop.

Lifecycle:
    monitor = UptimeMonitor(store=..., probe=..., clock=..., timer=...)
    monitor.start()
    ...
    await monitor.stop()
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from statuskeeper.config import Settings

from .accountant import UptimeAccountant
from .checker import HealthChecker, HttpProbe, ProbeFn
from .clock import Clock, SystemClock
from .models import MonitorState, UptimeLedger, format_instant
from .scheduler import AsyncioTimer, ProbeScheduler, ScheduledCall, Timer, next_boundary, round_up_to
from .store import LedgerStore

logger = logging.getLogger(__name__)


class UptimeMonitor:
    """Probe loop, periodic ledger flush and the read-only queries."""

    def __init__(
        self,
        store: LedgerStore,
        probe: ProbeFn,
        clock: Clock | None = None,
        timer: Timer | None = None,
        check_interval: timedelta = timedelta(minutes=5),
        persist_interval: timedelta = timedelta(seconds=60),
        refresh_alignment_seconds: int = 30,
    ) -> None:
        self.clock = clock or SystemClock()
        self.timer = timer or AsyncioTimer(self.clock)
        self.store = store
        self.check_interval = check_interval
        self.persist_interval = persist_interval
        self.refresh_alignment_seconds = refresh_alignment_seconds

        self.state = MonitorState()
        self.ledger: UptimeLedger = store.load()
        self.accountant = UptimeAccountant(self.ledger, anchor=self.clock.now())
        self.checker = HealthChecker(self.state, self.ledger, self.accountant, probe)
        self.scheduler = ProbeScheduler(
            self.checker, self.clock, self.timer, interval=check_interval,
        )
        self._flush_call: ScheduledCall | None = None
        self._running = False

    @classmethod
    def from_settings(
        cls, settings: Settings, clock: Clock | None = None, timer: Timer | None = None,
    ) -> UptimeMonitor:
        return cls(
            store=LedgerStore(settings.ledger_path, settings.ledger_sanity_threshold_seconds),
            probe=HttpProbe(
                settings.target_url,
                method=settings.probe_method,
                timeout_seconds=settings.probe_timeout_seconds,
            ),
            clock=clock,
            timer=timer,
            check_interval=timedelta(minutes=settings.check_interval_minutes),
            persist_interval=timedelta(seconds=settings.persist_interval_seconds),
            refresh_alignment_seconds=settings.refresh_alignment_seconds,
        )

    # -- lifecycle -------------------------------------------------------------

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self.scheduler.start()
        self._schedule_flush()
        logger.info(
            "Uptime monitor started (flush every %ss)",
            int(self.persist_interval.total_seconds()),
        )

    async def stop(self) -> None:
        """Cancel pending wakes, let an in-flight probe finish, save once more."""
        self._running = False
        self.scheduler.stop()
        if self._flush_call is not None:
            self._flush_call.cancel()
            self._flush_call = None
        await self.timer.drain()
        self.flush()
        logger.info("Uptime monitor stopped")

    # -- persistence -----------------------------------------------------------

    def flush(self) -> bool:
        self.accountant.settle(self.clock.now())
        return self.store.save(self.ledger)

    def _schedule_flush(self) -> None:
        when = self.clock.now() + self.persist_interval
        self._flush_call = self.timer.schedule_at(when, self._flush_tick)

    async def _flush_tick(self) -> None:
        try:
            self.flush()
        except Exception:
            logger.exception("Ledger flush error")
        finally:
            if self._running:
                self._schedule_flush()

    # -- queries ---------------------------------------------------------------

    def uptime_percentage(self) -> float:
        total = self.ledger.total_seconds
        if total <= 0:
            return 100.0
        return self.ledger.uptime_seconds / total * 100

    def next_check_at(self, now: datetime) -> datetime:
        scheduled = self.scheduler.next_run_at
        if scheduled is not None:
            return scheduled
        last = self.state.last_check_at
        return next_boundary(max(now, last) if last else now, self.check_interval)

    def status_snapshot(self) -> dict[str, Any]:
        now = self.clock.now()
        self.accountant.settle(now)
        state = self.state
        return {
            "isOnline": state.status.to_flag(),
            "lastOnlineTime": format_instant(state.last_online_at or self.ledger.last_online_at),
            "downStartTime": format_instant(state.down_since),
            "nextCheck": format_instant(self.next_check_at(now)),
            "lastCheck": format_instant(state.last_check_at),
            "now": format_instant(now),
            "lastHttpStatus": state.last_probe_outcome,
        }

    def uptime_snapshot(self) -> dict[str, Any]:
        now = self.clock.now()
        self.accountant.settle(now)
        pct = self.uptime_percentage()
        return {
            "uptimeSeconds": self.ledger.uptime_seconds,
            "downtimeSeconds": self.ledger.downtime_seconds,
            "uptimePercentage": f"{pct:.2f}",
            "uptimePercentageExact": f"{pct:.6f}",
            "nextRefresh": format_instant(round_up_to(now, self.refresh_alignment_seconds)),
            "lastStateChange": format_instant(self.ledger.last_state_change_at),
            "lastState": self.ledger.last_status.label,
        }

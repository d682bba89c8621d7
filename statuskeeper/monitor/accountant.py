"""Uptime accounting — folds elapsed wall-clock time into the ledger.

The accountant keeps one anchor, ``settled_at``: the instant up to which time
has already been attributed. Each settlement converts the gap between the
anchor and ``now`` into whole seconds for the ledger's current status and
advances the anchor by exactly those seconds, so the sub-second remainder is
carried into the next settlement instead of being dropped.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from .models import Status, UptimeLedger

logger = logging.getLogger(__name__)

_ONE_SECOND = timedelta(seconds=1)


class UptimeAccountant:
    """Owns the settlement anchor for one ledger."""

    def __init__(self, ledger: UptimeLedger, anchor: datetime) -> None:
        self.ledger = ledger
        self._settled_at = anchor

    @property
    def settled_at(self) -> datetime:
        return self._settled_at

    def settle(self, now: datetime) -> int:
        """Attribute whole seconds since the anchor to ``ledger.last_status``.

        Returns the number of seconds added (0 when nothing was attributed).
        """
        if self.ledger.last_status is Status.UNKNOWN:
            self._settled_at = now
            return 0

        if now < self._settled_at:
            logger.warning(
                "Clock moved backwards (%s < anchor %s) — re-basing anchor",
                now.isoformat(), self._settled_at.isoformat(),
            )
            self._settled_at = now
            return 0

        whole = (now - self._settled_at) // _ONE_SECOND
        if whole < 1:
            # Keep the anchor: the remainder counts toward the next call.
            return 0

        if self.ledger.last_status is Status.ONLINE:
            self.ledger.uptime_seconds += whole
        else:
            self.ledger.downtime_seconds += whole

        self._settled_at += whole * _ONE_SECOND
        return whole

    def reset(self, now: datetime) -> None:
        """Move the anchor to ``now`` after a probe; never moves it backwards."""
        if now > self._settled_at:
            self._settled_at = now

"""Ledger persistence — JSON file with a sanity pass on load.

File format (field names are shared with the status dashboard)::

    {
      "uptimeSeconds": 12345,
      "downtimeSeconds": 67,
      "lastStateChange": "2025-01-01T10:05:00Z",
      "lastStatus": true,
      "lastOnlineTime": "2025-01-01T10:05:00Z"
    }

Loading never fails: a missing or unreadable file gives a fresh ledger.
Saving never raises: failures are logged and the in-memory ledger stays
authoritative until the next flush.
"""

from __future__ import annotations

import contextlib
import json
import logging
import math
import os
from pathlib import Path
from typing import Any

from statuskeeper.config import TEN_YEARS_SECONDS

from .models import Status, UptimeLedger, format_instant, parse_instant

logger = logging.getLogger(__name__)


# ── Serialization ────────────────────────────────────────────────────────────


def _coerce_seconds(value: Any) -> int:
    """Non-negative whole seconds; anything invalid becomes 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return 0
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return 0
        return max(0, int(value))
    return 0


def ledger_from_dict(data: dict[str, Any]) -> UptimeLedger:
    """Build a ledger from raw JSON, coercing bad fields to defaults."""
    return UptimeLedger(
        uptime_seconds=_coerce_seconds(data.get("uptimeSeconds")),
        downtime_seconds=_coerce_seconds(data.get("downtimeSeconds")),
        last_status=Status.from_flag(data.get("lastStatus")),
        last_state_change_at=parse_instant(data.get("lastStateChange")),
        last_online_at=parse_instant(data.get("lastOnlineTime")),
    )


def ledger_to_dict(ledger: UptimeLedger) -> dict[str, Any]:
    return {
        "uptimeSeconds": int(ledger.uptime_seconds),
        "downtimeSeconds": int(ledger.downtime_seconds),
        "lastStateChange": format_instant(ledger.last_state_change_at),
        "lastStatus": ledger.last_status.to_flag(),
        "lastOnlineTime": format_instant(ledger.last_online_at),
    }


# ── Validation ───────────────────────────────────────────────────────────────


def correct_counter_units(
    ledger: UptimeLedger, threshold_seconds: int = TEN_YEARS_SECONDS,
) -> list[str]:
    """Fix counters that look like they were stored in milliseconds.

    A counter above ``threshold_seconds * 1000`` is divided by 1000; one above
    ``threshold_seconds`` is kept but flagged. Every finding is logged as a
    warning and returned so callers can surface it.
    """
    diagnostics: list[str] = []
    for field in ("uptime_seconds", "downtime_seconds"):
        value = getattr(ledger, field)
        if value > threshold_seconds * 1000:
            corrected = value // 1000
            setattr(ledger, field, corrected)
            msg = (
                f"{field} looks too large ({value}); assuming milliseconds "
                f"were stored, converted to {corrected} seconds"
            )
        elif value > threshold_seconds:
            msg = (
                f"{field} is very large ({value} seconds); "
                f"edit the ledger file if this looks wrong"
            )
        else:
            continue
        logger.warning(msg)
        diagnostics.append(msg)
    return diagnostics


def backfill_last_online(ledger: UptimeLedger) -> bool:
    """Infer ``last_online_at`` for an online ledger that has seen downtime."""
    if (
        ledger.last_status is Status.ONLINE
        and ledger.downtime_seconds > 0
        and ledger.last_online_at is None
        and ledger.last_state_change_at is not None
    ):
        ledger.last_online_at = ledger.last_state_change_at
        return True
    return False


# ── Store ────────────────────────────────────────────────────────────────────


class LedgerStore:
    """Loads and saves the uptime ledger as a JSON document."""

    def __init__(
        self,
        path: Path | str,
        threshold_seconds: int = TEN_YEARS_SECONDS,
    ) -> None:
        self.path = Path(path)
        self.threshold_seconds = threshold_seconds
        self.last_diagnostics: list[str] = []

    def load(self) -> UptimeLedger:
        self.last_diagnostics = []
        try:
            raw = self.path.read_text(encoding="utf-8")
            data = json.loads(raw)
        except FileNotFoundError:
            logger.info("No ledger at %s, starting fresh", self.path)
            return UptimeLedger()
        except (OSError, ValueError) as e:
            logger.info("Ledger at %s unreadable (%s), starting fresh", self.path, e)
            return UptimeLedger()

        if not isinstance(data, dict):
            logger.info("Ledger at %s is not an object, starting fresh", self.path)
            return UptimeLedger()

        ledger = ledger_from_dict(data)
        self.last_diagnostics = correct_counter_units(ledger, self.threshold_seconds)
        backfill_last_online(ledger)

        logger.info(
            "Loaded ledger from %s: up=%ds down=%ds last=%s",
            self.path, ledger.uptime_seconds, ledger.downtime_seconds,
            ledger.last_status.label,
        )
        return ledger

    def save(self, ledger: UptimeLedger) -> bool:
        """Write atomically (temp file + rename). Returns False on failure."""
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(ledger_to_dict(ledger), indent=2), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError:
            with contextlib.suppress(OSError):
                tmp.unlink()
            logger.exception("Failed to save ledger to %s", self.path)
            return False
        logger.debug("Saved ledger to %s", self.path)
        return True

"""Monitor models — status, probe results, transient state and the ledger."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum


# ── Status ───────────────────────────────────────────────────────────────────


class Status(str, Enum):
    UNKNOWN = "unknown"
    ONLINE = "online"
    OFFLINE = "offline"

    @property
    def label(self) -> str:
        return self.value.upper()

    def to_flag(self) -> bool | None:
        """Persisted form: true / false / null."""
        if self is Status.UNKNOWN:
            return None
        return self is Status.ONLINE

    @classmethod
    def from_flag(cls, flag: object) -> Status:
        if flag is True:
            return cls.ONLINE
        if flag is False:
            return cls.OFFLINE
        return cls.UNKNOWN


# ── Timestamps ───────────────────────────────────────────────────────────────


def format_instant(moment: datetime | None) -> str | None:
    """ISO-8601 in UTC with a ``Z`` suffix, or None."""
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_instant(value: object) -> datetime | None:
    """Parse an ISO-8601 string; anything unparseable becomes None."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(text)
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


# ── Records ──────────────────────────────────────────────────────────────────


@dataclass
class ProbeResult:
    """Classified outcome of one probe.

    ``outcome`` is the HTTP status code when a response arrived, otherwise a
    short failure reason such as ``timeout`` or ``dns_error``.
    """

    status: Status
    outcome: int | str
    latency_ms: float = 0.0
    message: str = ""


@dataclass
class MonitorState:
    """Transient, in-memory view of the monitored endpoint."""

    status: Status = Status.UNKNOWN
    last_check_at: datetime | None = None
    last_state_change_at: datetime | None = None
    last_online_at: datetime | None = None
    down_since: datetime | None = None
    last_probe_outcome: int | str | None = None


@dataclass
class UptimeLedger:
    """Durable running totals plus the last known state."""

    uptime_seconds: int = 0
    downtime_seconds: int = 0
    last_status: Status = Status.UNKNOWN
    last_state_change_at: datetime | None = None
    last_online_at: datetime | None = None

    @property
    def total_seconds(self) -> int:
        return self.uptime_seconds + self.downtime_seconds

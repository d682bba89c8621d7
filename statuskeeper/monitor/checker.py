"""Health checker — probes the monitored endpoint and records transitions.

A probe never raises for network trouble: timeouts, DNS failures, refused
connections and non-2xx answers are all classified as OFFLINE with the cause
kept in ``ProbeResult.outcome``.
"""

from __future__ import annotations

import logging
import socket
import time
from collections.abc import Awaitable, Callable
from datetime import datetime

import httpx

from .accountant import UptimeAccountant
from .models import MonitorState, ProbeResult, Status, UptimeLedger

logger = logging.getLogger(__name__)

ProbeFn = Callable[[], Awaitable[ProbeResult]]


# ── Probe runner ─────────────────────────────────────────────────────────────


def classify_transport_error(exc: BaseException) -> str:
    """Map an httpx transport failure to a short reason string."""
    if isinstance(exc, httpx.TimeoutException):
        return "timeout"

    if isinstance(exc, httpx.ConnectError):
        cause: BaseException | None = exc
        while cause is not None:
            if isinstance(cause, socket.gaierror):
                return "dns_error"
            if isinstance(cause, ConnectionRefusedError):
                return "connection_refused"
            cause = cause.__cause__ or cause.__context__

        text = str(exc).lower()
        if "name or service not known" in text or "nodename nor servname" in text \
                or "temporary failure in name resolution" in text or "getaddrinfo" in text:
            return "dns_error"
        if "refused" in text:
            return "connection_refused"
        return "connect_error"

    return type(exc).__name__


class HttpProbe:
    """One HTTP(S) request against the target; 2xx means ONLINE."""

    def __init__(
        self,
        url: str,
        method: str = "GET",
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.method = method
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def __call__(self) -> ProbeResult:
        t0 = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                resp = await client.request(self.method, self.url)
            latency = (time.perf_counter() - t0) * 1000

            if resp.is_success:
                return ProbeResult(
                    status=Status.ONLINE, outcome=resp.status_code,
                    latency_ms=round(latency, 1), message=f"{resp.status_code} OK",
                )
            return ProbeResult(
                status=Status.OFFLINE, outcome=resp.status_code,
                latency_ms=round(latency, 1),
                message=f"Unexpected status {resp.status_code}",
            )
        except httpx.HTTPError as e:
            latency = (time.perf_counter() - t0) * 1000
            reason = classify_transport_error(e)
            return ProbeResult(
                status=Status.OFFLINE, outcome=reason,
                latency_ms=round(latency, 1), message=f"{reason}: {e}",
            )
        except Exception as e:
            latency = (time.perf_counter() - t0) * 1000
            return ProbeResult(
                status=Status.OFFLINE, outcome=type(e).__name__,
                latency_ms=round(latency, 1), message=f"Error: {type(e).__name__}: {e}",
            )


# ── Checker ──────────────────────────────────────────────────────────────────


class HealthChecker:
    """Runs a probe and applies its result to the monitor state and ledger."""

    def __init__(
        self,
        state: MonitorState,
        ledger: UptimeLedger,
        accountant: UptimeAccountant,
        probe: ProbeFn,
    ) -> None:
        self.state = state
        self.ledger = ledger
        self.accountant = accountant
        self._probe = probe

    async def probe(self, now: datetime) -> ProbeResult:
        """Probe once at ``now``; time before ``now`` goes to the old status."""
        self.accountant.settle(now)

        result = await self._probe()
        self.apply(result, now)
        return result

    def apply(self, result: ProbeResult, now: datetime) -> None:
        previous = self.ledger.last_status
        new_status = result.status

        if new_status is not previous:
            self.ledger.last_state_change_at = now
            self.state.last_state_change_at = now
            if new_status is Status.ONLINE:
                self.ledger.last_online_at = now
                self.state.last_online_at = now
                self.state.down_since = None
            else:
                self.state.down_since = now
            logger.info(
                "State change: %s -> %s at %s",
                previous.label, new_status.label, now.isoformat(),
            )
        elif new_status is Status.OFFLINE and self.state.down_since is None:
            # Restarted while already down: recover the outage start.
            self.state.down_since = self.ledger.last_state_change_at or now

        self.state.status = new_status
        self.ledger.last_status = new_status
        self.state.last_check_at = now
        self.state.last_probe_outcome = result.outcome

        self.accountant.reset(now)

        logger.info(
            "Checked at %s - Status: %s (HTTP: %s)",
            now.isoformat(), new_status.label, result.outcome,
        )

"""Read-only status routes.

Endpoints:
  GET  /status  — current state, last/next check, last probe outcome
  GET  /uptime  — accumulated uptime/downtime and percentage
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from .models import StatusResponse, UptimeResponse

status_router = APIRouter(tags=["status"])


@status_router.get("/status", response_model=StatusResponse)
async def current_status(request: Request) -> StatusResponse:
    """Current state of the monitored endpoint."""
    monitor = request.app.state.monitor
    return StatusResponse(**monitor.status_snapshot())


@status_router.get("/uptime", response_model=UptimeResponse)
async def uptime(request: Request) -> UptimeResponse:
    """Ledger totals; pending time is settled before reporting."""
    monitor = request.app.state.monitor
    return UptimeResponse(**monitor.uptime_snapshot())

"""Pydantic response models for the status API."""

from __future__ import annotations

from pydantic import BaseModel


class StatusResponse(BaseModel):
    isOnline: bool | None
    lastOnlineTime: str | None
    downStartTime: str | None
    nextCheck: str
    lastCheck: str | None
    now: str
    lastHttpStatus: int | str | None


class UptimeResponse(BaseModel):
    uptimeSeconds: int
    downtimeSeconds: int
    uptimePercentage: str
    uptimePercentageExact: str
    nextRefresh: str
    lastStateChange: str | None
    lastState: str

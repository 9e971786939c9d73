"""Pydantic schemas for admin endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class LimiterStats(BaseModel):
    """Counters of one named limiter since process start."""

    name: str
    window_seconds: float = Field(..., description="Admission window length in seconds.")
    max_requests: int = Field(..., description="Attempts admitted per key per window.")
    tracked_keys: int = Field(..., description="Keys currently held in memory.")
    admitted: int
    denied: int
    sweeps: int = Field(..., description="Completed cleanup sweeps.")
    evictions: int = Field(..., description="Expired records removed by sweeps.")


class RateLimitStatsResponse(BaseModel):
    limiters: dict[str, LimiterStats]

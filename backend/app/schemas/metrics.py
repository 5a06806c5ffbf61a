"""
Pydantic v2 response schemas for the usage metrics dashboard.

daily_series always carries exactly 7 entries (6 days ago → today),
zero-filled, so chart rendering never branches on missing days.
"""

from __future__ import annotations

import datetime

from pydantic import BaseModel, Field


class DailyUsageOut(BaseModel):
    """Request count for one local calendar day."""

    date: datetime.date
    count: int = Field(..., ge=0)


class MetricsOut(BaseModel):
    """Global usage rollup across every key."""

    total_requests: int = Field(..., ge=0)
    requests_today: int = Field(..., ge=0)
    avg_response_time_ms: int = Field(
        ...,
        ge=0,
        description="Mean latency over events that carry a sample, rounded.",
    )
    success_rate_percent: float = Field(
        ...,
        ge=0,
        le=100,
        description="100 × successful / total, one decimal; 0 when empty.",
    )
    daily_series: list[DailyUsageOut] = Field(..., min_length=7, max_length=7)

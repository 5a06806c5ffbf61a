"""
Usage metrics aggregation for the dashboard.

Global rollup over the api_usage ledger (no owner scoping):
  • Totals, success rate and mean latency are aggregated in SQL.
  • "Today" and the 7-day series are bucketed by local calendar day in
    settings.METRICS_TIMEZONE, which SQL cannot do portably, so only the
    last 7 days of events are fetched and bucketed in Python.

Metrics are advisory: a storage failure returns the all-zero shape
instead of propagating, so the dashboard never crashes on them.
"""

from __future__ import annotations

import datetime
import logging
from decimal import ROUND_HALF_UP, Decimal
from zoneinfo import ZoneInfo

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import storage_operation
from app.core.errors import StorageFailure
from app.models.usage import UsageEvent
from app.schemas.metrics import DailyUsageOut, MetricsOut
from app.services import usage_ledger

logger = logging.getLogger(__name__)

SERIES_DAYS = 7


def _local_day_start(moment: datetime.datetime, tz: ZoneInfo) -> datetime.datetime:
    """Midnight of `moment`'s local calendar day, as an aware datetime."""
    local = moment.astimezone(tz)
    return datetime.datetime.combine(local.date(), datetime.time.min, tzinfo=tz)


def _series_days(now: datetime.datetime, tz: ZoneInfo) -> list[datetime.date]:
    today = now.astimezone(tz).date()
    return [today - datetime.timedelta(days=offset) for offset in range(SERIES_DAYS - 1, -1, -1)]


def _round_half_up(value: Decimal, exponent: str) -> Decimal:
    return value.quantize(Decimal(exponent), rounding=ROUND_HALF_UP)


def empty_metrics(now: datetime.datetime | None = None) -> MetricsOut:
    """All-zero metrics with a zero-filled 7-day series."""
    now = now or datetime.datetime.now(datetime.timezone.utc)
    tz = ZoneInfo(settings.METRICS_TIMEZONE)
    return MetricsOut(
        total_requests=0,
        requests_today=0,
        avg_response_time_ms=0,
        success_rate_percent=0.0,
        daily_series=[DailyUsageOut(date=day, count=0) for day in _series_days(now, tz)],
    )


async def compute_metrics(
    session: AsyncSession,
    now: datetime.datetime | None = None,
) -> MetricsOut:
    """
    Compute the dashboard rollup.

    Args:
        session: Async DB session.
        now:     Reference instant (aware); defaults to the current time.
    """
    now = now or datetime.datetime.now(datetime.timezone.utc)
    tz = ZoneInfo(settings.METRICS_TIMEZONE)

    try:
        totals = await _fetch_totals(session)
        window_start = _local_day_start(now, tz) - datetime.timedelta(days=SERIES_DAYS - 1)
        recent = await usage_ledger.query_all(
            session,
            since=window_start.astimezone(datetime.timezone.utc),
        )
    except StorageFailure:
        logger.exception("Failed to compute usage metrics, returning empty rollup")
        return empty_metrics(now)

    total, successful, avg_latency = totals

    success_rate = Decimal(0)
    if total > 0:
        success_rate = _round_half_up(Decimal(100) * successful / total, "0.1")

    avg_response = 0
    if avg_latency is not None:
        avg_response = int(_round_half_up(Decimal(str(avg_latency)), "1"))

    # ── Local-day buckets ───────────────────────────────────
    days = _series_days(now, tz)
    counts = {day: 0 for day in days}
    today_start = _local_day_start(now, tz)
    requests_today = 0
    for event in recent:
        local_day = event.timestamp.astimezone(tz).date()
        if local_day in counts:
            counts[local_day] += 1
        if event.timestamp >= today_start:
            requests_today += 1

    return MetricsOut(
        total_requests=total,
        requests_today=requests_today,
        avg_response_time_ms=avg_response,
        success_rate_percent=float(success_rate),
        daily_series=[DailyUsageOut(date=day, count=counts[day]) for day in days],
    )


async def _fetch_totals(session: AsyncSession) -> tuple[int, int, object | None]:
    """
    SQL: SELECT COUNT(*), SUM(CASE WHEN success THEN 1 ELSE 0 END),
                AVG(response_time_ms)
         FROM api_usage

    AVG ignores NULL latencies, so it is the mean over sampled events only.
    """
    stmt = select(
        func.count().label("total"),
        func.coalesce(func.sum(case((UsageEvent.success.is_(True), 1), else_=0)), 0).label("successful"),
        func.avg(UsageEvent.response_time_ms).label("avg_latency"),
    ).select_from(UsageEvent)

    async with storage_operation(session, "compute_metrics"):
        row = (await session.execute(stmt)).one()

    return int(row.total), int(row.successful), row.avg_latency

"""
Metrics router: global usage rollup for the dashboard.

GET /metrics: totals, today's count, success rate, mean latency and a
               zero-filled 7-day series. Never fails on storage errors.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.schemas.metrics import MetricsOut
from app.services.metrics import compute_metrics

router = APIRouter(tags=["Metrics"])

DbSession = Annotated[AsyncSession, Depends(get_db_session)]


@router.get(
    "",
    response_model=MetricsOut,
    summary="Usage metrics across all API keys",
)
async def get_metrics(session: DbSession) -> MetricsOut:
    return await compute_metrics(session)

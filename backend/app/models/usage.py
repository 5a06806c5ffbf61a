"""
SQLAlchemy model for the `api_usage` table.

Each row is one recorded call against an API key, written after a quota
unit was consumed, whether the downstream work then succeeded or not.
Rows are never updated; they are removed with their parent key.
"""

import datetime
import uuid

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.models.api_key import _utcnow


class UsageEvent(Base):
    """One protected API call against a key."""

    __tablename__ = "api_usage"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    key_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("api_keys.id", ondelete="CASCADE"),
        nullable=False,
    )
    timestamp: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    response_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("ix_api_usage_key_id", "key_id"),
        Index("ix_api_usage_timestamp", "timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"<UsageEvent key={self.key_id!s:.8} success={self.success} "
            f"rt={self.response_time_ms}>"
        )

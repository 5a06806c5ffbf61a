"""
API key model: one issued credential with its usage quota.

Security notes:
  • `secret` is the full credential; it only leaves the service unmasked
    on creation and on an explicit reveal call.
  • `owner_id` is the opaque user id supplied by the identity provider.
  • `remaining_uses` is only ever decremented by a conditional UPDATE
    (see services.key_store.consume_one_use); the CHECK constraints make
    the [0, usage_limit] range a storage-level constraint too.

Types are the dialect-agnostic Uuid / DateTime(timezone=True) so the same
model runs on PostgreSQL (asyncpg) and SQLite (aiosqlite, tests).
"""

import datetime
import uuid

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class ApiKey(Base):
    """Issued API key owned by one user."""

    __tablename__ = "api_keys"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    owner_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    secret: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        unique=True,
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    last_used_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    usage_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    remaining_uses: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("remaining_uses >= 0", name="ck_remaining_uses_non_neg"),
        CheckConstraint(
            "remaining_uses <= usage_limit",
            name="ck_remaining_uses_within_limit",
        ),
        Index("ix_api_keys_owner_id", "owner_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ApiKey id={self.id!s:.8} owner={self.owner_id!r} "
            f"remaining={self.remaining_uses}/{self.usage_limit}>"
        )

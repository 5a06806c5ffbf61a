"""create api_keys and api_usage tables

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Key store + usage ledger. api_usage rows cascade with their key;
key_store.delete_key() also removes them explicitly first.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── 1. api_keys ─────────────────────────────────────────
    op.create_table(
        "api_keys",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.String(255), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("secret", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("usage_limit", sa.Integer(), nullable=False),
        sa.Column("remaining_uses", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("secret"),
        sa.CheckConstraint("remaining_uses >= 0", name="ck_remaining_uses_non_neg"),
        sa.CheckConstraint(
            "remaining_uses <= usage_limit",
            name="ck_remaining_uses_within_limit",
        ),
    )
    op.create_index("ix_api_keys_owner_id", "api_keys", ["owner_id"])

    # ── 2. api_usage ────────────────────────────────────────
    op.create_table(
        "api_usage",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("key_id", sa.Uuid(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("response_time_ms", sa.Integer(), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["key_id"], ["api_keys.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_api_usage_key_id", "api_usage", ["key_id"])
    op.create_index("ix_api_usage_timestamp", "api_usage", ["timestamp"])


def downgrade() -> None:
    op.drop_index("ix_api_usage_timestamp", table_name="api_usage")
    op.drop_index("ix_api_usage_key_id", table_name="api_usage")
    op.drop_table("api_usage")
    op.drop_index("ix_api_keys_owner_id", table_name="api_keys")
    op.drop_table("api_keys")

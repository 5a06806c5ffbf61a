"""
Pydantic v2 schemas for the dashboard key-management endpoints.

Separation:
  • ApiKeyOut       : default shape; `secret` is always masked.
  • ApiKeyCreatedOut: returned once, on creation, with the raw secret.
  • ApiKeyRevealOut : explicit reveal call, raw secret only.

Name emptiness/whitespace is checked by the key service (it must hold
for every caller, not just HTTP); the schemas only bound the type.
"""

from __future__ import annotations

import datetime
import uuid

from pydantic import BaseModel, ConfigDict, Field


# ── Request schemas ─────────────────────────────────────────
class ApiKeyCreate(BaseModel):
    """Payload accepted by POST /api-keys."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(
        ...,
        examples=["CI pipeline"],
        description="Display label; trimmed, must not be blank.",
    )


class ApiKeyUpdate(BaseModel):
    """Payload accepted by PUT /api-keys/{id}. Only the name is mutable."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., examples=["Renamed key"])


# ── Response schemas ────────────────────────────────────────
class ApiKeyCreatedOut(BaseModel):
    """Newly created key, the only response besides reveal with a raw secret."""

    id: uuid.UUID
    name: str
    secret: str
    created_at: datetime.datetime
    last_used_at: datetime.datetime | None
    usage_limit: int
    remaining_uses: int


class ApiKeyOut(BaseModel):
    """Masked key, annotated with the ledger's independent usage count."""

    id: uuid.UUID
    name: str
    secret: str = Field(..., description="Masked secret.")
    created_at: datetime.datetime
    last_used_at: datetime.datetime | None
    usage_limit: int
    remaining_uses: int
    actual_usage: int = Field(
        ...,
        ge=0,
        description="Recorded usage events; tracked apart from remaining_uses.",
    )


class ApiKeyRevealOut(BaseModel):
    """Explicitly revealed secret."""

    id: uuid.UUID
    secret: str

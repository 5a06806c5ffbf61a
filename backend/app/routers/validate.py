"""
Validation router: does this API key exist?

POST /validate {"api_key": "..."} → {"valid": true|false}

Owner-agnostic and read-only: validating a key never consumes quota.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.services.quota_guard import validate_key

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Validation"])

DbSession = Annotated[AsyncSession, Depends(get_db_session)]


class ValidateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    api_key: str = Field(default="", examples=["sk_live_..."])


class ValidateResponse(BaseModel):
    valid: bool


@router.post(
    "",
    response_model=ValidateResponse,
    summary="Check whether an API key exists",
)
async def validate_api_key(payload: ValidateRequest, session: DbSession) -> ValidateResponse:
    secret = payload.api_key.strip()
    if not secret:
        logger.warning("API key validation request rejected: missing API key")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="API key is required",
        )
    return ValidateResponse(valid=await validate_key(session, secret))

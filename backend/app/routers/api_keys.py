"""
API key management router: dashboard CRUD scoped to the signed-in user.

Every route requires X-User-ID (see auth.dependencies.get_owner_id).

  GET    /api-keys             : masked list, newest first
  POST   /api-keys             : create; returns the raw secret once
  GET    /api-keys/{id}        : masked key
  GET    /api-keys/{id}/reveal : raw secret, explicit call
  PUT    /api-keys/{id}        : rename
  DELETE /api-keys/{id}        : delete key and its usage history

StorageFailure is not handled here; the app-level handler turns it into
a generic 500.
"""

import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_owner_id
from app.core.database import get_db_session
from app.core.errors import NotFound, ValidationError
from app.schemas.api_key import (
    ApiKeyCreate,
    ApiKeyCreatedOut,
    ApiKeyOut,
    ApiKeyRevealOut,
    ApiKeyUpdate,
)
from app.services import key_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["API Keys"])

# Type aliases for cleaner signatures
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
OwnerId = Annotated[str, Depends(get_owner_id)]


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="API key not found")


def _bad_request(exc: ValidationError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get(
    "",
    response_model=list[ApiKeyOut],
    summary="List the caller's API keys (masked)",
)
async def list_api_keys(session: DbSession, owner_id: OwnerId) -> list[ApiKeyOut]:
    logger.debug("Fetching all API keys for user: %s", owner_id)
    return await key_service.list_keys(session, owner_id)


@router.post(
    "",
    response_model=ApiKeyCreatedOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create an API key",
    description="Returns the full secret. It is shown unmasked only here and via reveal.",
)
async def create_api_key(
    payload: ApiKeyCreate,
    session: DbSession,
    owner_id: OwnerId,
) -> ApiKeyCreatedOut:
    try:
        created = await key_service.create_key(session, owner_id, payload.name)
    except ValidationError as exc:
        logger.warning("Invalid API key name provided by user: %s", owner_id)
        raise _bad_request(exc) from exc
    return created


@router.get(
    "/{key_id}",
    response_model=ApiKeyOut,
    summary="Get one API key (masked)",
)
async def get_api_key(key_id: uuid.UUID, session: DbSession, owner_id: OwnerId) -> ApiKeyOut:
    try:
        return await key_service.get_key(session, key_id, owner_id)
    except NotFound as exc:
        logger.warning("API key %s not found for user: %s", key_id, owner_id)
        raise _not_found() from exc


@router.get(
    "/{key_id}/reveal",
    response_model=ApiKeyRevealOut,
    summary="Reveal the full secret of one API key",
)
async def reveal_api_key(
    key_id: uuid.UUID,
    session: DbSession,
    owner_id: OwnerId,
) -> ApiKeyRevealOut:
    try:
        return await key_service.reveal_key(session, key_id, owner_id)
    except NotFound as exc:
        logger.warning("API key %s not found for user: %s", key_id, owner_id)
        raise _not_found() from exc


@router.put(
    "/{key_id}",
    response_model=ApiKeyOut,
    summary="Rename an API key",
)
async def update_api_key(
    key_id: uuid.UUID,
    payload: ApiKeyUpdate,
    session: DbSession,
    owner_id: OwnerId,
) -> ApiKeyOut:
    try:
        updated = await key_service.rename_key(session, key_id, owner_id, payload.name)
    except ValidationError as exc:
        logger.warning("Invalid API key name provided for update by user: %s", owner_id)
        raise _bad_request(exc) from exc
    except NotFound as exc:
        logger.warning("API key %s not found for user: %s", key_id, owner_id)
        raise _not_found() from exc

    logger.info("API key %s updated for user: %s", key_id, owner_id)
    return updated


@router.delete(
    "/{key_id}",
    summary="Delete an API key and its usage history",
)
async def delete_api_key(
    key_id: uuid.UUID,
    session: DbSession,
    owner_id: OwnerId,
) -> dict[str, str]:
    try:
        await key_service.delete_key(session, key_id, owner_id)
    except NotFound as exc:
        logger.warning("API key %s not found for deletion by user: %s", key_id, owner_id)
        raise _not_found() from exc
    return {"message": "API key deleted successfully"}

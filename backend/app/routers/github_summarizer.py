"""
GitHub summarizer router: README summary behind the API-key quota.

POST /github-summarizer {"github_url": "https://github.com/owner/repo"}
  1. Extracts the API key (X-API-Key or Authorization header).
  2. Validates the URL; a malformed URL costs no quota.
  3. Spends one quota unit (quota_guard.guarded_call).
  4. Fetches and summarizes the README.
  5. Records exactly one usage event, success or failure.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_presented_api_key
from app.core.database import get_db_session
from app.core.errors import QuotaExceeded, Unauthorized, ValidationError
from app.schemas.summarizer import GitHubSummarizerRequest, GitHubSummaryOut
from app.services.github_client import GitHubError, parse_github_url
from app.services.quota_guard import guarded_call
from app.services.summarizer import summarize_repository

logger = logging.getLogger(__name__)

router = APIRouter(tags=["GitHub Summarizer"])

DbSession = Annotated[AsyncSession, Depends(get_db_session)]
PresentedKey = Annotated[str, Depends(get_presented_api_key)]


@router.post(
    "",
    response_model=GitHubSummaryOut,
    summary="Summarize a GitHub repository README",
    description="Consumes one unit of the API key's quota per accepted request.",
)
async def summarize(
    payload: GitHubSummarizerRequest,
    session: DbSession,
    api_key: PresentedKey,
) -> GitHubSummaryOut:
    try:
        owner, repo = parse_github_url(payload.github_url)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    github_url = payload.github_url.strip()
    logger.debug("Processing GitHub summarizer request for: %s/%s", owner, repo)

    try:
        async with guarded_call(session, api_key):
            return await summarize_repository(github_url, owner, repo)
    except Unauthorized as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        ) from exc
    except QuotaExceeded as exc:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "API key usage limit exceeded",
                "remaining_uses": exc.remaining_uses,
                "usage_limit": exc.usage_limit,
            },
        ) from exc
    except GitHubError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    except RuntimeError as exc:
        logger.exception("README summarization failed for %s/%s", owner, repo)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Summarization service is temporarily unavailable.",
        ) from exc

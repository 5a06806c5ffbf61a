"""
FastAPI application entrypoint.

Lifespan:
  • On startup: verify DB connectivity (non-fatal).
  • On shutdown: dispose the engine cleanly.

Routers (all under /api):
  • /api/api-keys         : key lifecycle for the dashboard
  • /api/metrics          : global usage rollup
  • /api/validate         : API key existence check
  • /api/github-summarizer: quota-guarded README summary
  • /health               : shallow liveness probe

Unexpected storage/integrity errors are converted to generic 500s here;
backend detail only ever reaches the logs.
"""

import logging
import re
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.core.config import settings
from app.core.database import engine
from app.core.errors import IntegrityViolation, StorageFailure
from app.routers.api_keys import router as api_keys_router
from app.routers.github_summarizer import router as github_summarizer_router
from app.routers.metrics import router as metrics_router
from app.routers.validate import router as validate_router

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""

    # Startup: verify DB is reachable
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection verified ✓")
    except Exception:
        logger.warning(
            "Could not reach the database on startup. "
            "The app will start, but requests will fail until the DB is available."
        )

    yield  # ← application runs here

    # Shutdown: clean up connection pool
    await engine.dispose()
    logger.info("Database engine disposed ✓")


# ── App ─────────────────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    description="API key issuance, per-key usage quotas and usage metrics.",
    lifespan=lifespan,
)

# CORS: the dashboard frontend, plus any localhost port outside prod
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_origin_regex=(
        None if settings.ENVIRONMENT == "prod" else rf"^{re.escape('http://localhost:')}\d+$"
    ),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-API-Key", "X-User-ID"],
)


# ── Error handlers ──────────────────────────────────────────
@app.exception_handler(StorageFailure)
async def storage_failure_handler(_request: Request, exc: StorageFailure) -> JSONResponse:
    # Already logged with context at the store boundary.
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal error. Please try again."},
    )


@app.exception_handler(IntegrityViolation)
async def integrity_violation_handler(_request: Request, exc: IntegrityViolation) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# Mount routers
app.include_router(api_keys_router, prefix="/api/api-keys")
app.include_router(metrics_router, prefix="/api/metrics")
app.include_router(validate_router, prefix="/api/validate")
app.include_router(github_summarizer_router, prefix="/api/github-summarizer")


# ── Health check ────────────────────────────────────────────
@app.get(
    "/health",
    tags=["System"],
    summary="Liveness probe",
)
async def health_check() -> dict[str, str]:
    """Shallow health check, confirms the process is alive."""
    return {"status": "healthy"}

"""
FastAPI dependencies for request credentials.

Two credential kinds:
  • Dashboard requests carry the owner id supplied by the identity
    provider's session middleware in X-User-ID. It is trusted as-is.
  • Protected API calls carry an API key secret in X-API-Key or in
    `Authorization: Bearer <key>` / `Authorization: ApiKey <key>`.

Security:
  • Generic 401 for missing credentials; raw keys are NEVER logged.
  • These dependencies only extract; resolving a secret against the
    key store is the quota guard's job.
"""

from __future__ import annotations

from fastapi import Header, HTTPException, status

_OWNER_REQUIRED = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="User ID is required.",
)

_API_KEY_REQUIRED = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail=(
        "API key is required. Please provide it in the X-API-Key header "
        "or Authorization header."
    ),
    headers={"WWW-Authenticate": "Bearer"},
)

_AUTH_SCHEMES = ("bearer", "apikey")


async def get_owner_id(
    x_user_id: str | None = Header(default=None, alias="X-User-ID"),
) -> str:
    """
    FastAPI dependency returning the authenticated dashboard user's id.

    Usage in routers:
        OwnerId = Annotated[str, Depends(get_owner_id)]
    """
    if x_user_id is None or not x_user_id.strip():
        raise _OWNER_REQUIRED
    return x_user_id.strip()


async def get_presented_api_key(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> str:
    """
    FastAPI dependency returning the raw API key presented by the caller.

    X-API-Key wins when both headers are present. Scheme matching on
    Authorization is case-insensitive.
    """
    if x_api_key and x_api_key.strip():
        return x_api_key.strip()

    if authorization:
        parts = authorization.strip().split(" ", maxsplit=1)
        if len(parts) == 2 and parts[0].lower() in _AUTH_SCHEMES and parts[1].strip():
            return parts[1].strip()

    raise _API_KEY_REQUIRED

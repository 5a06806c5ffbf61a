"""
Error taxonomy for the key / quota subsystem.

Expected outcomes (validation, not-found, unauthorized, quota) are
branched on by routers and mapped to 4xx responses. StorageFailure and
IntegrityViolation are unexpected: they reach the app-level handlers in
main.py and become a generic 500; their messages are for logs only.
"""

from __future__ import annotations

import uuid


class KeyServiceError(Exception):
    """Base class for every error raised by the key services."""


class ValidationError(KeyServiceError):
    """Malformed input, rejected before touching storage."""


class NotFound(KeyServiceError):
    """Key id does not exist or belongs to another owner."""


class Unauthorized(KeyServiceError):
    """Missing owner id or an unresolvable API key secret."""


class QuotaExceeded(KeyServiceError):
    """Valid key with no remaining uses."""

    def __init__(self, remaining_uses: int, usage_limit: int) -> None:
        super().__init__("API key usage limit exceeded")
        self.remaining_uses = max(remaining_uses, 0)
        self.usage_limit = usage_limit


class StorageFailure(KeyServiceError):
    """Backend connectivity or constraint error."""

    def __init__(self, operation: str, key_id: uuid.UUID | None = None) -> None:
        super().__init__(f"Storage failure during {operation}")
        self.operation = operation
        self.key_id = key_id


class IntegrityViolation(KeyServiceError):
    """Refreshed key record does not match the presented secret."""

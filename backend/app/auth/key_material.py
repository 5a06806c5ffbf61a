"""
API key material generation.

Security notes:
  • Secrets come from the `secrets` module (OS CSPRNG), never `random`.
  • 32 random bytes → 64 lowercase hex chars = 256 bits of entropy.
  • The sk_live_ prefix is a convention for recognising keys in the
    wild, not a security property.
  • If the OS cannot provide secure randomness this raises instead of
    degrading to a weaker generator; it is an environment precondition.
"""

import secrets

from app.core.config import settings


def generate_api_key() -> str:
    """
    Generate a new raw API key: `<prefix><64 hex chars>`.

    Raises:
        RuntimeError: If no cryptographically secure source is available.
    """
    try:
        random_part = secrets.token_hex(settings.API_KEY_RANDOM_BYTES)
    except NotImplementedError as exc:
        raise RuntimeError("Cryptographic randomness source not available") from exc
    return f"{settings.API_KEY_PREFIX}{random_part}"

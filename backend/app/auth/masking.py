"""Display masking for API key secrets."""

from app.core.config import settings


def mask_api_key(secret: str) -> str:
    """
    Redact the middle of a secret for display.

    Keeps the first MASK_VISIBLE_PREFIX and last MASK_VISIBLE_SUFFIX
    characters and replaces the rest with MASK_GLYPH, one glyph per
    hidden character. Secrets no longer than prefix + suffix are redacted
    entirely so short or malformed input never leaks partial content.

    Must only be applied to raw secrets, never to an already-masked string.
    """
    head = settings.MASK_VISIBLE_PREFIX
    tail = settings.MASK_VISIBLE_SUFFIX
    glyph = settings.MASK_GLYPH

    if len(secret) <= head + tail:
        return glyph * len(secret)

    hidden = len(secret) - head - tail
    return f"{secret[:head]}{glyph * hidden}{secret[len(secret) - tail:]}"

"""
Identifier and secret generation.

  - ids      → UUID4 strings, opaque to clients
  - API keys → 32 secure random bytes, hex encoded (64 chars)
  - slugs    → 8 URL-safe chars from 6 secure random bytes
"""

import secrets
import uuid

API_KEY_BYTES = 32
SLUG_BYTES = 6  # base64 of 6 bytes is exactly 8 chars
REVOKED_PLACEHOLDER = "REVOKED"


def new_id() -> str:
    return str(uuid.uuid4())


def new_api_key(nbytes: int = API_KEY_BYTES) -> str:
    """Generate a raw API key. Shown to the caller once, at issuance."""
    return secrets.token_hex(nbytes)


def new_slug() -> str:
    return secrets.token_urlsafe(SLUG_BYTES)


def mask_api_key(raw_key: str, revoked: bool, suffix: int = 8) -> str:
    """Listing form of a key: a fixed placeholder once revoked, else only the tail."""
    if revoked:
        return REVOKED_PLACEHOLDER
    return f"****{raw_key[-suffix:]}"

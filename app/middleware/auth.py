"""
API Key authentication.

Every application gets API keys at registration (and on regeneration):
  - Presented in the x-api-key header
  - Scoped to exactly one application
  - Usable iff is_revoked = false AND (expires_at IS NULL OR expires_at > now())

Callers are never told WHY a key was rejected — unknown, revoked and expired
keys all get the same 401. Resolution has no side effects.
"""

from dataclasses import dataclass

from fastapi import Depends, Security
from fastapi.security import APIKeyHeader
from sqlalchemy import and_, or_, select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.errors import Unauthorized, store_errors
from app.models.database import get_db
from app.models.tables import APIKey, Application

import structlog

logger = structlog.get_logger()

api_key_header = APIKeyHeader(name=get_settings().api_key_header, auto_error=False)

_WWW_AUTHENTICATE = {"WWW-Authenticate": "ApiKey"}


@dataclass
class AuthContext:
    """Resolved authentication context for the current request."""
    app_id: str
    api_key_id: str
    app_name: str


def active_key_clause():
    """Predicate for a key that is neither revoked nor expired."""
    return and_(
        APIKey.is_revoked == False,
        or_(APIKey.expires_at.is_(None), APIKey.expires_at > func.now()),
    )


async def resolve_api_key(raw_key: str | None, db: AsyncSession) -> AuthContext:
    """Look up and validate an API key."""
    if not raw_key:
        raise Unauthorized(
            f"API key is required. Please provide {get_settings().api_key_header} header.",
            headers=_WWW_AUTHENTICATE,
        )

    stmt = (
        select(APIKey.id, APIKey.app_id, Application.name)
        .join(Application, Application.id == APIKey.app_id)
        .where(
            APIKey.api_key == raw_key,
            active_key_clause(),
        )
    )
    with store_errors("api_key_auth", "Failed to authenticate API key."):
        result = await db.execute(stmt)
        row = result.first()

    if row is None:
        raise Unauthorized("Invalid or revoked API key.", headers=_WWW_AUTHENTICATE)

    return AuthContext(app_id=row.app_id, api_key_id=row.id, app_name=row.name)


async def require_api_key(
    api_key: str | None = Security(api_key_header),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """Require a valid, unrevoked, unexpired API key."""
    return await resolve_api_key(api_key, db)

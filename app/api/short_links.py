"""
Short links — /shorten to create, /s/{slug} to follow.

Create:
  - API key required; the link belongs to the key's application
  - Only http(s) targets with a host
  - Random 8-char slug when none is given
  - Slug uniqueness: pre-check for a clean 409, and the insert's unique
    violation maps to the same 409 when two creators race for one slug

Redirect flow:
  1. Look up slug (404 if missing)
  2. click_count + 1
  3. If the owning app still has an active key, record a short_url_click event
  4. 302 to the stored URL
"""

import re
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, field_validator
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.errors import BadRequest, Conflict, NotFound, store_errors
from app.core.keygen import new_id, new_slug
from app.models.database import get_db
from app.models.tables import APIKey, Event, ShortURL
from app.middleware.auth import AuthContext, active_key_clause, require_api_key
from app.middleware.rate_limit import get_client_ip

import structlog

logger = structlog.get_logger()
router = APIRouter(tags=["short-links"])
redirect_router = APIRouter(tags=["short-links"])

CLICK_EVENT_NAME = "short_url_click"
SLUG_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,100}$")
SLUG_TAKEN_MESSAGE = "Slug already exists. Please choose a different slug."


class ShortenRequest(BaseModel):
    url: str
    slug: str | None = None

    @field_validator("url")
    @classmethod
    def _url_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("url is required and must be a valid URL string.")
        return v

    @field_validator("slug")
    @classmethod
    def _slug_format(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not SLUG_PATTERN.match(v):
            raise ValueError("slug may only contain letters, digits, '-' and '_' (max 100 chars).")
        return v


def _validate_target_url(url: str):
    """Syntactic check only — http/https with a host."""
    try:
        parsed = urlparse(url)
    except ValueError:
        raise BadRequest("Invalid URL format.")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise BadRequest("Invalid URL format.")


def _short_url(request: Request, slug: str) -> str:
    base = get_settings().base_url or str(request.base_url)
    return f"{base.rstrip('/')}/s/{slug}"


@router.post("/shorten", status_code=201)
async def create_short_url(
    body: ShortenRequest,
    request: Request,
    auth: AuthContext = Depends(require_api_key),
    db: AsyncSession = Depends(get_db),
):
    _validate_target_url(body.url)
    slug = body.slug or new_slug()

    with store_errors("create_short_url", "Failed to create short URL.", slug=slug):
        existing = await db.execute(select(ShortURL.id).where(ShortURL.slug == slug))
        if existing.scalar_one_or_none() is not None:
            raise Conflict(SLUG_TAKEN_MESSAGE)

        db.add(ShortURL(id=new_id(), app_id=auth.app_id, slug=slug, original_url=body.url))
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.info("short_url_slug_race", slug=slug)
            raise Conflict(SLUG_TAKEN_MESSAGE)

    logger.info("short_url_created", slug=slug, app_id=auth.app_id)

    return {
        "success": True,
        "data": {
            "slug": slug,
            "short_url": _short_url(request, slug),
            "original_url": body.url,
        },
    }


@redirect_router.get("/s/{slug}")
async def redirect_short_url(
    slug: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    with store_errors("redirect_short_url", "Failed to redirect short URL.", slug=slug):
        result = await db.execute(
            select(ShortURL.id, ShortURL.app_id, ShortURL.original_url).where(ShortURL.slug == slug)
        )
        link = result.first()
        if link is None:
            raise NotFound("Short URL not found.")

        await db.execute(
            update(ShortURL)
            .where(ShortURL.id == link.id)
            .values(click_count=ShortURL.click_count + 1)
        )

        # Attribute the click to any active key of the owning app
        key_result = await db.execute(
            select(APIKey.id)
            .where(APIKey.app_id == link.app_id, active_key_clause())
            .limit(1)
        )
        api_key_id = key_result.scalar_one_or_none()

        if api_key_id is not None:
            ip = get_client_ip(request)
            db.add(Event(
                id=new_id(),
                app_id=link.app_id,
                api_key_id=api_key_id,
                event_name=CLICK_EVENT_NAME,
                user_id=f"anonymous_{ip}",
                ip_address=ip,
                user_agent=request.headers.get("user-agent"),
                properties={"slug": slug, "short_url_id": link.id},
            ))

        await db.commit()

    logger.info("short_url_redirect", slug=slug, attributed=api_key_id is not None)
    return RedirectResponse(url=link.original_url, status_code=302)

"""
Analytics API — event ingestion and read-side aggregation.

  POST /analytics/collect        — API key required; one immutable event per call
  GET  /analytics/event-summary  — counts, unique users, device breakdown (cached)
  GET  /analytics/user-stats     — per-user totals, last IP, recent events

Ingestion:
  - app_id / api_key_id come from the authenticated key, never the body
  - ip_address and user_agent are captured server-side
  - properties is stored verbatim (any JSON object, key order kept)
  - no dedupe, no batching, no retry
"""

import datetime

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.aggregation import get_event_summary, get_user_stats, resolve_date_range
from app.core.cache import ResultCache, get_cache
from app.core.errors import BadRequest, store_errors
from app.core.keygen import new_id
from app.models.database import get_db
from app.models.tables import Event
from app.middleware.auth import AuthContext, require_api_key
from app.middleware.rate_limit import get_client_ip

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/analytics", tags=["analytics"])


# --- Request schemas ---

class CollectEventRequest(BaseModel):
    event_name: str
    user_id: str
    session_id: str | None = None
    device_type: str | None = None
    device_model: str | None = None
    os_name: str | None = None
    os_version: str | None = None
    browser_name: str | None = None
    browser_version: str | None = None
    properties: dict | None = None
    timestamp: datetime.datetime | None = None  # defaults to ingestion time

    @field_validator("event_name", "user_id")
    @classmethod
    def _required_text(cls, v: str, info) -> str:
        v = v.strip()
        if not v:
            raise ValueError(f"{info.field_name} is required and must be a non-empty string.")
        return v


# --- Endpoints ---

@router.post("/collect", status_code=201)
async def collect_event(
    payload: CollectEventRequest,
    request: Request,
    auth: AuthContext = Depends(require_api_key),
    db: AsyncSession = Depends(get_db),
):
    event_id = new_id()
    event = Event(
        id=event_id,
        app_id=auth.app_id,
        api_key_id=auth.api_key_id,
        event_name=payload.event_name,
        user_id=payload.user_id,
        session_id=payload.session_id,
        device_type=payload.device_type,
        device_model=payload.device_model,
        os_name=payload.os_name,
        os_version=payload.os_version,
        browser_name=payload.browser_name,
        browser_version=payload.browser_version,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        properties=payload.properties,
    )
    if payload.timestamp is not None:
        event.timestamp = payload.timestamp

    with store_errors("collect_event", "Failed to collect event.", app_id=auth.app_id):
        db.add(event)
        await db.commit()

    logger.info("event_collected", event_id=event_id, app_id=auth.app_id,
                event_name=payload.event_name)

    return {
        "success": True,
        "data": {
            "eventId": event_id,
            "message": "Event collected successfully.",
        },
    }


@router.get("/event-summary")
async def event_summary(
    event: str = Query(..., min_length=1),
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    app_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    cache: ResultCache | None = Depends(get_cache),
):
    event = event.strip()
    if not event:
        raise BadRequest("event query parameter is required.")

    settings = get_settings()
    start, end = resolve_date_range(start_date, end_date, default_days=settings.summary_default_days)

    with store_errors("event_summary", "Failed to retrieve event summary.", event_name=event):
        data, cached = await get_event_summary(
            db, cache, event, app_id, start, end, ttl_seconds=settings.cache_ttl_seconds,
        )

    return {"success": True, "data": data, "cached": cached}


@router.get("/user-stats")
async def user_stats(
    user_id: str = Query(..., min_length=1),
    app_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    user_id = user_id.strip()
    if not user_id:
        raise BadRequest("user_id query parameter is required.")

    settings = get_settings()
    with store_errors("user_stats", "Failed to retrieve user statistics.", user_id=user_id):
        data = await get_user_stats(db, user_id, app_id, recent_limit=settings.user_stats_recent_limit)

    return {"success": True, "data": data}

"""
Event aggregation — summaries and per-user stats over the events table.

Event summary (cache-aside):
  1. Resolve the date window (default: last 7 days ending now)
  2. Build a deterministic cache key from (event, app_id | "all", start, end)
  3. Cache hit  → return the cached payload verbatim, cached=True
     (no freshness check beyond the cache TTL)
  4. Cache miss → two queries:
       - counts GROUP BY device_type       (breakdown + total)
       - COUNT(DISTINCT user_id), ungrouped (exact unique users — summing
         per-group distinct counts would double-count users seen on
         several device types)
  5. Best-effort cache write, then return with cached=False

User stats:
  - totals over all the user's events (count, first/last seen)
  - IP of the most recently active IP group (GROUP BY ip, latest first, top 1)
  - the N most recent events
"""

import datetime
import json

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import ResultCache
from app.core.errors import BadRequest, NotFound
from app.models.tables import Event

import structlog

logger = structlog.get_logger()

UNKNOWN_DEVICE = "unknown"
INVALID_DATE_MESSAGE = "Invalid date format. Use ISO 8601 format (YYYY-MM-DD or YYYY-MM-DDTHH:mm:ss)."


# ---------------------------------------------------------------------------
# Date handling
# ---------------------------------------------------------------------------

def parse_iso_datetime(value: str) -> datetime.datetime:
    """Parse an ISO-8601 date or datetime. Naive values are taken as UTC."""
    try:
        parsed = datetime.datetime.fromisoformat(value.strip())
    except (ValueError, AttributeError):
        raise BadRequest(INVALID_DATE_MESSAGE)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed.astimezone(datetime.timezone.utc)


def isoformat_utc(value: datetime.datetime | None) -> str | None:
    """UTC, millisecond precision, trailing Z: 2024-01-01T00:00:00.000Z"""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    value = value.astimezone(datetime.timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def resolve_date_range(
    start: str | None,
    end: str | None,
    now: datetime.datetime | None = None,
    default_days: int = 7,
) -> tuple[datetime.datetime, datetime.datetime]:
    now = now or datetime.datetime.now(datetime.timezone.utc)
    end_dt = parse_iso_datetime(end) if end else now
    start_dt = parse_iso_datetime(start) if start else now - datetime.timedelta(days=default_days)
    return start_dt, end_dt


def summary_cache_key(
    event_name: str,
    app_id: str | None,
    start: datetime.datetime,
    end: datetime.datetime,
) -> str:
    return f"event_summary:{event_name}:{app_id or 'all'}:{isoformat_utc(start)}:{isoformat_utc(end)}"


# ---------------------------------------------------------------------------
# Event summary
# ---------------------------------------------------------------------------

def _event_filters(event_name: str, app_id: str | None, start, end) -> list:
    filters = [
        Event.event_name == event_name,
        Event.timestamp >= start,
        Event.timestamp <= end,
    ]
    if app_id:
        filters.append(Event.app_id == app_id)
    return filters


async def compute_event_summary(
    db: AsyncSession,
    event_name: str,
    app_id: str | None,
    start: datetime.datetime,
    end: datetime.datetime,
) -> dict:
    """Run the breakdown + exact-distinct queries and assemble the payload."""
    filters = _event_filters(event_name, app_id, start, end)

    breakdown_result = await db.execute(
        select(Event.device_type, func.count(Event.id).label("event_count"))
        .where(*filters)
        .group_by(Event.device_type)
        .order_by(func.count(Event.id).desc())
    )
    breakdown = [
        {"device_type": row.device_type or UNKNOWN_DEVICE, "count": int(row.event_count)}
        for row in breakdown_result.all()
    ]

    unique_result = await db.execute(
        select(func.count(Event.user_id.distinct())).where(*filters)
    )
    unique_users = int(unique_result.scalar_one() or 0)

    return {
        "event_name": event_name,
        "app_id": app_id or None,
        "date_range": {
            "start": isoformat_utc(start),
            "end": isoformat_utc(end),
        },
        "summary": {
            "total_count": sum(item["count"] for item in breakdown),
            "unique_users": unique_users,
        },
        "device_breakdown": breakdown,
    }


async def get_event_summary(
    db: AsyncSession,
    cache: ResultCache | None,
    event_name: str,
    app_id: str | None,
    start: datetime.datetime,
    end: datetime.datetime,
    ttl_seconds: int | None = None,
) -> tuple[dict, bool]:
    """Cache-aside read. Returns (payload, served_from_cache)."""
    key = summary_cache_key(event_name, app_id, start, end)

    if cache is not None:
        cached = await cache.get(key)
        if cached:
            try:
                payload = json.loads(cached)
            except ValueError:
                logger.warning("summary_cache_corrupt", key=key)
            else:
                logger.debug("summary_cache_hit", key=key)
                return payload, True

    payload = await compute_event_summary(db, event_name, app_id, start, end)

    if cache is not None:
        await cache.set(key, json.dumps(payload), ttl_seconds)

    logger.info("summary_computed", event_name=event_name, app_id=app_id,
                total=payload["summary"]["total_count"])
    return payload, False


# ---------------------------------------------------------------------------
# User stats
# ---------------------------------------------------------------------------

async def get_user_stats(
    db: AsyncSession,
    user_id: str,
    app_id: str | None,
    recent_limit: int = 10,
) -> dict:
    filters = [Event.user_id == user_id]
    if app_id:
        filters.append(Event.app_id == app_id)

    totals_result = await db.execute(
        select(
            func.count(Event.id).label("total_events"),
            func.min(Event.timestamp).label("first_seen"),
            func.max(Event.timestamp).label("last_seen"),
        ).where(*filters)
    )
    totals = totals_result.one()
    if not totals.total_events:
        raise NotFound("No events found for this user.")

    # Approximation: the IP whose group has the newest event, not a true
    # "last known IP" when several IPs are active at once.
    last_seen = func.max(Event.timestamp).label("last_seen")
    ip_result = await db.execute(
        select(Event.ip_address, last_seen)
        .where(*filters)
        .group_by(Event.ip_address)
        .order_by(desc(last_seen))
        .limit(1)
    )
    ip_row = ip_result.first()

    recent_result = await db.execute(
        select(Event.event_name, Event.timestamp, Event.properties)
        .where(*filters)
        .order_by(Event.timestamp.desc())
        .limit(recent_limit)
    )

    return {
        "user_id": user_id,
        "app_id": app_id or None,
        "total_events": int(totals.total_events),
        "first_seen": isoformat_utc(totals.first_seen),
        "last_seen": isoformat_utc(totals.last_seen),
        "ip_address": ip_row.ip_address if ip_row else None,
        "recent_events": [
            {
                "event_name": row.event_name,
                "timestamp": isoformat_utc(row.timestamp),
                "properties": row.properties,
            }
            for row in recent_result.all()
        ],
    }

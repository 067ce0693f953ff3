"""
Optional Redis cache for query results.

The cache is a capability, not a requirement:
  - no EAE_REDIS_URL       → open_cache() returns None
  - Redis down or flapping → ResultCache.get() returns None, set() returns False
Callers treat both cases as a cache miss. Cache errors never fail a request.
"""

from fastapi import Request
import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.config import Settings

import structlog

logger = structlog.get_logger()

_CACHE_ERRORS = (RedisError, OSError)


class ResultCache:
    """get / set-with-expiry over a redis.asyncio client."""

    def __init__(self, client: redis.Redis, ttl_seconds: int):
        self._client = client
        self.ttl_seconds = ttl_seconds

    async def get(self, key: str) -> str | None:
        try:
            return await self._client.get(key)
        except _CACHE_ERRORS as exc:
            logger.warning("cache_read_failed", key=key, error=str(exc))
            return None

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        try:
            await self._client.setex(key, ttl or self.ttl_seconds, value)
            return True
        except _CACHE_ERRORS as exc:
            logger.warning("cache_write_failed", key=key, error=str(exc))
            return False

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except _CACHE_ERRORS as exc:
            logger.warning("cache_unreachable", error=str(exc))
            return False

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except _CACHE_ERRORS as exc:
            logger.warning("cache_close_failed", error=str(exc))


def _build_client(settings: Settings) -> redis.Redis:
    retry = Retry(
        ExponentialBackoff(cap=settings.cache_backoff_cap_seconds, base=0.1),
        settings.cache_max_retries,
    )
    return redis.from_url(
        settings.redis_url,
        decode_responses=True,
        retry=retry,
        retry_on_error=[RedisConnectionError, RedisTimeoutError],
        socket_connect_timeout=5,
    )


async def open_cache(settings: Settings) -> ResultCache | None:
    if not settings.redis_url:
        logger.info("cache_disabled", reason="no redis_url configured")
        return None

    cache = ResultCache(_build_client(settings), settings.cache_ttl_seconds)
    # Keep the client even if Redis is down right now; it reconnects on use,
    # and until then every read is a miss.
    if await cache.ping():
        logger.info("cache_connected")
    return cache


def get_cache(request: Request) -> ResultCache | None:
    """FastAPI dependency — the process-wide cache, or None when disabled."""
    return getattr(request.app.state, "cache", None)

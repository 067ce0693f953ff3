"""Tests for the optional Redis result cache."""

import asyncio
from unittest.mock import AsyncMock

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.config import Settings
from app.core.cache import ResultCache, open_cache


def _client(**overrides):
    client = AsyncMock()
    client.get = AsyncMock(return_value=None)
    client.setex = AsyncMock(return_value=True)
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    for name, value in overrides.items():
        setattr(client, name, value)
    return client


class TestResultCache:
    def test_get_returns_stored_value(self):
        client = _client(get=AsyncMock(return_value='{"a": 1}'))
        cache = ResultCache(client, ttl_seconds=300)
        assert asyncio.run(cache.get("k")) == '{"a": 1}'
        client.get.assert_awaited_once_with("k")

    def test_set_uses_default_ttl(self):
        client = _client()
        cache = ResultCache(client, ttl_seconds=300)
        assert asyncio.run(cache.set("k", "v")) is True
        client.setex.assert_awaited_once_with("k", 300, "v")

    def test_set_with_explicit_ttl(self):
        client = _client()
        cache = ResultCache(client, ttl_seconds=300)
        asyncio.run(cache.set("k", "v", ttl=30))
        client.setex.assert_awaited_once_with("k", 30, "v")

    def test_read_failure_is_a_miss(self):
        client = _client(get=AsyncMock(side_effect=RedisConnectionError("down")))
        cache = ResultCache(client, ttl_seconds=300)
        assert asyncio.run(cache.get("k")) is None

    def test_write_failure_is_swallowed(self):
        client = _client(setex=AsyncMock(side_effect=RedisTimeoutError("slow")))
        cache = ResultCache(client, ttl_seconds=300)
        assert asyncio.run(cache.set("k", "v")) is False

    def test_socket_errors_are_swallowed(self):
        client = _client(get=AsyncMock(side_effect=OSError("reset")))
        cache = ResultCache(client, ttl_seconds=300)
        assert asyncio.run(cache.get("k")) is None

    def test_ping_failure_reports_false(self):
        client = _client(ping=AsyncMock(side_effect=RedisConnectionError("down")))
        cache = ResultCache(client, ttl_seconds=300)
        assert asyncio.run(cache.ping()) is False

    def test_close_closes_client(self):
        client = _client()
        asyncio.run(ResultCache(client, ttl_seconds=1).close())
        client.aclose.assert_awaited_once()


class TestOpenCache:
    def test_no_url_means_no_cache(self):
        assert asyncio.run(open_cache(Settings(redis_url=""))) is None

    def test_unreachable_redis_still_returns_cache(self, monkeypatch):
        client = _client(ping=AsyncMock(side_effect=RedisConnectionError("down")))
        monkeypatch.setattr("app.core.cache._build_client", lambda settings: client)
        cache = asyncio.run(open_cache(Settings(redis_url="redis://localhost:6390/0", cache_ttl_seconds=42)))
        assert isinstance(cache, ResultCache)
        assert cache.ttl_seconds == 42

    def test_build_client_does_not_connect(self):
        import redis.asyncio as redis
        from app.core.cache import _build_client
        client = _build_client(Settings(redis_url="redis://localhost:6390/0", cache_max_retries=4))
        assert isinstance(client, redis.Redis)

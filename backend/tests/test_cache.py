import asyncio
import logging

import fnmatch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from sportsfeed import cache as cache_module
from sportsfeed.cache import (
    CACHE_TTL,
    DEFAULT_TTL,
    CacheBackend,
    InMemoryCache,
    NullCache,
    RedisCache,
    TieredCache,
    build_cache,
    generate_cache_key,
)
from sportsfeed.config import Settings
from sportsfeed.errors import CacheUnavailableError


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class BrokenBackend(CacheBackend):
    name = "broken"

    async def connect(self) -> None:
        raise CacheUnavailableError("connection refused")

    async def get(self, key: str) -> str | None:
        raise CacheUnavailableError("connection refused")

    async def set(self, key: str, value: str, ttl_seconds: int | None) -> None:
        raise CacheUnavailableError("connection refused")

    async def delete(self, key: str) -> int:
        raise CacheUnavailableError("connection refused")

    async def delete_pattern(self, pattern: str) -> int:
        raise CacheUnavailableError("connection refused")

    async def ping(self) -> None:
        raise CacheUnavailableError("connection refused")


def test_cache_key_parts_are_sanitized() -> None:
    assert generate_cache_key("api", "scores", "nba", "2026-10-18") == "api:scores:nba:2026-10-18"
    assert generate_cache_key("odds", "nba", "us,eu h2h") == "odds:nba:us_eu_h2h"
    assert generate_cache_key("teams") == "teams"


def test_ttl_table() -> None:
    cache = TieredCache(NullCache())
    assert cache.ttl_for("scores") == 30
    assert cache.ttl_for("odds") == 300
    assert cache.ttl_for("standings") == 21600
    assert cache.ttl_for("players") == 604800
    assert cache.ttl_for("news") == 3600
    assert cache.ttl_for("unknown") == DEFAULT_TTL
    assert TieredCache(NullCache(), {"scores": 5}).ttl_for("scores") == 5
    assert CACHE_TTL["scores"] == 30


def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    cache = TieredCache(InMemoryCache(clock=clock))

    async def run() -> None:
        assert await cache.set("scores:nba:1", {"home": 0}, 30)
        clock.now = 29.0
        assert await cache.get("scores:nba:1") == {"home": 0}
        clock.now = 30.0
        assert await cache.get("scores:nba:1") is None

    asyncio.run(run())


def test_pattern_delete_is_scoped() -> None:
    cache = TieredCache(InMemoryCache())

    async def run() -> None:
        for key in ("odds:nba:1", "odds:nba:2", "odds:nfl:1", "scores:nba:1", "api:odds:nba:us"):
            await cache.set(key, {"k": key}, 60)

        deleted = await cache.delete_by_pattern("odds:nba:*")

        assert deleted == 2
        assert await cache.get("odds:nba:1") is None
        assert await cache.get("odds:nfl:1") == {"k": "odds:nfl:1"}
        assert await cache.get("scores:nba:1") == {"k": "scores:nba:1"}
        assert await cache.get("api:odds:nba:us") == {"k": "api:odds:nba:us"}

    asyncio.run(run())


def test_unreachable_backend_fails_open(caplog: pytest.LogCaptureFixture) -> None:
    cache = TieredCache(BrokenBackend())

    async def run() -> None:
        assert await cache.connect() is False
        assert await cache.get("scores:nba:1") is None
        assert await cache.set("scores:nba:1", {"x": 1}) is False
        assert await cache.delete("scores:nba:1") == 0
        assert await cache.delete_by_pattern("scores:*") == 0
        health = await cache.health_check()
        assert health["status"] == "unhealthy"
        assert health["connected"] is False

    with caplog.at_level(logging.WARNING):
        asyncio.run(run())

    assert cache.available is False
    assert "cache degraded to pass-through" in caplog.text


def test_in_memory_health_reports_key_count() -> None:
    cache = TieredCache(InMemoryCache())

    async def run() -> dict:
        await cache.set("news:nba:latest", [1, 2], 60)
        return await cache.health_check()

    health = asyncio.run(run())
    assert health["status"] == "healthy"
    assert health["backend"] == "memory"
    assert health["keys"] == 1


def test_build_cache_selects_backend() -> None:
    assert isinstance(build_cache(Settings(cache_backend="memory")).backend, InMemoryCache)
    assert isinstance(build_cache(Settings(cache_backend="none")).backend, NullCache)
    assert build_cache(Settings(cache_backend="memory", cache_ttl_odds=120)).ttl_for("odds") == 120


class FakeRedis:
    """Stands in for the redis.asyncio client; ``down`` simulates an outage."""

    def __init__(self) -> None:
        self.down = False
        self.data: dict[str, str] = {}
        self.closed = False

    def _check(self) -> None:
        if self.down:
            raise RedisConnectionError("Error 111 connecting to redis:6379. Connection refused.")

    async def ping(self) -> bool:
        self._check()
        return True

    async def get(self, key: str) -> str | None:
        self._check()
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._check()
        self.data[key] = value
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        return sum(1 for key in keys if self.data.pop(key, None) is not None)

    async def scan_iter(self, match: str, count: int):
        self._check()
        for key in [k for k in self.data if fnmatch.fnmatchcase(k, match)]:
            yield key

    async def dbsize(self) -> int:
        self._check()
        return len(self.data)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_redis(monkeypatch: pytest.MonkeyPatch) -> tuple[FakeRedis, list[str]]:
    client = FakeRedis()
    urls: list[str] = []

    def from_url(url: str, **kwargs) -> FakeRedis:
        urls.append(url)
        return client

    monkeypatch.setattr(cache_module.redis, "from_url", from_url)
    return client, urls


def test_redis_outage_at_startup_keeps_client_for_reconnect(fake_redis) -> None:
    client, urls = fake_redis
    client.down = True
    cache = TieredCache(RedisCache("redis://cache:6379/0"))

    async def run() -> None:
        assert await cache.connect() is False
        assert cache.available is False
        assert await cache.get("scores:nba:today") is None

        client.down = False
        assert await cache.set("scores:nba:today", {"games": []}, 60) is True
        assert cache.available is True
        assert await cache.get("scores:nba:today") == {"games": []}
        assert (await cache.health_check())["keys"] == 1

    asyncio.run(run())
    assert urls == ["redis://cache:6379/0"]


def test_redis_pattern_delete_and_close(fake_redis) -> None:
    client, _ = fake_redis
    backend = RedisCache("redis://cache:6379/0", scan_count=2)
    cache = TieredCache(backend)

    async def run() -> int:
        assert await cache.connect() is True
        for key in ("odds:nba:a", "odds:nba:b", "odds:nba:c", "odds:nfl:a"):
            await cache.set(key, 1)
        deleted = await cache.delete_by_pattern("odds:nba:*")
        await cache.close()
        return deleted

    assert asyncio.run(run()) == 3
    assert list(client.data) == ["odds:nfl:a"]
    assert client.closed is True


def test_successful_delete_clears_degraded_state(fake_redis, caplog: pytest.LogCaptureFixture) -> None:
    client, _ = fake_redis
    cache = TieredCache(RedisCache("redis://cache:6379/0"))

    async def run() -> int:
        await cache.set("teams:nba:12", {"id": 1})
        client.down = True
        assert await cache.get("teams:nba:12") is None
        assert cache.available is False
        client.down = False
        return await cache.delete("teams:nba:12")

    with caplog.at_level(logging.INFO):
        assert asyncio.run(run()) == 1

    assert cache.available is True
    assert "cache backend recovered: backend=redis" in caplog.text

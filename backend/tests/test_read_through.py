import asyncio
from datetime import UTC, datetime

import pytest

from sportsfeed.cache import InMemoryCache, TieredCache
from sportsfeed.errors import CircuitOpenError
from sportsfeed.schemas.entities import Scoreboard
from sportsfeed.services.read_through import get_or_fetch, invalidate


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class CountingFetch:
    def __init__(self, value) -> None:
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.value


def test_miss_then_hit_returns_same_shape() -> None:
    cache = TieredCache(InMemoryCache())
    fetch = CountingFetch(
        Scoreboard(sport="nba", league="NBA", last_updated=datetime(2026, 10, 18, tzinfo=UTC))
    )

    async def run():
        first = await get_or_fetch(cache, "scores", "api:scores:nba:today", fetch)
        second = await get_or_fetch(cache, "scores", "api:scores:nba:today", fetch)
        return first, second

    first, second = asyncio.run(run())

    assert first.cached is False
    assert second.cached is True
    assert first.data == second.data
    assert first.data["last_updated"] == "2026-10-18T00:00:00Z"
    assert fetch.calls == 1


def test_bypass_skips_read_but_repopulates() -> None:
    cache = TieredCache(InMemoryCache())
    fetch = CountingFetch({"games": []})

    async def run():
        await get_or_fetch(cache, "scores", "k", fetch)
        bypassed = await get_or_fetch(cache, "scores", "k", fetch, bypass_cache=True)
        after = await get_or_fetch(cache, "scores", "k", fetch)
        return bypassed, after

    bypassed, after = asyncio.run(run())

    assert bypassed.cached is False
    assert after.cached is True
    assert fetch.calls == 2


def test_expired_entry_triggers_exactly_one_fetch() -> None:
    clock = FakeClock()
    cache = TieredCache(InMemoryCache(clock=clock))
    fetch = CountingFetch({"odds": [1]})

    async def run():
        await get_or_fetch(cache, "odds", "api:odds:nba", fetch)
        clock.now = 299.0
        hit = await get_or_fetch(cache, "odds", "api:odds:nba", fetch)
        clock.now = 300.0
        miss = await get_or_fetch(cache, "odds", "api:odds:nba", fetch)
        again = await get_or_fetch(cache, "odds", "api:odds:nba", fetch)
        return hit, miss, again

    hit, miss, again = asyncio.run(run())

    assert hit.cached is True
    assert miss.cached is False
    assert again.cached is True
    assert fetch.calls == 2


def test_explicit_ttl_overrides_category() -> None:
    clock = FakeClock()
    cache = TieredCache(InMemoryCache(clock=clock))
    fetch = CountingFetch([1])

    async def run():
        await get_or_fetch(cache, "players", "api:players:nba:1", fetch, ttl=10)
        clock.now = 10.0
        return await get_or_fetch(cache, "players", "api:players:nba:1", fetch)

    assert asyncio.run(run()).cached is False
    assert fetch.calls == 2


def test_fetch_errors_propagate_and_nothing_is_cached() -> None:
    cache = TieredCache(InMemoryCache())

    async def failing():
        raise CircuitOpenError("espn", retry_after_seconds=12.0)

    with pytest.raises(CircuitOpenError):
        asyncio.run(get_or_fetch(cache, "scores", "api:scores:nba:today", failing))

    assert asyncio.run(cache.get("api:scores:nba:today")) is None


def test_invalidate_returns_deleted_count() -> None:
    cache = TieredCache(InMemoryCache())

    async def run() -> int:
        await cache.set("news:nba:latest", [1], 60)
        await cache.set("news:nba:search", [2], 60)
        await cache.set("news:nfl:latest", [3], 60)
        return await invalidate(cache, "news:nba:*")

    assert asyncio.run(run()) == 2

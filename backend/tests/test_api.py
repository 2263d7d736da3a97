import asyncio
import importlib.util

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from sportsfeed.cache import InMemoryCache, TieredCache
from sportsfeed.data_providers.breaker import CircuitBreaker
from sportsfeed.data_providers.espn import ESPNClient
from sportsfeed.data_providers.odds_api import OddsAPIClient
from sportsfeed.database import Base
from sportsfeed.main import create_app
from sportsfeed.services.aggregator import SportsDataService

NO_WAIT = {"retry_delay": 0, "retry_backoff": 0}


def _handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path.endswith("/scoreboard"):
        return httpx.Response(200, json={"events": []})
    if path.endswith("/teams/404"):
        return httpx.Response(404)
    if path.endswith("/news"):
        return httpx.Response(502)
    if path.endswith("/sports"):
        return httpx.Response(200, json=[])
    return httpx.Response(200, json={})


def _create_schema(database_url: str) -> None:
    async def run() -> None:
        engine = create_async_engine(database_url)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await engine.dispose()

    asyncio.run(run())


def _client(
    espn_breaker: CircuitBreaker | None = None, database_url: str = "sqlite+aiosqlite:///:memory:"
) -> TestClient:
    if importlib.util.find_spec("aiosqlite") is None:
        pytest.skip("aiosqlite not available in this environment")
    engine = create_async_engine(database_url)
    transport = httpx.MockTransport(_handler)
    service = SportsDataService(
        espn=ESPNClient(breaker=espn_breaker, transport=transport, max_retries=0, **NO_WAIT),
        odds_api=OddsAPIClient(api_key="secret", transport=transport, max_retries=0, **NO_WAIT),
        cache=TieredCache(InMemoryCache()),
        session_factory=async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False),
        chunk_pause_seconds=0,
    )
    return TestClient(create_app(service))


def test_scores_cache_headers() -> None:
    with _client() as client:
        first = client.get("/api/v1/scores/nba")
        second = client.get("/api/v1/scores/nba")
        bypassed = client.get("/api/v1/scores/nba", headers={"Cache-Control": "no-cache"})

    assert first.status_code == 200
    assert first.json()["games"] == []
    assert first.headers["X-Cache"] == "MISS"
    assert second.headers["X-Cache"] == "HIT"
    assert bypassed.headers["X-Cache"] == "MISS"


def test_open_circuit_maps_to_503() -> None:
    breaker = CircuitBreaker("espn", threshold=1, reset_timeout=60.0)
    breaker.record_failure()

    with _client(espn_breaker=breaker) as client:
        response = client.get("/api/v1/scores/nba")

    assert response.status_code == 503
    assert response.json()["detail"] == "service degraded, try again shortly"
    assert response.json()["upstream"] == "espn"
    assert "Retry-After" in response.headers


def test_upstream_errors_map_to_http_statuses() -> None:
    with _client() as client:
        missing = client.get("/api/v1/teams/nba/404")
        unknown = client.get("/api/v1/scores/cricket")
        unavailable = client.get("/api/v1/news/nba")

    assert missing.status_code == 404
    assert unknown.status_code == 400
    assert unavailable.status_code == 502


def test_system_endpoints() -> None:
    with _client() as client:
        client.get("/api/v1/scores/nba")
        cleared = client.delete("/api/v1/system/cache/api:scores:*")
        breakers = client.get("/api/v1/system/breakers")
        health = client.get("/api/v1/system/health")
        bad_sync = client.post("/api/v1/system/sync/cricket")

    assert cleared.json() == {"pattern": "api:scores:*", "deleted": 1}
    assert set(breakers.json()) == {"espn", "odds_api"}
    assert breakers.json()["espn"]["phase"] == "closed"
    body = health.json()
    assert body["components"]["espn"]["status"] == "healthy"
    assert body["components"]["cache"]["status"] == "healthy"
    assert body["components"]["database"]["status"] == "healthy"
    assert bad_sync.status_code == 400


def test_store_backed_routes(tmp_path) -> None:
    pytest.importorskip("aiosqlite")
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'feed.db'}"
    _create_schema(database_url)

    with _client(database_url=database_url) as client:
        unknown_game = client.get("/api/v1/odds/game/42")
        books = client.get("/api/v1/sportsbooks", params={"league": "nba"})
        stored_scores = client.get("/api/v1/scores/nba/stored")
        stored_teams = client.get("/api/v1/teams/nba/stored")

    assert unknown_game.status_code == 404
    assert unknown_game.json()["detail"] == "game not found"
    assert books.json() == {"league": "nba", "sportsbooks": []}
    assert books.headers["X-Cache"] == "MISS"
    assert stored_scores.json() == []
    assert stored_teams.json() == {"league": "nba", "teams": []}


def test_missing_schema_maps_to_503() -> None:
    with _client() as client:
        response = client.get("/api/v1/sportsbooks")

    assert response.status_code == 503
    assert response.json()["detail"] == "storage unavailable, try again shortly"

"""Read path orchestration: cache, upstream clients and background persistence.

Upstream responses are cached under ``api:{category}:{league}:...``. Syncs
started from here only clear the entity namespaces (``scores:``, ``odds:``,
...), so the response just cached keeps serving until its TTL runs out.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sportsfeed.cache import TieredCache, build_cache, generate_cache_key
from sportsfeed.config import Settings, settings
from sportsfeed.data_providers.espn import ESPNClient
from sportsfeed.data_providers.odds_api import OddsAPIClient
from sportsfeed.database import AsyncSessionLocal
from sportsfeed.errors import PersistenceError
from sportsfeed.repositories.games import GamesRepository
from sportsfeed.repositories.news import NewsRepository
from sportsfeed.repositories.base import row_to_dict
from sportsfeed.repositories.odds import OddsRepository
from sportsfeed.repositories.teams import TeamsRepository
from sportsfeed.schemas.entities import NewsFeed, OddsBoard, Scoreboard, Team
from sportsfeed.services.background import BackgroundSyncRunner
from sportsfeed.services.read_through import CachedResult, get_or_fetch, invalidate

logger = logging.getLogger(__name__)


class SportsDataService:
    def __init__(
        self,
        *,
        espn: ESPNClient,
        odds_api: OddsAPIClient,
        cache: TieredCache,
        session_factory: async_sessionmaker[AsyncSession],
        background: BackgroundSyncRunner | None = None,
        chunk_size: int | None = None,
        chunk_pause_seconds: float | None = None,
    ) -> None:
        self.espn = espn
        self.odds_api = odds_api
        self.cache = cache
        self.session_factory = session_factory
        self.background = background or BackgroundSyncRunner()

        repo_options = {"chunk_size": chunk_size, "chunk_pause_seconds": chunk_pause_seconds}
        self.teams = TeamsRepository(session_factory, cache, **repo_options)
        self.games = GamesRepository(session_factory, cache, self.teams, **repo_options)
        self.odds = OddsRepository(session_factory, cache, self.teams, self.games, **repo_options)
        self.news = NewsRepository(session_factory, cache, **repo_options)

    @property
    def clients(self) -> tuple[ESPNClient, OddsAPIClient]:
        return (self.espn, self.odds_api)

    async def startup(self) -> None:
        connected = await self.cache.connect()
        logger.info("service startup: cache_backend=%s cache_connected=%s", self.cache.backend.name, connected)

    async def shutdown(self) -> None:
        await self.background.drain(timeout=10)
        for client in self.clients:
            await client.close()
        await self.cache.close()

    # persistence

    async def persist_scoreboard(self, scoreboard: Scoreboard) -> dict[str, Any]:
        teams = await self.teams.sync_from_scoreboard(scoreboard)
        games = await self.games.sync_from_scoreboard(scoreboard)
        return {"teams": teams.as_dict(), "games": games.as_dict()}

    def _schedule(self, coro, description: str) -> None:
        self.background.fire_and_forget(coro, description)

    # read path

    async def get_scores(self, league: str, dates: str | None = None, *, bypass_cache: bool = False) -> CachedResult:
        league = league.lower()
        result = await get_or_fetch(
            self.cache,
            "scores",
            generate_cache_key("api", "scores", league, dates or "today"),
            lambda: self.espn.get_scoreboard(league, dates=dates),
            bypass_cache=bypass_cache,
        )
        if not result.cached:
            scoreboard = Scoreboard.model_validate(result.data)
            if scoreboard.games:
                self._schedule(self.persist_scoreboard(scoreboard), f"persist-scores-{league}")
        return result

    async def get_odds(
        self,
        league: str,
        *,
        regions: str | None = None,
        markets: str | None = None,
        bypass_cache: bool = False,
    ) -> CachedResult:
        league = league.lower()
        result = await get_or_fetch(
            self.cache,
            "odds",
            generate_cache_key(
                "api", "odds", league, regions or settings.odds_api_regions, markets or settings.odds_api_markets
            ),
            lambda: self.odds_api.get_odds(league, regions=regions, markets=markets),
            bypass_cache=bypass_cache,
        )
        if not result.cached:
            board = OddsBoard.model_validate(result.data)
            if board.games:
                self._schedule(self.odds.sync_from_odds_api(board), f"persist-odds-{league}")
        return result

    async def get_news(self, league: str, limit: int = 25, *, bypass_cache: bool = False) -> CachedResult:
        league = league.lower()
        result = await get_or_fetch(
            self.cache,
            "news",
            generate_cache_key("api", "news", league, limit),
            lambda: self.espn.get_news(league, limit=limit),
            bypass_cache=bypass_cache,
        )
        if not result.cached:
            feed = NewsFeed.model_validate(result.data)
            if feed.articles:
                self._schedule(self.news.sync_from_espn(feed), f"persist-news-{league}")
        return result

    async def get_teams(self, league: str, *, bypass_cache: bool = False) -> CachedResult:
        league = league.lower()
        return await get_or_fetch(
            self.cache,
            "teams",
            generate_cache_key("api", "teams", league),
            lambda: self.espn.get_teams(league),
            bypass_cache=bypass_cache,
        )

    async def _stored_team(self, league: str, team_id: str) -> Team | None:
        try:
            row = await self.teams.find_by_external_id(team_id, league)
        except PersistenceError:
            logger.exception("team lookup failed, falling back to upstream: league=%s team_id=%s", league, team_id)
            return None
        if row is None:
            return None
        return Team(
            external_id=row.external_id,
            sport=row.sport,
            league=row.league,
            name=row.name,
            abbreviation=row.abbreviation,
            location=row.location,
            logo_url=row.logo_url,
            color=row.color,
            alternate_color=row.alternate_color,
            last_updated=row.updated_at,
        )

    async def get_team(self, league: str, team_id: str, *, bypass_cache: bool = False) -> CachedResult:
        league = league.lower()

        async def fetch() -> Team:
            stored = await self._stored_team(league, team_id)
            if stored is not None:
                return stored
            return await self.espn.get_team(league, team_id)

        return await get_or_fetch(
            self.cache,
            "teams",
            generate_cache_key("api", "teams", league, team_id),
            fetch,
            bypass_cache=bypass_cache,
        )

    async def get_player(self, league: str, player_id: str, *, bypass_cache: bool = False) -> CachedResult:
        league = league.lower()
        return await get_or_fetch(
            self.cache,
            "players",
            generate_cache_key("api", "players", league, player_id),
            lambda: self.espn.get_player(league, player_id),
            bypass_cache=bypass_cache,
        )

    async def get_best_odds(self, league: str, *, bypass_cache: bool = False) -> CachedResult:
        league = league.lower()
        return await get_or_fetch(
            self.cache,
            "odds",
            generate_cache_key("odds", league, "best"),
            lambda: self.odds.get_best_odds_for_sport(league),
            bypass_cache=bypass_cache,
        )

    async def get_game_odds(self, game_id: int, *, bypass_cache: bool = False) -> CachedResult | None:
        """Stored lines for one game grouped by market, or None for an unknown game."""
        game = await self.games.find_by_id(game_id)
        if game is None:
            return None

        async def fetch() -> dict[str, Any]:
            return {"game": row_to_dict(game), "markets": await self.odds.get_aggregated(game.id)}

        return await get_or_fetch(
            self.cache,
            "odds",
            generate_cache_key("odds", game.sport, "game", game.id),
            fetch,
            bypass_cache=bypass_cache,
        )

    async def get_sportsbooks(self, league: str | None = None, *, bypass_cache: bool = False) -> CachedResult:
        league = league.lower() if league else None

        async def fetch() -> dict[str, Any]:
            return {"league": league, "sportsbooks": await self.odds.list_sportsbooks(league)}

        return await get_or_fetch(
            self.cache,
            "odds",
            generate_cache_key("odds", league or "all", "sportsbooks"),
            fetch,
            bypass_cache=bypass_cache,
        )

    async def get_stored_scores(self, league: str, *, bypass_cache: bool = False) -> CachedResult:
        return await self.games.get_scoreboard_cached(league.lower(), bypass_cache=bypass_cache)

    async def get_stored_teams(self, league: str) -> list[dict[str, Any]]:
        return await self.teams.list_cached(league.lower())

    # operations

    def breakers(self) -> dict[str, Any]:
        return {client.name: client.breaker.snapshot() for client in self.clients}

    async def invalidate(self, pattern: str) -> int:
        return await invalidate(self.cache, pattern)

    async def _database_health(self) -> dict[str, Any]:
        started = time.perf_counter()
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("database health check failed: error=%s", exc)
            return {"status": "unhealthy", "message": str(exc)}
        return {"status": "healthy", "latency_ms": round((time.perf_counter() - started) * 1000, 1)}

    async def health(self) -> dict[str, Any]:
        espn, odds_api, cache, database = await asyncio.gather(
            self.espn.health_check(),
            self.odds_api.health_check(),
            self.cache.health_check(),
            self._database_health(),
        )
        components = {"espn": espn, "odds_api": odds_api, "cache": cache, "database": database}
        healthy = all(component["status"] == "healthy" for component in components.values())
        return {
            "status": "healthy" if healthy else "degraded",
            "components": components,
            "background_tasks": self.background.pending,
        }


def build_service(
    config: Settings = settings, session_factory: async_sessionmaker[AsyncSession] | None = None
) -> SportsDataService:
    return SportsDataService(
        espn=ESPNClient(),
        odds_api=OddsAPIClient(),
        cache=build_cache(config),
        session_factory=session_factory or AsyncSessionLocal,
        chunk_size=config.sync_chunk_size,
        chunk_pause_seconds=config.sync_chunk_pause_seconds,
    )

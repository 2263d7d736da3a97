from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from sportsfeed.cache import TieredCache, generate_cache_key
from sportsfeed.errors import PersistenceError
from sportsfeed.models.game import Game
from sportsfeed.models.team import Team
from sportsfeed.repositories.base import BaseRepository, SyncResult, row_to_dict
from sportsfeed.repositories.teams import TeamsRepository
from sportsfeed.schemas.entities import Game as GameEntity
from sportsfeed.schemas.entities import Scoreboard
from sportsfeed.services.read_through import CachedResult, get_or_fetch

logger = logging.getLogger(__name__)

MATCHUP_WINDOW = timedelta(hours=12)


def game_record(game: GameEntity, home_team_id: int, away_team_id: int) -> dict[str, Any]:
    return {
        "external_id": game.external_id,
        "sport": game.sport,
        "league": game.league,
        "home_team_id": home_team_id,
        "away_team_id": away_team_id,
        "home_score": game.home_team.score,
        "away_score": game.away_team.score,
        "status": game.status.state,
        "status_detail": game.status.detail,
        "period": game.status.period,
        "clock": game.status.clock,
        "start_time": game.start_time,
        "venue": game.venue,
        "broadcast": game.broadcast,
    }


class GamesRepository(BaseRepository[Game]):
    """Games keyed by provider event id.

    Live rows are overwritten on every sync; a row stored as final is never
    modified again.
    """

    model = Game

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: TieredCache,
        teams: TeamsRepository,
        **kwargs: Any,
    ) -> None:
        super().__init__(session_factory, cache, **kwargs)
        self.teams = teams

    def _update_guard(self):
        return Game.__table__.c.status != "final"

    async def _by_status(self, sport: str, status: str, *, descending: bool, limit: int | None) -> list[Game]:
        return await self.find_where(
            {"sport": sport, "status": status}, order_by="start_time", descending=descending, limit=limit
        )

    async def get_live(self, sport: str) -> list[Game]:
        return await self._by_status(sport, "live", descending=False, limit=None)

    async def get_completed(self, sport: str, limit: int = 50) -> list[Game]:
        return await self._by_status(sport, "final", descending=True, limit=limit)

    async def find_matchup(
        self, sport: str, home_team_id: int, away_team_id: int, start_time: datetime | None
    ) -> Game | None:
        stmt = select(Game).where(
            Game.sport == sport,
            Game.home_team_id == home_team_id,
            Game.away_team_id == away_team_id,
        )
        if start_time is not None:
            stmt = stmt.where(
                Game.start_time >= start_time - MATCHUP_WINDOW,
                Game.start_time <= start_time + MATCHUP_WINDOW,
            )
        stmt = stmt.order_by(Game.start_time.desc()).limit(1)
        return await self._scalar(stmt)

    async def sync_from_scoreboard(self, scoreboard: Scoreboard) -> SyncResult:
        """Resolve both teams of every game, then write the game rows."""
        team_ids: dict[str, int] = {}
        records: list[dict[str, Any]] = []
        unresolved = 0
        for game in scoreboard.games:
            try:
                for ref in (game.home_team, game.away_team):
                    if ref.external_id not in team_ids:
                        team = await self.teams.get_or_create(ref, game.sport)
                        team_ids[ref.external_id] = team["id"]
            except (PersistenceError, SQLAlchemyError):
                unresolved += 1
                logger.exception(
                    "could not resolve teams for game: sport=%s external_id=%s", game.sport, game.external_id
                )
                continue
            records.append(
                game_record(game, team_ids[game.home_team.external_id], team_ids[game.away_team.external_id])
            )

        result = await self.bulk_upsert(records)
        result = SyncResult(
            successful=result.successful,
            failed=result.failed + unresolved,
            total=len(scoreboard.games),
        )
        if result.successful:
            await self._clear_cache(
                generate_cache_key("scores", scoreboard.sport) + ":*",
                generate_cache_key("games", scoreboard.sport) + ":*",
            )
        logger.info(
            "games sync complete: sport=%s successful=%s failed=%s total=%s",
            scoreboard.sport,
            result.successful,
            result.failed,
            result.total,
        )
        return result

    async def stored_scoreboard(self, sport: str, now: datetime | None = None) -> list[dict[str, Any]]:
        """Games around today (plus anything still live) joined with team names."""
        now = now or datetime.now(UTC)
        home = aliased(Team)
        away = aliased(Team)
        stmt = (
            select(Game, home.name, away.name)
            .join(home, Game.home_team_id == home.id)
            .join(away, Game.away_team_id == away.id)
            .where(
                Game.sport == sport,
                or_(
                    Game.status == "live",
                    Game.start_time.between(now - timedelta(days=1), now + timedelta(days=1)),
                ),
            )
            .order_by(Game.start_time)
        )
        games = []
        for game, home_name, away_name in await self._rows(stmt):
            data = row_to_dict(game)
            data["home_team_name"] = home_name
            data["away_team_name"] = away_name
            games.append(data)
        return games

    async def get_scoreboard_cached(self, sport: str, *, bypass_cache: bool = False) -> CachedResult:
        return await get_or_fetch(
            self.cache,
            "scores",
            generate_cache_key("scores", sport, "stored"),
            lambda: self.stored_scoreboard(sport),
            bypass_cache=bypass_cache,
        )

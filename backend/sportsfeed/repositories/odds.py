from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sportsfeed.cache import TieredCache, generate_cache_key
from sportsfeed.errors import PersistenceError
from sportsfeed.models.game import Game
from sportsfeed.models.odds import MARKET_TYPES, Odds
from sportsfeed.repositories.base import BaseRepository, SyncResult, row_to_dict
from sportsfeed.repositories.games import GamesRepository
from sportsfeed.repositories.teams import TeamsRepository
from sportsfeed.schemas.entities import OddsBoard, OddsEvent
from sportsfeed.services.odds_normalizer import build_odds_rows

logger = logging.getLogger(__name__)


class OddsRepository(BaseRepository[Odds]):
    """Current line per (game, sportsbook, market type). Re-syncs overwrite in place."""

    model = Odds
    conflict_columns = ("game_id", "sportsbook", "market_type")
    immutable_columns = frozenset({"id", "created_at"})

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: TieredCache,
        teams: TeamsRepository,
        games: GamesRepository,
        **kwargs: Any,
    ) -> None:
        super().__init__(session_factory, cache, **kwargs)
        self.teams = teams
        self.games = games

    async def get_by_game(self, game_id: int) -> list[Odds]:
        return await self.find_where({"game_id": game_id}, order_by="sportsbook")

    async def find_specific(self, game_id: int, sportsbook: str, market_type: str) -> Odds | None:
        stmt = select(Odds).where(
            Odds.game_id == game_id, Odds.sportsbook == sportsbook, Odds.market_type == market_type
        )
        return await self._scalar(stmt)

    async def get_best_odds(self, game_id: int, market_type: str = "moneyline") -> dict[str, Any] | None:
        """Best price per side across sportsbooks; higher american price pays more."""
        rows = await self.find_where({"game_id": game_id, "market_type": market_type})
        if not rows:
            return None

        if market_type == "total":
            sides = {"over": ("over_price", "total_over"), "under": ("under_price", "total_under")}
        else:
            sides = {"home": ("home_price", "home_spread"), "away": ("away_price", "away_spread")}

        best: dict[str, Any] = {"game_id": game_id, "market_type": market_type}
        for side, (price_attr, point_attr) in sides.items():
            priced = [row for row in rows if getattr(row, price_attr) is not None]
            if not priced:
                best[side] = None
                continue
            top = max(priced, key=lambda row: getattr(row, price_attr))
            best[side] = {
                "sportsbook": top.sportsbook,
                "price": getattr(top, price_attr),
                "point": getattr(top, point_attr),
            }
        return best

    async def get_aggregated(self, game_id: int) -> dict[str, list[dict[str, Any]]]:
        aggregated: dict[str, list[dict[str, Any]]] = {market: [] for market in MARKET_TYPES}
        for row in await self.get_by_game(game_id):
            aggregated.setdefault(row.market_type, []).append(row_to_dict(row))
        return aggregated

    async def list_sportsbooks(self, sport: str | None = None) -> list[str]:
        stmt = select(Odds.sportsbook).distinct().order_by(Odds.sportsbook)
        if sport:
            stmt = stmt.join(Game, Odds.game_id == Game.id).where(Game.sport == sport)
        return await self._scalars(stmt)

    async def get_best_odds_for_sport(self, sport: str) -> list[dict[str, Any]]:
        """Best lines for every game of a sport that still has odds stored."""
        stmt = select(Game).where(Game.sport == sport, Game.status != "final").order_by(Game.start_time)
        games = await self._scalars(stmt)

        board = []
        for game in games:
            markets = {}
            for market_type in MARKET_TYPES:
                best = await self.get_best_odds(game.id, market_type)
                if best is not None:
                    markets[market_type] = best
            if markets:
                board.append({"game": row_to_dict(game), "best": markets})
        return board

    async def _resolve_game(self, event: OddsEvent) -> Game:
        sport = event.sport
        home = await self.teams.get_or_create_by_name(event.home_team, sport)
        away = await self.teams.get_or_create_by_name(event.away_team, sport)

        game = await self.games.find_by_external_id(event.external_id)
        if game is None:
            game = await self.games.find_matchup(sport, home["id"], away["id"], event.commence_time)
        if game is None:
            game = await self.games.upsert(
                {
                    "external_id": event.external_id,
                    "sport": sport,
                    "league": event.league,
                    "home_team_id": home["id"],
                    "away_team_id": away["id"],
                    "status": "scheduled",
                    "start_time": event.commence_time,
                }
            )
            logger.info("created game from odds: sport=%s external_id=%s", sport, event.external_id)
        return game

    async def upsert_event(self, event: OddsEvent) -> int:
        game = await self._resolve_game(event)
        rows = build_odds_rows(event)
        for row in rows:
            row["game_id"] = game.id
        result = await self.bulk_upsert(rows)
        if result.failed:
            raise PersistenceError(f"odds rows failed for event {event.external_id}: {result.failed}")
        return result.successful

    async def sync_from_odds_api(self, board: OddsBoard) -> SyncResult:
        """Write every event of an odds board; counts are per event."""
        successful = 0
        failed = 0
        for event in board.games:
            try:
                await self.upsert_event(event)
            except (PersistenceError, SQLAlchemyError):
                failed += 1
                logger.exception("odds event sync failed: sport=%s external_id=%s", event.sport, event.external_id)
                continue
            successful += 1

        result = SyncResult(successful=successful, failed=failed, total=len(board.games))
        if result.successful:
            await self._clear_cache(generate_cache_key("odds", board.sport) + ":*")
        logger.info(
            "odds sync complete: sport=%s successful=%s failed=%s total=%s requests_remaining=%s",
            board.sport,
            result.successful,
            result.failed,
            result.total,
            board.requests_remaining,
        )
        return result

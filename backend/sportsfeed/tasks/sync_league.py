from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from sportsfeed.errors import PersistenceError, UpstreamError
from sportsfeed.repositories.base import SyncResult
from sportsfeed.services.aggregator import SportsDataService

logger = logging.getLogger(__name__)


def _failed_run(category: str, league: str, exc: Exception) -> dict[str, Any]:
    logger.error("sync failed: category=%s league=%s error=%s", category, league, exc)
    return {"status": "failed", "error": str(exc), "error_type": type(exc).__name__}


def _completed_run(result: SyncResult, **extra: Any) -> dict[str, Any]:
    return {"status": "ok", **result.as_dict(), **extra}


async def sync_scores(service: SportsDataService, league: str) -> dict[str, Any]:
    try:
        scoreboard = await service.espn.get_scoreboard(league)
        persisted = await service.persist_scoreboard(scoreboard)
    except (UpstreamError, PersistenceError, SQLAlchemyError) as exc:
        return _failed_run("scores", league, exc)
    games = SyncResult(**persisted["games"])
    return _completed_run(games, teams=persisted["teams"])


async def sync_odds(service: SportsDataService, league: str) -> dict[str, Any]:
    try:
        board = await service.odds_api.get_odds(league)
        result = await service.odds.sync_from_odds_api(board)
    except (UpstreamError, PersistenceError, SQLAlchemyError) as exc:
        return _failed_run("odds", league, exc)
    return _completed_run(result, requests_remaining=board.requests_remaining)


async def sync_news(service: SportsDataService, league: str) -> dict[str, Any]:
    try:
        feed = await service.espn.get_news(league)
        result = await service.news.sync_from_espn(feed)
    except (UpstreamError, PersistenceError, SQLAlchemyError) as exc:
        return _failed_run("news", league, exc)
    return _completed_run(result)


async def sync_league(service: SportsDataService, league: str) -> dict[str, Any]:
    """Scores first so odds can attach to games ESPN already knows about."""
    league = league.lower()
    summary = {
        "league": league,
        "scores": await sync_scores(service, league),
        "odds": await sync_odds(service, league),
        "news": await sync_news(service, league),
    }
    logger.info(
        "league sync complete: league=%s scores=%s odds=%s news=%s",
        league,
        summary["scores"]["status"],
        summary["odds"]["status"],
        summary["news"]["status"],
    )
    return summary


async def cleanup_news(service: SportsDataService, days_to_keep: int) -> int:
    try:
        return await service.news.cleanup(days_to_keep)
    except PersistenceError:
        logger.exception("news cleanup failed: days_to_keep=%s", days_to_keep)
        return 0

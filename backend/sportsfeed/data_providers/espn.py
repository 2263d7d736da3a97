from __future__ import annotations

from typing import Any

import httpx

from sportsfeed.config import settings
from sportsfeed.data_providers.base import UpstreamClient
from sportsfeed.data_providers.breaker import CircuitBreaker
from sportsfeed.data_providers.leagues import SUPPORTED_LEAGUES, LeagueConfig, get_league
from sportsfeed.errors import UpstreamTerminalError
from sportsfeed.schemas.entities import NewsFeed, Player, Scoreboard, Team
from sportsfeed.services import espn_normalizer

HEALTH_PATH = "/football/nfl/scoreboard"


class ESPNClient(UpstreamClient):
    """Scores, news, teams and players from ESPN's public site API."""

    name = "espn"

    def __init__(
        self,
        *,
        breaker: CircuitBreaker | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **overrides: Any,
    ) -> None:
        options: dict[str, Any] = {
            "base_url": settings.espn_base_url,
            "timeout": settings.espn_timeout_seconds,
            "max_retries": settings.espn_max_retries,
            "retry_delay": settings.espn_retry_delay_seconds,
            "retry_backoff": settings.espn_retry_backoff_seconds,
        }
        options.update(overrides)
        super().__init__(
            breaker=breaker
            or CircuitBreaker(
                self.name,
                threshold=settings.espn_breaker_threshold,
                reset_timeout=settings.espn_breaker_reset_seconds,
            ),
            transport=transport,
            **options,
        )

    def _league(self, league: str) -> LeagueConfig:
        config = get_league(league)
        if config is None:
            raise UpstreamTerminalError(
                self.name, f"invalid league '{league}', supported: {', '.join(SUPPORTED_LEAGUES)}"
            )
        return config

    async def get_scoreboard(self, league: str, *, dates: str | None = None, limit: int | None = None) -> Scoreboard:
        config = self._league(league)
        params: dict[str, Any] = {}
        if dates:
            params["dates"] = dates
        if limit:
            params["limit"] = limit
        return await self.fetch(
            f"/{config.espn_path}/scoreboard",
            params,
            parse=lambda data: espn_normalizer.normalize_scoreboard(data, config.code),
        )

    async def get_teams(self, league: str) -> list[Team]:
        config = self._league(league)
        return await self.fetch(
            f"/{config.espn_path}/teams", parse=lambda data: espn_normalizer.normalize_teams(data, config.code)
        )

    async def get_team(self, league: str, team_id: str) -> Team:
        config = self._league(league)
        return await self.fetch(
            f"/{config.espn_path}/teams/{team_id}",
            parse=lambda data: espn_normalizer.normalize_team(data, config.code),
        )

    async def get_player(self, league: str, player_id: str) -> Player:
        config = self._league(league)
        return await self.fetch(
            f"/{config.espn_path}/athletes/{player_id}",
            parse=lambda data: espn_normalizer.normalize_player(data, config.code),
        )

    async def get_news(self, league: str, limit: int = 25) -> NewsFeed:
        config = self._league(league)
        return await self.fetch(
            f"/{config.espn_path}/news",
            {"limit": limit},
            parse=lambda data: espn_normalizer.normalize_news(data, config.code),
        )

    async def health_check(self) -> dict[str, Any]:
        return await self._health_request(HEALTH_PATH, {"limit": 1})

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from sportsfeed.config import settings
from sportsfeed.data_providers.base import UpstreamClient
from sportsfeed.data_providers.breaker import CircuitBreaker
from sportsfeed.data_providers.leagues import SUPPORTED_LEAGUES, get_league
from sportsfeed.errors import UpstreamTerminalError
from sportsfeed.schemas.entities import OddsBoard
from sportsfeed.services.odds_normalizer import normalize_odds_board


class OddsAPIClient(UpstreamClient):
    """Betting odds from The Odds API v4.

    The breaker is stricter than ESPN's: the provider has a tight quota and
    every call costs credits.
    """

    name = "odds_api"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        breaker: CircuitBreaker | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **overrides: Any,
    ) -> None:
        options: dict[str, Any] = {
            "base_url": settings.odds_api_base_url,
            "timeout": settings.odds_api_timeout_seconds,
            "max_retries": settings.odds_api_max_retries,
            "retry_delay": settings.odds_api_retry_delay_seconds,
            "retry_backoff": settings.odds_api_retry_backoff_seconds,
        }
        options.update(overrides)
        super().__init__(
            breaker=breaker
            or CircuitBreaker(
                self.name,
                threshold=settings.odds_api_breaker_threshold,
                reset_timeout=settings.odds_api_breaker_reset_seconds,
            ),
            transport=transport,
            **options,
        )
        self.api_key = settings.odds_api_key if api_key is None else api_key
        self.requests_remaining: int | None = None

    def _default_params(self) -> dict[str, Any]:
        return {"apiKey": self.api_key}

    def _on_response(self, response: httpx.Response) -> None:
        remaining = response.headers.get("x-requests-remaining")
        if remaining and remaining.isdigit():
            self.requests_remaining = int(remaining)

    def _require_key(self) -> None:
        if not self.api_key:
            raise UpstreamTerminalError(self.name, "odds api key is not configured")

    def _league_key(self, league: str) -> str:
        config = get_league(league)
        if config is None:
            raise UpstreamTerminalError(
                self.name, f"invalid league '{league}', supported: {', '.join(SUPPORTED_LEAGUES)}"
            )
        return config.odds_key

    async def get_odds(
        self,
        league: str,
        *,
        regions: str | None = None,
        markets: str | None = None,
        odds_format: str = "american",
        bookmakers: str | None = None,
        commence_time_from: datetime | None = None,
        commence_time_to: datetime | None = None,
    ) -> OddsBoard:
        sport_key = self._league_key(league)
        self._require_key()
        params: dict[str, Any] = {
            "regions": regions or settings.odds_api_regions,
            "markets": markets or settings.odds_api_markets,
            "oddsFormat": odds_format,
        }
        if bookmakers:
            params["bookmakers"] = bookmakers
        if commence_time_from:
            params["commenceTimeFrom"] = commence_time_from.strftime("%Y-%m-%dT%H:%M:%SZ")
        if commence_time_to:
            params["commenceTimeTo"] = commence_time_to.strftime("%Y-%m-%dT%H:%M:%SZ")

        return await self.fetch(
            f"/sports/{sport_key}/odds",
            params,
            parse=lambda data: normalize_odds_board(data, league.lower(), self.requests_remaining),
        )

    async def health_check(self) -> dict[str, Any]:
        if not self.api_key:
            return {
                "status": "unhealthy",
                "latency_ms": None,
                "breaker_open": self.breaker.is_open,
                "breaker": self.breaker.snapshot(),
                "message": "odds api key is not configured",
            }
        # /sports does not count against the usage quota
        return await self._health_request("/sports")

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine.url import URL, make_url


class Settings(BaseSettings):
    app_name: str = "SportsFeed"
    log_level: str = "INFO"
    database_url: str = "postgresql+asyncpg://postgres:postgres@db:5432/sportsfeed"

    # cache
    cache_backend: str = "redis"  # redis | memory | none
    redis_url: str = "redis://redis:6379/0"
    redis_socket_timeout_seconds: float = 2.0
    cache_ttl_scores: int = 30
    cache_ttl_odds: int = 300
    cache_ttl_standings: int = 21600
    cache_ttl_teams: int = 86400
    cache_ttl_players: int = 604800
    cache_ttl_news: int = 3600

    # ESPN (scores, news, teams, players)
    espn_base_url: str = "https://site.api.espn.com/apis/site/v2/sports"
    espn_timeout_seconds: float = 10.0
    espn_max_retries: int = 3
    espn_retry_delay_seconds: float = 1.0
    espn_retry_backoff_seconds: float = 0.0
    espn_breaker_threshold: int = 5
    espn_breaker_reset_seconds: float = 30.0

    # The Odds API
    odds_api_key: str = ""
    odds_api_base_url: str = "https://api.the-odds-api.com/v4"
    odds_api_regions: str = "us"
    odds_api_markets: str = "h2h,spreads,totals"
    odds_api_timeout_seconds: float = 10.0
    odds_api_max_retries: int = 2
    odds_api_retry_delay_seconds: float = 1.0
    odds_api_retry_backoff_seconds: float = 0.5
    odds_api_breaker_threshold: int = 3
    odds_api_breaker_reset_seconds: float = 60.0

    # persistence / sync
    sync_chunk_size: int = 100
    sync_chunk_pause_seconds: float = 0.1
    sync_leagues: str = "nfl,nba,mlb,nhl"
    sync_interval_seconds: int = 300
    news_retention_days: int = 30

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    def cache_ttl_overrides(self) -> dict[str, int]:
        return {
            "scores": self.cache_ttl_scores,
            "odds": self.cache_ttl_odds,
            "standings": self.cache_ttl_standings,
            "teams": self.cache_ttl_teams,
            "players": self.cache_ttl_players,
            "news": self.cache_ttl_news,
        }

    def sync_league_list(self) -> list[str]:
        return [league.strip().lower() for league in self.sync_leagues.split(",") if league.strip()]


settings = Settings()


def get_database_url() -> str:
    return settings.database_url


def get_database_identity() -> tuple[str, str]:
    parsed: URL = make_url(get_database_url())
    return parsed.host or "<unknown>", parsed.database or "<unknown>"

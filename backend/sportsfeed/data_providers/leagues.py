from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LeagueConfig:
    code: str
    name: str
    espn_path: str
    odds_key: str


LEAGUES: dict[str, LeagueConfig] = {
    "nfl": LeagueConfig("nfl", "NFL", "football/nfl", "americanfootball_nfl"),
    "nba": LeagueConfig("nba", "NBA", "basketball/nba", "basketball_nba"),
    "mlb": LeagueConfig("mlb", "MLB", "baseball/mlb", "baseball_mlb"),
    "nhl": LeagueConfig("nhl", "NHL", "hockey/nhl", "icehockey_nhl"),
    "ncaaf": LeagueConfig("ncaaf", "NCAAF", "football/college-football", "americanfootball_ncaaf"),
    "ncaab": LeagueConfig("ncaab", "NCAAB", "basketball/mens-college-basketball", "basketball_ncaab"),
}

SUPPORTED_LEAGUES = tuple(LEAGUES)


def get_league(code: str | None) -> LeagueConfig | None:
    if not code:
        return None
    return LEAGUES.get(code.strip().lower())


def league_name(code: str) -> str:
    config = get_league(code)
    return config.name if config else code.upper()

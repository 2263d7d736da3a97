"""Map ESPN site-API payloads onto the canonical entity shapes.

A payload whose top level has the wrong shape raises ``UpstreamTerminalError``.
Malformed entries inside an otherwise valid payload are skipped with a warning.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from sportsfeed.data_providers.leagues import league_name
from sportsfeed.errors import UpstreamTerminalError
from sportsfeed.schemas.entities import (
    Game,
    GameStatus,
    NewsArticle,
    NewsFeed,
    Player,
    Scoreboard,
    Team,
    TeamRef,
)

logger = logging.getLogger(__name__)

ESPN_STATE_MAP = {"pre": "scheduled", "in": "live", "post": "final"}


def _malformed(kind: str, data: Any) -> UpstreamTerminalError:
    return UpstreamTerminalError("espn", f"malformed {kind} payload: unexpected {type(data).__name__}")


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _objects(items: Any, kind: str, league: str) -> list[dict[str, Any]]:
    if not isinstance(items, list):
        return []
    kept = [item for item in items if isinstance(item, dict)]
    if len(kept) != len(items):
        logger.warning(
            "skipping malformed ESPN %s entries: league=%s skipped=%s", kind, league, len(items) - len(kept)
        )
    return kept


def _first(items: Any) -> dict[str, Any]:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}


def _str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def parse_datetime(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def map_state(state: str | None) -> str:
    return ESPN_STATE_MAP.get((state or "").lower(), "scheduled")


def normalize_team_ref(competitor: dict[str, Any] | None) -> TeamRef | None:
    if not competitor:
        return None
    team = _as_dict(competitor.get("team"))
    external_id = _str_or_none(team.get("id"))
    if external_id is None:
        return None
    return TeamRef(
        external_id=external_id,
        name=team.get("displayName") or team.get("name"),
        abbreviation=team.get("abbreviation"),
        location=team.get("location"),
        logo_url=team.get("logo") or _first(team.get("logos")).get("href"),
        color=team.get("color"),
        alternate_color=team.get("alternateColor"),
        score=to_int(competitor.get("score")),
        record=_first(competitor.get("records")).get("summary"),
    )


def normalize_status(raw: Any) -> GameStatus:
    raw = _as_dict(raw)
    status_type = _as_dict(raw.get("type"))
    state = map_state(status_type.get("state"))
    return GameStatus(
        state=state,
        name=status_type.get("name"),
        detail=status_type.get("detail"),
        period=to_int(raw.get("period")),
        clock=raw.get("displayClock") or status_type.get("shortDetail"),
        completed=state == "final",
    )


def normalize_game(event: dict[str, Any], league: str, now: datetime | None = None) -> Game | None:
    now = now or datetime.now(UTC)
    competition = _first(event.get("competitions"))
    competitors = _objects(competition.get("competitors"), "competitor", league)
    home = normalize_team_ref(next((c for c in competitors if c.get("homeAway") == "home"), None))
    away = normalize_team_ref(next((c for c in competitors if c.get("homeAway") == "away"), None))
    external_id = _str_or_none(event.get("id"))
    if external_id is None or home is None or away is None:
        logger.warning("skipping ESPN event without id or teams: league=%s event_id=%s", league, event.get("id"))
        return None

    broadcasts = _first(competition.get("broadcasts")).get("names")
    return Game(
        external_id=external_id,
        sport=league,
        league=league_name(league),
        home_team=home,
        away_team=away,
        status=normalize_status(event.get("status") or competition.get("status")),
        start_time=parse_datetime(event.get("date") or competition.get("date")),
        venue=_as_dict(competition.get("venue")).get("fullName"),
        broadcast=broadcasts[0] if isinstance(broadcasts, list) and broadcasts else None,
        last_updated=now,
    )


def normalize_scoreboard(data: Any, league: str) -> Scoreboard:
    if not isinstance(data, dict):
        raise _malformed("scoreboard", data)
    events = data.get("events")
    if events is not None and not isinstance(events, list):
        raise _malformed("scoreboard events", events)

    now = datetime.now(UTC)
    games = [normalize_game(event, league, now) for event in _objects(events, "event", league)]
    return Scoreboard(
        sport=league, league=league_name(league), last_updated=now, games=[game for game in games if game]
    )


def normalize_team(data: Any, league: str) -> Team:
    if not isinstance(data, dict):
        raise _malformed("team", data)
    team = _as_dict(data.get("team")) or data
    links = [link.get("href") for link in team.get("links") or [] if isinstance(link, dict) and link.get("href")]
    return Team(
        external_id=str(team.get("id", "")),
        sport=league,
        league=league_name(league),
        name=team.get("displayName") or team.get("name"),
        abbreviation=team.get("abbreviation"),
        location=team.get("location"),
        logo_url=_first(team.get("logos")).get("href") or team.get("logo"),
        color=team.get("color"),
        alternate_color=team.get("alternateColor"),
        links=links,
        last_updated=datetime.now(UTC),
    )


def normalize_teams(data: Any, league: str) -> list[Team]:
    if not isinstance(data, dict):
        raise _malformed("teams", data)
    league_block = _first(_first(data.get("sports")).get("leagues"))
    teams = []
    for entry in _objects(league_block.get("teams"), "team", league):
        team = normalize_team(entry, league)
        if team.external_id:
            teams.append(team)
    return teams


def normalize_player(data: Any, league: str) -> Player:
    if not isinstance(data, dict):
        raise _malformed("athlete", data)
    athlete = _as_dict(data.get("athlete")) or data
    team = _as_dict(athlete.get("team"))
    team_ref = None
    if team.get("id") is not None:
        team_ref = TeamRef(
            external_id=str(team["id"]),
            name=team.get("displayName"),
            abbreviation=team.get("abbreviation"),
        )
    return Player(
        external_id=str(athlete.get("id", "")),
        sport=league,
        name=athlete.get("displayName"),
        first_name=athlete.get("firstName"),
        last_name=athlete.get("lastName"),
        position=_as_dict(athlete.get("position")).get("displayName"),
        jersey_number=_str_or_none(athlete.get("jersey")),
        height=athlete.get("displayHeight"),
        weight=athlete.get("displayWeight"),
        age=to_int(athlete.get("age")),
        headshot_url=_as_dict(athlete.get("headshot")).get("href"),
        team=team_ref,
        last_updated=datetime.now(UTC),
    )


def normalize_news(data: Any, league: str) -> NewsFeed:
    if data is None:
        raise _malformed("news", data)
    raw_articles = data.get("articles") if isinstance(data, dict) else data
    if raw_articles is not None and not isinstance(raw_articles, list):
        raise _malformed("news", raw_articles)

    now = datetime.now(UTC)
    articles: list[NewsArticle] = []
    for article in _objects(raw_articles, "article", league):
        external_id = _str_or_none(article.get("id"))
        headline = article.get("headline")
        if external_id is None or not headline:
            logger.debug("skipping ESPN article without id or headline: league=%s", league)
            continue
        links = _as_dict(article.get("links"))
        articles.append(
            NewsArticle(
                external_id=external_id,
                sport=league,
                league=league_name(league),
                headline=headline,
                description=article.get("description"),
                story_url=_as_dict(links.get("web")).get("href") or article.get("link"),
                image_url=_first(article.get("images")).get("url"),
                published_at=parse_datetime(article.get("published")),
                author=article.get("byline"),
                last_updated=now,
            )
        )
    return NewsFeed(sport=league, league=league_name(league), last_updated=now, articles=articles)

import logging
import re
from datetime import UTC, datetime
from typing import Any

from sportsfeed.data_providers.leagues import league_name
from sportsfeed.errors import UpstreamTerminalError
from sportsfeed.schemas.entities import Bookmaker, OddsBoard, OddsEvent, OddsMarket, OddsOutcome
from sportsfeed.services.espn_normalizer import parse_datetime

logger = logging.getLogger(__name__)

MARKET_TYPE_MAP = {"h2h": "moneyline", "spreads": "spread", "totals": "total"}

TEAM_ALIASES = {
    "la clippers": "los angeles clippers",
    "la lakers": "los angeles lakers",
    "la rams": "los angeles rams",
    "la chargers": "los angeles chargers",
}


def normalize_str(s: str | None) -> str:
    """Normalize strings for robust comparisons."""
    if s is None:
        return ""
    return re.sub(r"\s+", " ", s.strip().lower())


def canonical_team_name(team: str | None) -> str:
    normalized = normalize_str(team)
    return TEAM_ALIASES.get(normalized, normalized)


def resolve_side(side: str | None, home_team: str | None, away_team: str | None) -> str | None:
    """Map an outcome name to canonical home/away when possible."""
    normalized_side = canonical_team_name(side)
    normalized_home = canonical_team_name(home_team)
    normalized_away = canonical_team_name(away_team)

    if normalized_side == "home":
        return "home"
    if normalized_side == "away":
        return "away"

    if normalized_side and normalized_home and normalized_side == normalized_home:
        return "home"
    if normalized_side and normalized_away and normalized_side == normalized_away:
        return "away"

    if normalized_side:
        logger.warning(
            "Could not resolve side '%s' for home='%s' away='%s'",
            side,
            home_team,
            away_team,
        )
    return None


def _entries(items: Any, kind: str, league: str) -> list[dict[str, Any]]:
    if not isinstance(items, list):
        return []
    kept = [item for item in items if isinstance(item, dict)]
    if len(kept) != len(items):
        logger.warning(
            "skipping malformed odds %s entries: league=%s skipped=%s", kind, league, len(items) - len(kept)
        )
    return kept


def _to_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _normalize_market(market: dict[str, Any], league: str) -> OddsMarket:
    return OddsMarket(
        key=str(market.get("key", "")),
        last_update=parse_datetime(market.get("last_update")),
        outcomes=[
            OddsOutcome(
                name=str(outcome.get("name", "")),
                price=_to_float(outcome.get("price")),
                point=_to_float(outcome.get("point")),
            )
            for outcome in _entries(market.get("outcomes"), "outcome", league)
        ],
    )


def _normalize_bookmaker(bookmaker: dict[str, Any], league: str) -> Bookmaker:
    return Bookmaker(
        key=str(bookmaker.get("key", "")),
        title=str(bookmaker.get("title") or bookmaker.get("key", "")),
        last_update=parse_datetime(bookmaker.get("last_update")),
        markets=[_normalize_market(m, league) for m in _entries(bookmaker.get("markets"), "market", league)],
    )


def normalize_odds_event(event: dict[str, Any], league: str) -> OddsEvent | None:
    if not event.get("id") or not event.get("home_team") or not event.get("away_team"):
        logger.warning("skipping odds event without id or teams: league=%s event_id=%s", league, event.get("id"))
        return None
    return OddsEvent(
        external_id=str(event["id"]),
        sport=league,
        league=league_name(league),
        home_team=event["home_team"],
        away_team=event["away_team"],
        commence_time=parse_datetime(event.get("commence_time")),
        bookmakers=[
            _normalize_bookmaker(b, league) for b in _entries(event.get("bookmakers"), "bookmaker", league)
        ],
    )


def normalize_odds_board(data: Any, league: str, requests_remaining: int | None = None) -> OddsBoard:
    if not isinstance(data, list):
        raise UpstreamTerminalError("odds_api", f"malformed odds payload: unexpected {type(data).__name__}")
    events = _entries(data, "event", league)
    games = [game for game in (normalize_odds_event(e, league) for e in events) if game is not None]
    return OddsBoard(
        sport=league,
        league=league_name(league),
        last_updated=datetime.now(UTC),
        requests_remaining=requests_remaining,
        games=games,
    )


def _outcome_for(market: OddsMarket, side: str, home_team: str, away_team: str) -> OddsOutcome | None:
    for outcome in market.outcomes:
        if resolve_side(outcome.name, home_team, away_team) == side:
            return outcome
    return None


def _outcome_named(market: OddsMarket, name: str) -> OddsOutcome | None:
    return next((o for o in market.outcomes if normalize_str(o.name) == name), None)


def build_odds_rows(event: OddsEvent, now: datetime | None = None) -> list[dict[str, Any]]:
    """Flatten one event into (sportsbook, market_type) rows without the game FK.

    Markets missing either side are skipped.
    """
    now = now or datetime.now(UTC)
    rows: list[dict[str, Any]] = []
    for bookmaker in event.bookmakers:
        for market in bookmaker.markets:
            market_type = MARKET_TYPE_MAP.get(market.key)
            if market_type is None:
                continue
            row: dict[str, Any] = {
                "sportsbook": bookmaker.title,
                "market_type": market_type,
                "home_price": None,
                "away_price": None,
                "home_spread": None,
                "away_spread": None,
                "total_over": None,
                "total_under": None,
                "over_price": None,
                "under_price": None,
                "last_update": market.last_update or bookmaker.last_update or now,
            }
            if market_type in {"moneyline", "spread"}:
                home = _outcome_for(market, "home", event.home_team, event.away_team)
                away = _outcome_for(market, "away", event.home_team, event.away_team)
                if home is None or away is None:
                    continue
                row["home_price"] = home.price
                row["away_price"] = away.price
                if market_type == "spread":
                    row["home_spread"] = home.point
                    row["away_spread"] = away.point
            else:
                over = _outcome_named(market, "over")
                under = _outcome_named(market, "under")
                if over is None or under is None:
                    continue
                row["total_over"] = over.point
                row["total_under"] = under.point
                row["over_price"] = over.price
                row["under_price"] = under.price
            rows.append(row)
    return rows

from __future__ import annotations

import logging
import re
from typing import Any

from sqlalchemy import func, select

from sportsfeed.cache import generate_cache_key
from sportsfeed.data_providers.leagues import league_name
from sportsfeed.models.team import Team
from sportsfeed.repositories.base import BaseRepository, SyncResult, row_to_dict
from sportsfeed.schemas.entities import Scoreboard, TeamRef
from sportsfeed.services.odds_normalizer import canonical_team_name, normalize_str

logger = logging.getLogger(__name__)


def derived_external_id(sport: str, name: str) -> str:
    """Stable id for teams first seen in odds payloads, which carry names only."""
    slug = re.sub(r"[^a-z0-9]+", "-", canonical_team_name(name)).strip("-")
    return f"name:{sport}:{slug}"[:64]


def team_record(ref: TeamRef, sport: str) -> dict[str, Any]:
    return {
        "external_id": ref.external_id,
        "sport": sport,
        "league": league_name(sport),
        "name": ref.name or ref.abbreviation or ref.external_id,
        "abbreviation": ref.abbreviation,
        "location": ref.location,
        "logo_url": ref.logo_url,
        "color": ref.color,
        "alternate_color": ref.alternate_color,
    }


class TeamsRepository(BaseRepository[Team]):
    """Teams keyed by (sport, provider id)."""

    model = Team
    conflict_columns = ("sport", "external_id")
    immutable_columns = frozenset({"id", "sport", "external_id", "created_at"})

    async def find_by_external_id(self, external_id: str, sport: str) -> Team | None:
        return await self._scalar(select(Team).where(Team.sport == sport, Team.external_id == str(external_id)))

    async def find_by_league(self, sport: str) -> list[Team]:
        return await self.find_where({"sport": sport}, order_by="name")

    async def find_by_abbreviation(self, abbreviation: str, sport: str) -> Team | None:
        stmt = select(Team).where(Team.sport == sport, func.upper(Team.abbreviation) == abbreviation.upper())
        return await self._scalar(stmt)

    async def find_by_name(self, name: str, sport: str) -> Team | None:
        """Match on the canonical team name so provider spelling differences still resolve."""
        wanted = canonical_team_name(name)
        if not wanted:
            return None
        for team in await self.find_by_league(sport):
            if canonical_team_name(team.name) == wanted:
                return team
            if team.location and canonical_team_name(f"{team.location} {team.name}") == wanted:
                return team
        return None

    async def search_by_name(self, query: str, sport: str | None = None, limit: int = 20) -> list[Team]:
        stmt = select(Team).where(func.lower(Team.name).contains(normalize_str(query)))
        if sport:
            stmt = stmt.where(Team.sport == sport)
        stmt = stmt.order_by(Team.name).limit(limit)
        return await self._scalars(stmt)

    async def get_or_create(self, ref: TeamRef, sport: str) -> dict[str, Any]:
        key = generate_cache_key("teams", sport, ref.external_id)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        team = await self.find_by_external_id(ref.external_id, sport)
        if team is None:
            team = await self.upsert(team_record(ref, sport))
            logger.info("created team: sport=%s external_id=%s name=%s", sport, team.external_id, team.name)

        data = row_to_dict(team)
        await self.cache.set(key, data, self.cache.ttl_for("teams"))
        return data

    async def get_or_create_by_name(self, name: str, sport: str) -> dict[str, Any]:
        team = await self.find_by_name(name, sport)
        if team is None:
            team = await self.upsert(
                team_record(TeamRef(external_id=derived_external_id(sport, name), name=name), sport)
            )
            logger.info("created team from name: sport=%s name=%s external_id=%s", sport, name, team.external_id)
        return row_to_dict(team)

    async def sync_from_scoreboard(self, scoreboard: Scoreboard) -> SyncResult:
        refs: dict[str, TeamRef] = {}
        for game in scoreboard.games:
            refs.setdefault(game.home_team.external_id, game.home_team)
            refs.setdefault(game.away_team.external_id, game.away_team)

        result = await self.bulk_upsert([team_record(ref, scoreboard.sport) for ref in refs.values()])
        if result.successful:
            await self._clear_cache(generate_cache_key("teams", scoreboard.sport) + ":*")
        return result

    async def list_cached(self, sport: str) -> list[dict[str, Any]]:
        key = generate_cache_key("teams", sport, "all")
        cached = await self.cache.get(key)
        if cached is not None:
            return cached
        data = [row_to_dict(team) for team in await self.find_by_league(sport)]
        if data:
            await self.cache.set(key, data, self.cache.ttl_for("teams"))
        return data

"""Canonical normalized shapes produced by the upstream clients.

Every optional field has a default so a missing upstream field always shows
up as ``None`` or an empty list, never as an absent key.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

GameState = Literal["scheduled", "live", "final"]


class TeamRef(BaseModel):
    external_id: str
    name: str | None = None
    abbreviation: str | None = None
    location: str | None = None
    logo_url: str | None = None
    color: str | None = None
    alternate_color: str | None = None
    score: int | None = None
    record: str | None = None


class GameStatus(BaseModel):
    state: GameState = "scheduled"
    name: str | None = None
    detail: str | None = None
    period: int | None = None
    clock: str | None = None
    completed: bool = False


class Game(BaseModel):
    external_id: str
    sport: str
    league: str
    home_team: TeamRef
    away_team: TeamRef
    status: GameStatus = Field(default_factory=GameStatus)
    start_time: datetime | None = None
    venue: str | None = None
    broadcast: str | None = None
    last_updated: datetime


class Scoreboard(BaseModel):
    sport: str
    league: str
    last_updated: datetime
    games: list[Game] = Field(default_factory=list)


class Team(BaseModel):
    external_id: str
    sport: str
    league: str
    name: str | None = None
    abbreviation: str | None = None
    location: str | None = None
    logo_url: str | None = None
    color: str | None = None
    alternate_color: str | None = None
    links: list[str] = Field(default_factory=list)
    last_updated: datetime

    def as_ref(self) -> TeamRef:
        return TeamRef(
            external_id=self.external_id,
            name=self.name,
            abbreviation=self.abbreviation,
            location=self.location,
            logo_url=self.logo_url,
            color=self.color,
            alternate_color=self.alternate_color,
        )


class Player(BaseModel):
    external_id: str
    sport: str
    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    position: str | None = None
    jersey_number: str | None = None
    height: str | None = None
    weight: str | None = None
    age: int | None = None
    headshot_url: str | None = None
    team: TeamRef | None = None
    last_updated: datetime


class NewsArticle(BaseModel):
    external_id: str
    sport: str
    league: str
    headline: str
    description: str | None = None
    story_url: str | None = None
    image_url: str | None = None
    published_at: datetime | None = None
    author: str | None = None
    last_updated: datetime


class NewsFeed(BaseModel):
    sport: str
    league: str
    last_updated: datetime
    articles: list[NewsArticle] = Field(default_factory=list)


class OddsOutcome(BaseModel):
    name: str
    price: float | None = None
    point: float | None = None


class OddsMarket(BaseModel):
    key: str
    last_update: datetime | None = None
    outcomes: list[OddsOutcome] = Field(default_factory=list)


class Bookmaker(BaseModel):
    key: str
    title: str
    last_update: datetime | None = None
    markets: list[OddsMarket] = Field(default_factory=list)


class OddsEvent(BaseModel):
    external_id: str
    sport: str
    league: str
    home_team: str
    away_team: str
    commence_time: datetime | None = None
    bookmakers: list[Bookmaker] = Field(default_factory=list)


class OddsBoard(BaseModel):
    sport: str
    league: str
    last_updated: datetime
    requests_remaining: int | None = None
    games: list[OddsEvent] = Field(default_factory=list)

import logging
from datetime import UTC, datetime

import pytest

from sportsfeed.errors import UpstreamTerminalError
from sportsfeed.services.espn_normalizer import (
    map_state,
    normalize_news,
    normalize_player,
    normalize_scoreboard,
    normalize_team,
    normalize_teams,
    to_int,
)


def espn_event(event_id: str, state: str = "in", home_score: str = "0", away_score: str = "7") -> dict:
    return {
        "id": event_id,
        "date": "2026-10-18T23:00Z",
        "status": {
            "period": 2,
            "displayClock": "4:12",
            "type": {"state": state, "name": "STATUS_IN_PROGRESS", "detail": "4:12 - 2nd Quarter"},
        },
        "competitions": [
            {
                "venue": {"fullName": "Crypto.com Arena"},
                "broadcasts": [{"names": ["ESPN"]}],
                "competitors": [
                    {
                        "homeAway": "home",
                        "score": home_score,
                        "records": [{"summary": "3-1"}],
                        "team": {
                            "id": "12",
                            "displayName": "LA Clippers",
                            "abbreviation": "LAC",
                            "location": "LA",
                            "logo": "https://a.espncdn.com/lac.png",
                            "color": "1d428a",
                        },
                    },
                    {
                        "homeAway": "away",
                        "score": away_score,
                        "team": {"id": "14", "displayName": "Miami Heat", "abbreviation": "MIA"},
                    },
                ],
            }
        ],
    }


def test_state_mapping() -> None:
    assert map_state("pre") == "scheduled"
    assert map_state("in") == "live"
    assert map_state("post") == "final"
    assert map_state(None) == "scheduled"


def test_zero_score_is_kept() -> None:
    assert to_int("0") == 0
    assert to_int("") is None
    assert to_int("abc") is None


def test_scoreboard_normalization() -> None:
    scoreboard = normalize_scoreboard({"events": [espn_event("401")]}, "nba")

    assert scoreboard.sport == "nba"
    assert scoreboard.league == "NBA"
    game = scoreboard.games[0]
    assert game.external_id == "401"
    assert game.status.state == "live"
    assert game.status.period == 2
    assert game.status.clock == "4:12"
    assert game.status.completed is False
    assert game.home_team.name == "LA Clippers"
    assert game.home_team.score == 0
    assert game.home_team.record == "3-1"
    assert game.away_team.score == 7
    assert game.away_team.record is None
    assert game.start_time == datetime(2026, 10, 18, 23, 0, tzinfo=UTC)
    assert game.venue == "Crypto.com Arena"
    assert game.broadcast == "ESPN"


def test_final_game_is_completed() -> None:
    game = normalize_scoreboard({"events": [espn_event("402", state="post")]}, "nba").games[0]
    assert game.status.state == "final"
    assert game.status.completed is True


def test_event_without_teams_is_skipped(caplog: pytest.LogCaptureFixture) -> None:
    broken = espn_event("403")
    broken["competitions"][0]["competitors"] = []

    with caplog.at_level(logging.WARNING):
        scoreboard = normalize_scoreboard({"events": [broken, espn_event("404")]}, "nba")

    assert [g.external_id for g in scoreboard.games] == ["404"]
    assert "skipping ESPN event" in caplog.text


def test_empty_payload_gives_empty_scoreboard() -> None:
    assert normalize_scoreboard({}, "nfl").games == []
    assert normalize_scoreboard({"events": None}, "nfl").games == []


def test_non_object_entries_are_skipped(caplog: pytest.LogCaptureFixture) -> None:
    broken = espn_event("405")
    broken["competitions"][0]["competitors"].append("oops")
    broken["competitions"][0]["competitors"][0]["team"] = "LAC"

    with caplog.at_level(logging.WARNING):
        scoreboard = normalize_scoreboard({"events": ["oops", 7, broken, espn_event("406")]}, "nba")
        feed = normalize_news({"articles": ["oops", {"id": 1, "headline": "Kept", "links": "web"}]}, "nba")

    assert [g.external_id for g in scoreboard.games] == ["406"]
    assert [a.headline for a in feed.articles] == ["Kept"]
    assert feed.articles[0].story_url is None
    assert "skipping malformed ESPN event entries: league=nba skipped=2" in caplog.text
    assert "skipping malformed ESPN article entries" in caplog.text


@pytest.mark.parametrize(
    ("normalizer", "payload"),
    [
        (normalize_scoreboard, None),
        (normalize_scoreboard, ["oops"]),
        (normalize_scoreboard, {"events": "oops"}),
        (normalize_news, "oops"),
        (normalize_news, {"articles": {"id": 1}}),
        (normalize_team, ["oops"]),
        (normalize_teams, "oops"),
        (normalize_player, None),
    ],
)
def test_wrong_top_level_shape_is_terminal(normalizer, payload) -> None:
    with pytest.raises(UpstreamTerminalError) as excinfo:
        normalizer(payload, "nba")
    assert excinfo.value.upstream == "espn"
    assert excinfo.value.message.startswith("malformed")


def test_team_and_team_list() -> None:
    team_payload = {
        "team": {
            "id": "12",
            "displayName": "LA Clippers",
            "abbreviation": "LAC",
            "logos": [{"href": "https://a.espncdn.com/lac.png"}],
            "links": [{"href": "https://espn.com/nba/team/_/name/lac"}],
        }
    }
    team = normalize_team(team_payload, "nba")
    assert team.external_id == "12"
    assert team.logo_url == "https://a.espncdn.com/lac.png"
    assert team.links == ["https://espn.com/nba/team/_/name/lac"]
    assert team.color is None

    teams = normalize_teams({"sports": [{"leagues": [{"teams": [team_payload, {"team": {}}]}]}]}, "nba")
    assert [t.external_id for t in teams] == ["12"]


def test_player_normalization() -> None:
    player = normalize_player(
        {
            "athlete": {
                "id": "3136193",
                "displayName": "Devin Booker",
                "jersey": 1,
                "position": {"displayName": "Shooting Guard"},
                "team": {"id": "21", "displayName": "Phoenix Suns"},
            }
        },
        "nba",
    )
    assert player.name == "Devin Booker"
    assert player.jersey_number == "1"
    assert player.position == "Shooting Guard"
    assert player.team is not None and player.team.external_id == "21"
    assert player.headshot_url is None


def test_news_normalization_skips_incomplete_articles() -> None:
    feed = normalize_news(
        {
            "articles": [
                {
                    "id": 9001,
                    "headline": "Trade deadline recap",
                    "published": "2026-10-18T12:00:00Z",
                    "links": {"web": {"href": "https://espn.com/story/9001"}},
                    "images": [{"url": "https://a.espncdn.com/9001.jpg"}],
                },
                {"id": 9002},
            ]
        },
        "nba",
    )
    assert len(feed.articles) == 1
    article = feed.articles[0]
    assert article.external_id == "9001"
    assert article.story_url == "https://espn.com/story/9001"
    assert article.image_url == "https://a.espncdn.com/9001.jpg"
    assert article.description is None

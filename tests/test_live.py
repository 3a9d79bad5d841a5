"""Tests for the live match feed."""

from datetime import datetime, timezone

import httpx
import pytest

from fixturecast.etl.api_football import FootballAPIClient
from fixturecast.etl.base import LiveMatch
from fixturecast.etl.live import (
    format_match_time,
    get_live_match,
    get_live_matches,
    is_match_live,
    parse_live_fixture,
    status_text,
)


def live_item(fixture_id, league, status="1H", elapsed=23, goals=(1, 0)):
    return {
        "fixture": {
            "id": fixture_id,
            "date": "2025-09-20T15:00:00+00:00",
            "referee": "M. Oliver",
            "status": {"short": status, "elapsed": elapsed},
            "venue": {"name": "Emirates Stadium"},
        },
        "league": {"id": 39, "name": league},
        "teams": {"home": {"id": 42, "name": "Arsenal"}, "away": {"id": 49, "name": "Chelsea"}},
        "goals": {"home": goals[0], "away": goals[1]},
        "score": {"halftime": {"home": 1, "away": 0}},
    }


def _live(status, minute=None) -> LiveMatch:
    return LiveMatch(
        id="1",
        home_team="Arsenal",
        away_team="Chelsea",
        home_team_id=42,
        away_team_id=49,
        league="Premier League",
        date=datetime(2025, 9, 20, 15, 0, tzinfo=timezone.utc),
        status=status,
        minute=minute,
    )


class TestStatus:
    def test_live_statuses(self):
        for status in ("LIVE", "HT", "1H", "2H", "ET"):
            assert is_match_live(status)
        for status in ("NS", "FT", "PST"):
            assert not is_match_live(status)

    def test_status_text(self):
        assert status_text("HT") == "HT"
        assert status_text("POSTP") == "Postponed"
        assert status_text("AET") == "FT"

    def test_format_match_time(self):
        assert format_match_time(_live("2H", 67)) == "67'"
        assert format_match_time(_live("HT", 45)) == "HT"
        assert format_match_time(_live("FT")) == "FT"
        assert format_match_time(_live("NS")) == "15:00"
        assert format_match_time(_live("CANC")) == "Cancelled"


class TestParseLiveFixture:
    def test_maps_clock_and_scores(self):
        match = parse_live_fixture(live_item(77, "Premier League", "2H", 61, (2, 1)))
        assert match.id == "77"
        assert match.minute == 61
        assert match.period == "2H"
        assert match.home_score == 2
        assert match.away_score == 1
        assert match.home_score_ht == 1
        assert match.referee == "M. Oliver"

    def test_halftime_has_no_period(self):
        assert parse_live_fixture(live_item(1, "Premier League", "HT")).period is None


class TestGetLiveMatches:
    @pytest.mark.asyncio
    async def test_filters_leagues_and_statuses(self):
        payload = {
            "errors": [],
            "response": [
                live_item(1, "Premier League"),
                live_item(2, "Regionalliga Nord"),
                live_item(3, "La Liga", status="FT"),
            ],
        }
        seen = []

        def handler(request):
            seen.append(dict(request.url.params))
            return httpx.Response(200, json=payload)

        client = FootballAPIClient(transport=httpx.MockTransport(handler))
        try:
            matches = await get_live_matches(client)
            single = await get_live_match(client, "1")
            missing = await get_live_match(client, "2")
        finally:
            await client.close()

        assert [m.id for m in matches] == ["1"]
        assert single.id == "1"
        assert missing is None
        assert seen[0] == {"live": "all"}

    @pytest.mark.asyncio
    async def test_upstream_failure_is_empty(self):
        client = FootballAPIClient(transport=httpx.MockTransport(lambda r: httpx.Response(403)))
        try:
            assert await get_live_matches(client) == []
        finally:
            await client.close()

"""Tests for background jobs."""

from dataclasses import replace
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from fixturecast import scheduler
from fixturecast.etl.base import LiveMatch
from fixturecast.state import dashboard


def live(match_id="1", home="Arsenal", away="Chelsea", score=(0, 0)) -> LiveMatch:
    return LiveMatch(
        id=match_id,
        home_team=home,
        away_team=away,
        home_team_id=42,
        away_team_id=49,
        league="Premier League",
        date=datetime(2025, 9, 20, 15, 0, tzinfo=timezone.utc),
        status="1H",
        home_score=score[0],
        away_score=score[1],
        minute=30,
    )


class TestGoalAlerts:
    def test_score_change_for_favorite(self):
        dashboard.add_favorite("Chelsea")
        before = live()
        alerts = scheduler._goal_alerts({"1": before}, [replace(before, away_score=1)])
        assert len(alerts) == 1
        assert alerts[0].kind == "goal"
        assert alerts[0].message == "GOAL! Arsenal 0-1 Chelsea"

    def test_ignores_non_favorites_and_new_matches(self):
        dashboard.add_favorite("Liverpool")
        before = live()
        assert scheduler._goal_alerts({"1": before}, [replace(before, home_score=1)]) == []
        dashboard.add_favorite("Arsenal")
        assert scheduler._goal_alerts({}, [live(score=(1, 0))]) == []


class TestJobs:
    @pytest.mark.asyncio
    async def test_live_refresh_updates_dashboard(self):
        dashboard.add_favorite("Arsenal")
        dashboard.set_live_matches([live()])
        with patch.object(scheduler, "get_api_client", MagicMock()), patch.object(
            scheduler, "get_live_matches", AsyncMock(return_value=[live(score=(1, 0))])
        ):
            result = await scheduler.live_refresh()

        assert result == {"live": 1}
        assert dashboard.live_matches[0].home_score == 1
        assert dashboard.alerts[-1].kind == "goal"

    @pytest.mark.asyncio
    async def test_job_failure_reported_not_raised(self):
        data_service = MagicMock()
        data_service.get_all_upcoming_fixtures = AsyncMock(side_effect=RuntimeError("upstream down"))
        with patch.object(scheduler, "get_data_service", return_value=data_service):
            result = await scheduler.fixtures_refresh()
        assert result == {"error": "upstream down"}

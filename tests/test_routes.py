"""
HTTP tests for the FastAPI app.

The football data and prediction services are replaced through
app.dependency_overrides; the database is the in-memory SQLite set up by
the app lifespan.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from fixturecast.etl.base import LeagueTableRow, LiveMatch, Team
from fixturecast.etl.football_data import FootballDataService
from fixturecast.main import app
from fixturecast.predictions.service import PredictionError, PredictionService
from fixturecast.services import get_data_service, get_prediction_service
from fixturecast.state import Alert, dashboard

USAGE = {"callsUsed": 3, "callsRemaining": 74997, "percentageUsed": 0, "softLimit": 60000, "budgetDay": None}


@pytest.fixture
def data_service():
    ds = MagicMock(spec=FootballDataService)
    ds.get_api_usage.return_value = USAGE
    return ds


@pytest.fixture
def prediction_service():
    return MagicMock(spec=PredictionService)


@pytest.fixture
def client(data_service, prediction_service):
    app.dependency_overrides[get_data_service] = lambda: data_service
    app.dependency_overrides[get_prediction_service] = lambda: prediction_service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# =============================================================================
# CORE
# =============================================================================


class TestCore:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "fixtures_loaded": 0, "live_matches": 0}

    def test_telemetry(self, client):
        data = client.get("/telemetry").json()
        assert "predictions" in data
        assert "api_cache" in data
        assert "recent_errors" in data

    def test_metrics_open_without_token(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200

    def test_metrics_requires_bearer_when_configured(self, client, monkeypatch):
        from fixturecast.routes import core

        monkeypatch.setattr(core.settings, "METRICS_BEARER_TOKEN", "s3cret")
        assert client.get("/metrics").status_code == 401
        assert client.get("/metrics", headers={"Authorization": "Bearer wrong"}).status_code == 401
        assert client.get("/metrics", headers={"Authorization": "Bearer s3cret"}).status_code == 200


# =============================================================================
# FIXTURES / TABLES
# =============================================================================


class TestFixtures:
    def test_upcoming_for_league(self, client, data_service, make_match):
        data_service.get_upcoming_fixtures.return_value = [make_match()]
        data = client.get("/fixtures/upcoming", params={"league": "Premier League", "limit": 5}).json()
        assert data["count"] == 1
        assert data["fixtures"][0]["home_team"] == "Arsenal"
        data_service.get_upcoming_fixtures.assert_awaited_once_with("Premier League", 5)

    def test_upcoming_aggregate_loads_dashboard(self, client, data_service, make_match):
        data_service.get_all_upcoming_fixtures.return_value = [make_match(match_id="1"), make_match(match_id="2")]
        assert client.get("/fixtures/upcoming").json()["count"] == 2
        assert len(dashboard.fixtures) == 2

    def test_match_of_the_day(self, client, data_service, make_match):
        data_service.get_all_upcoming_fixtures.return_value = [
            make_match(match_id="1", home="Luton", away="Burnley"),
            make_match(match_id="2", home="Liverpool", away="Everton"),
        ]
        data = client.get("/match-of-the-day").json()
        assert data["match"]["id"] == "2"
        assert data["breakdown"]["scores"]["rivalry"] == 50

    def test_match_of_the_day_none(self, client, data_service):
        data_service.get_all_upcoming_fixtures.return_value = []
        assert client.get("/match-of-the-day").status_code == 404

    def test_league_table(self, client, data_service):
        data_service.get_league_table.return_value = [
            LeagueTableRow(rank=1, team_name="Arsenal", played=8, won=6, drawn=2, lost=0, goal_difference=12, points=20)
        ]
        data = client.get("/leagues/Premier League/table").json()
        assert data["table"][0]["team_name"] == "Arsenal"

    def test_league_table_missing(self, client, data_service):
        data_service.get_league_table.return_value = []
        assert client.get("/leagues/Unknown/table").status_code == 404

    def test_team_missing(self, client, data_service):
        data_service.get_team_details.return_value = None
        assert client.get("/teams/999").status_code == 404

    def test_league_teams(self, client, data_service):
        data_service.get_teams_by_league.return_value = {"Arsenal": Team(id=42, name="Arsenal", league="Premier League")}
        data = client.get("/leagues/Premier League/teams").json()
        assert data["count"] == 1
        assert data["teams"][0]["id"] == 42

    def test_all_league_tables(self, client, data_service):
        data_service.get_all_league_tables.return_value = {"Serie A": []}
        assert client.get("/leagues/tables").json() == {"tables": {"Serie A": []}}

    def test_team_search(self, client, data_service):
        data_service.get_team_info.return_value = Team(id=49, name="Chelsea")
        assert client.get("/teams/search", params={"name": "chelsea"}).json()["name"] == "Chelsea"
        data_service.get_team_info.assert_awaited_once_with("chelsea")

    def test_team_search_missing(self, client, data_service):
        data_service.get_team_info.return_value = None
        assert client.get("/teams/search", params={"name": "Nobody"}).status_code == 404

    def test_all_teams(self, client, data_service):
        data_service.get_all_teams.return_value = {}
        assert client.get("/teams").json() == {"teams": [], "count": 0}

    def test_head_to_head(self, client, data_service):
        data_service.get_head_to_head.return_value = [{"fixture": {"id": 1}}]
        data = client.get("/head-to-head", params={"home_id": 42, "away_id": 49}).json()
        assert data["count"] == 1
        data_service.get_head_to_head.assert_awaited_once_with(42, 49, 5)

    def test_single_live_match(self, client, monkeypatch):
        from fixturecast.routes import api

        live = LiveMatch(
            id="88", home_team="Arsenal", away_team="Chelsea", home_team_id=42, away_team_id=49,
            league="Premier League", date=datetime(2025, 9, 20, 15, 0, tzinfo=timezone.utc),
            status="2H", home_score=1, away_score=0, minute=67,
        )
        lookup = AsyncMock(side_effect=lambda _client, match_id: live if match_id == "88" else None)
        monkeypatch.setattr(api, "get_api_client", MagicMock())
        monkeypatch.setattr(api, "get_live_match", lookup)

        data = client.get("/fixtures/live/88").json()
        assert data["minute"] == 67
        assert data["home_score"] == 1
        assert client.get("/fixtures/live/89").status_code == 404


# =============================================================================
# PREDICTIONS
# =============================================================================


class TestPredictions:
    def test_accuracy_empty(self, client):
        data = client.get("/predictions/accuracy").json()
        assert data["stats"]["totalPredictions"] == 0
        assert data["display"] == "Predictions will appear after first matchday"

    def test_cached_prediction_missing(self, client):
        assert client.get("/predictions/12345").status_code == 404

    def test_generate(self, client, data_service, prediction_service, make_match, prediction_payload):
        data_service.get_fixture.return_value = make_match(match_id="77")
        prediction_service.get_or_create.return_value = prediction_payload
        response = client.post("/predictions/77")
        assert response.status_code == 200
        assert response.json()["prediction"]["predictedScoreline"] == "2-1"

    def test_generate_unknown_match(self, client, data_service):
        data_service.get_fixture.return_value = None
        assert client.post("/predictions/404404").status_code == 404

    @pytest.mark.parametrize("kind,status", [("config", 503), ("rate_limit", 429), ("llm", 502), ("parse", 502)])
    def test_generate_error_mapping(self, client, data_service, prediction_service, make_match, kind, status):
        data_service.get_fixture.return_value = make_match(match_id="78")
        prediction_service.get_or_create.side_effect = PredictionError("nope", kind=kind)
        assert client.post("/predictions/78").status_code == status


# =============================================================================
# FAVORITES / ALERTS / USAGE
# =============================================================================


class TestFavoritesAndAlerts:
    def test_favorites_lifecycle(self, client):
        assert client.post("/favorites", json={"team": "Arsenal"}).status_code == 201
        assert client.post("/favorites", json={"team": "Arsenal"}).status_code == 409
        assert client.get("/favorites").json() == {"teams": ["Arsenal"]}
        assert client.delete("/favorites/Arsenal").status_code == 200
        assert client.delete("/favorites/Arsenal").status_code == 404

    def test_alerts(self, client):
        dashboard.add_alert(Alert(id="a1", message="Kickoff soon", kind="kickoff"))
        data = client.get("/alerts").json()
        assert data["unread"] == 1
        assert client.post("/alerts/a1/read").status_code == 200
        assert client.get("/alerts", params={"unread_only": True}).json()["alerts"] == []
        assert client.post("/alerts/missing/read").status_code == 404

    def test_usage(self, client):
        data = client.get("/api/usage").json()
        assert data["football_api"]["callsUsed"] == 3
        assert "llm" in data


# =============================================================================
# ADMIN / CALLBACKS
# =============================================================================


class TestAdmin:
    def test_cache_clear_open_in_development(self, client, data_service):
        response = client.post("/admin/cache/clear")
        assert response.status_code == 200
        data_service.clear_cache.assert_called_once()

    def test_api_key_enforced_when_configured(self, client, monkeypatch):
        from fixturecast import security

        monkeypatch.setattr(security.settings, "API_KEY", "admin-key")
        assert client.post("/admin/cache/clear").status_code == 401
        assert client.post("/admin/cache/clear", headers={"X-API-Key": "wrong"}).status_code == 403
        assert client.post("/admin/cache/clear", headers={"X-API-Key": "admin-key"}).status_code == 200

    def test_prediction_update_callback(self, client, data_service, prediction_service, make_match):
        data_service.get_fixture.side_effect = lambda match_id: make_match(match_id=match_id) if match_id == "1" else None
        prediction_service.get_or_create.return_value = {"homeWinProbability": 50}

        data = client.post("/api/predictions/update", json={"matchIds": ["1", "2"], "forceUpdate": True}).json()
        assert data["processed"] == 1
        assert data["total"] == 2
        assert data["errors"] == [{"matchId": "2", "error": "Match not found"}]
        assert prediction_service.get_or_create.await_args.kwargs["force"] is True

    def test_match_check_callback(self, client, data_service, make_match):
        kickoff = datetime.now(timezone.utc) - timedelta(hours=1)
        fixtures = {
            "1": make_match(match_id="1", date=kickoff, status="FT", home_score=1, away_score=0),
            "2": make_match(match_id="2", date=kickoff, status="2H", home_score=0, away_score=0),
        }
        data_service.get_fixture.side_effect = lambda match_id: fixtures.get(match_id)

        data = client.post("/api/matches/check", json={"matchIds": ["1", "2", "3"]}).json()
        assert data["checked"] == 2
        assert data["updated"] == 0
        assert data["live"] == 1
        assert len(data["errors"]) == 1

    def test_check_results_without_stored_predictions(self, client, data_service, make_match):
        data_service.get_finished_fixtures.return_value = [
            make_match(match_id="5", status="FT", home_score=2, away_score=2)
        ]
        data = client.post("/admin/predictions/check-results", params={"days_back": 2}).json()
        assert data == {"checked": 1, "scored": 0}
        data_service.get_finished_fixtures.assert_awaited_once_with(2)

"""Shared fixtures. Environment is pinned before any fixturecast import."""

import os

os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["API_FOOTBALL_KEY"] = "test-football-key"
os.environ["API_FOOTBALL_HOST"] = "v3.football.api-sports.io"
os.environ["FOOTBALL_PROXY_URL"] = ""
os.environ["GEMINI_API_KEY"] = "test-gemini-key"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["API_REQUEST_DELAY_SECONDS"] = "0"
os.environ["API_BACKOFF_BASE_SECONDS"] = "0"
os.environ["API_BACKOFF_JITTER_SECONDS"] = "0"
os.environ["API_KEY"] = ""
os.environ["METRICS_BEARER_TOKEN"] = ""
os.environ["APP_BASE_URL"] = "http://app.test"
os.environ["WORKER_BASE_URL"] = "http://worker.test"
os.environ["DEFAULT_FAVORITE_TEAMS"] = ""

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlmodel import SQLModel

from fixturecast.database import AsyncSessionLocal, async_engine, init_db
from fixturecast.etl.api_football import reset_api_usage
from fixturecast.etl.base import Match
from fixturecast.state import DashboardState, dashboard


@pytest.fixture(autouse=True)
def reset_dashboard():
    """Fresh dashboard state and API budget for every test."""
    dashboard.__dict__.update(DashboardState().__dict__)
    reset_api_usage()
    yield
    dashboard.__dict__.update(DashboardState().__dict__)


@pytest_asyncio.fixture
async def db_session():
    """Session on a fresh in-memory database."""
    await init_db()
    async with AsyncSessionLocal() as session:
        yield session
    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await async_engine.dispose()


@pytest.fixture
def make_match():
    def _make(
        match_id="1001",
        home="Arsenal",
        away="Chelsea",
        league="Premier League",
        date=None,
        home_id=42,
        away_id=49,
        **kwargs,
    ) -> Match:
        return Match(
            id=match_id,
            home_team=home,
            away_team=away,
            home_team_id=home_id,
            away_team_id=away_id,
            league=league,
            date=date or datetime(2025, 9, 20, 15, 0, tzinfo=timezone.utc),
            league_id=kwargs.pop("league_id", 39),
            **kwargs,
        )

    return _make


@pytest.fixture
def prediction_payload():
    """A well-formed model response in wire shape."""
    return {
        "homeWinProbability": 50,
        "drawProbability": 25,
        "awayWinProbability": 25,
        "predictedScoreline": "2-1",
        "confidence": "Medium",
        "keyFactors": [{"category": "Form", "points": ["Home side unbeaten in five"]}],
        "goalLine": {"line": 2.5, "overProbability": 60, "underProbability": 40},
        "btts": {"yesProbability": 55, "noProbability": 45},
        "scoreRange": {"zeroToOne": 20, "twoToThree": 50, "fourPlus": 30},
        "cleanSheet": {"homeTeam": 30, "awayTeam": 20},
        "expectedGoals": {"homeXg": 1.8, "awayXg": 1.1},
    }

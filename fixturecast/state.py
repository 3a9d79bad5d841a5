"""Shared singletons for the FixtureCast application.

Singleton-by-import pattern: main.py, scheduler jobs and routers import from
this module to share the same instances (dashboard state, telemetry counters,
recent error log).
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from fixturecast.etl.base import LiveMatch, Match


@dataclass
class Alert:
    """User-facing notification (kickoff reminder, goal, prediction ready)."""

    id: str
    message: str
    kind: str = "info"  # info, goal, kickoff, prediction
    match_id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    read: bool = False


@dataclass
class DashboardState:
    """Application-wide state the dashboard reads from."""

    fixtures: list[Match] = field(default_factory=list)
    live_matches: list[LiveMatch] = field(default_factory=list)
    predictions: dict[str, dict] = field(default_factory=dict)
    favorite_teams: list[str] = field(default_factory=list)
    alerts: list[Alert] = field(default_factory=list)
    fixtures_updated_at: Optional[datetime] = None
    live_updated_at: Optional[datetime] = None

    def set_fixtures(self, fixtures: list[Match]) -> None:
        self.fixtures = fixtures
        self.fixtures_updated_at = datetime.utcnow()

    def set_live_matches(self, matches: list[LiveMatch]) -> None:
        self.live_matches = matches
        self.live_updated_at = datetime.utcnow()

    def find_match(self, match_id: str) -> Optional[Match]:
        for match in self.live_matches:
            if match.id == match_id:
                return match
        for match in self.fixtures:
            if match.id == match_id:
                return match
        return None

    def add_favorite(self, team: str) -> bool:
        if team in self.favorite_teams:
            return False
        self.favorite_teams.append(team)
        return True

    def remove_favorite(self, team: str) -> bool:
        if team not in self.favorite_teams:
            return False
        self.favorite_teams.remove(team)
        return True

    def add_alert(self, alert: Alert) -> None:
        self.alerts.append(alert)
        # Keep the newest 100
        if len(self.alerts) > 100:
            self.alerts = self.alerts[-100:]

    def mark_alert_read(self, alert_id: str) -> bool:
        for alert in self.alerts:
            if alert.id == alert_id:
                alert.read = True
                return True
        return False


dashboard = DashboardState()

# =============================================================================
# TELEMETRY COUNTERS (aggregated, no high-cardinality labels)
# =============================================================================

_telemetry = {
    # Prediction store
    "predictions_cache_hit": 0,
    "predictions_cache_miss": 0,
    "predictions_generated": 0,
    "predictions_failed": 0,
    # Upstream response cache
    "api_cache_hit": 0,
    "api_cache_miss": 0,
    "api_cache_stale_served": 0,
}


def _incr(key: str) -> None:
    """Increment a telemetry counter."""
    _telemetry[key] = _telemetry.get(key, 0) + 1


# =============================================================================
# RECENT ERRORS (last 50, surfaced on /telemetry)
# =============================================================================

_recent_errors: deque = deque(maxlen=50)


def record_error(source: str, message: str, kind: str = "generic") -> None:
    """Remember a service error for diagnostics."""
    _recent_errors.append(
        {
            "source": source,
            "kind": kind,
            "message": message[:300],
            "at": datetime.utcnow().isoformat(),
        }
    )


def recent_errors() -> list[dict]:
    return list(_recent_errors)

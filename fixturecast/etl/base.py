"""Data transfer objects produced by the football data layer."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class Match:
    """Fixture as served to routes, scoring and prediction services."""

    id: str
    home_team: str
    away_team: str
    home_team_id: int
    away_team_id: int
    league: str
    date: datetime
    league_id: Optional[int] = None
    venue: Optional[str] = None
    status: str = "NS"
    home_score: Optional[int] = None
    away_score: Optional[int] = None


@dataclass
class LiveMatch(Match):
    """In-play fixture with clock and officiating details."""

    home_score_ht: Optional[int] = None
    away_score_ht: Optional[int] = None
    minute: Optional[int] = None
    period: Optional[str] = None  # 1H, 2H, ET, PEN
    referee: Optional[str] = None
    last_updated: Optional[datetime] = None


@dataclass
class LeagueTableRow:
    """Standings row, renamed from the upstream payload."""

    rank: int
    team_name: str
    played: int
    won: int
    drawn: int
    lost: int
    goal_difference: int
    points: int
    team_id: Optional[int] = None
    team_logo: Optional[str] = None
    goals_for: int = 0
    goals_against: int = 0
    form: Optional[str] = None
    group: Optional[str] = None
    description: Optional[str] = None


@dataclass
class Team:
    """Team with optional data merged from several endpoints."""

    id: int
    name: str
    short_name: Optional[str] = None
    logo: Optional[str] = None
    league: Optional[str] = None
    country: Optional[str] = None
    founded: Optional[int] = None
    venue: Optional[str] = None
    city: Optional[str] = None
    capacity: Optional[int] = None
    squad: list[dict] = field(default_factory=list)
    stats: Optional[dict] = None
    recent_form: list[str] = field(default_factory=list)
    transfers: list[dict] = field(default_factory=list)
    injuries: list[dict] = field(default_factory=list)

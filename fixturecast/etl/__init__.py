"""ETL module: API-Football access, aggregation and the live feed."""

from fixturecast.etl.api_football import FootballAPIClient, FootballAPIError, get_api_usage, has_budget
from fixturecast.etl.base import LeagueTableRow, LiveMatch, Match, Team
from fixturecast.etl.football_data import FootballDataService

__all__ = [
    "FootballAPIClient",
    "FootballAPIError",
    "FootballDataService",
    "LeagueTableRow",
    "LiveMatch",
    "Match",
    "Team",
    "get_api_usage",
    "has_budget",
]

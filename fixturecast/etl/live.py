"""Live match feed (in-play fixtures from allowed leagues)."""

import logging
from datetime import datetime, timezone
from typing import Optional

from fixturecast.etl.api_football import FootballAPIClient, FootballAPIError
from fixturecast.etl.base import LiveMatch
from fixturecast.etl.football_data import parse_api_date
from fixturecast.etl.leagues import is_allowed_league
from fixturecast.etl.team_names import resolve_team_name
from fixturecast.state import record_error

logger = logging.getLogger(__name__)

LIVE_CACHE_TTL_SECONDS = 15

LIVE_STATUSES = {"LIVE", "HT", "1H", "2H", "ET"}

STATUS_TEXT = {
    "NS": "Not Started",
    "LIVE": "Live",
    "1H": "Live",
    "2H": "Live",
    "ET": "Extra Time",
    "HT": "HT",
    "FT": "FT",
    "CANC": "Cancelled",
    "POSTP": "Postponed",
    "SUSP": "Suspended",
    "TBD": "TBD",
}


def status_text(status: str) -> str:
    """Display text for a status code; unknown codes read as finished."""
    return STATUS_TEXT.get(status, "FT")


def is_match_live(status: str) -> bool:
    return status in LIVE_STATUSES


def format_match_time(match: LiveMatch) -> str:
    if is_match_live(match.status) and match.status != "HT" and match.minute:
        return f"{match.minute}'"
    if match.status in ("HT", "FT"):
        return match.status
    if match.status == "NS":
        return match.date.strftime("%H:%M")
    return status_text(match.status)


def parse_live_fixture(item: dict, now: Optional[datetime] = None) -> Optional[LiveMatch]:
    fixture = item.get("fixture") or {}
    teams = item.get("teams") or {}
    home = teams.get("home") or {}
    away = teams.get("away") or {}
    league = item.get("league") or {}
    status_info = fixture.get("status") or {}
    status = status_info.get("short") or ""
    if not fixture.get("id") or not home or not away:
        return None

    goals = item.get("goals") or {}
    halftime = (item.get("score") or {}).get("halftime") or {}
    return LiveMatch(
        id=str(fixture["id"]),
        home_team=resolve_team_name(home.get("name", "")),
        away_team=resolve_team_name(away.get("name", "")),
        home_team_id=home.get("id"),
        away_team_id=away.get("id"),
        league=league.get("name", ""),
        league_id=league.get("id"),
        date=parse_api_date(fixture.get("date")),
        venue=(fixture.get("venue") or {}).get("name"),
        status=status,
        home_score=goals.get("home") or 0,
        away_score=goals.get("away") or 0,
        home_score_ht=halftime.get("home"),
        away_score_ht=halftime.get("away"),
        minute=status_info.get("elapsed"),
        period=status if status in ("1H", "2H", "ET") else None,
        referee=fixture.get("referee"),
        last_updated=now or datetime.now(timezone.utc),
    )


async def get_live_matches(client: FootballAPIClient) -> list[LiveMatch]:
    """In-play fixtures from allowed leagues; empty on upstream failure."""
    try:
        data = await client.request("/fixtures", {"live": "all"}, ttl=LIVE_CACHE_TTL_SECONDS)
    except FootballAPIError as e:
        logger.error(f"Failed to fetch live matches: {e}")
        record_error("live", str(e), e.kind)
        return []

    now = datetime.now(timezone.utc)
    matches = []
    for item in data.get("response") or []:
        match = parse_live_fixture(item, now)
        if match is None or not is_match_live(match.status):
            continue
        if not is_allowed_league(match.league):
            logger.debug(f"Filtering out live match outside allowed leagues: {match.league}")
            continue
        matches.append(match)
    return matches


async def get_live_match(client: FootballAPIClient, match_id: str) -> Optional[LiveMatch]:
    for match in await get_live_matches(client):
        if match.id == match_id:
            return match
    return None

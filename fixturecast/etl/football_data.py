"""Football data aggregation on top of the API-Football request wrapper."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fixturecast.etl.api_football import FootballAPIClient, FootballAPIError, get_api_usage, has_budget
from fixturecast.etl.base import LeagueTableRow, Match, Team
from fixturecast.etl.leagues import (
    FEATURED_LEAGUES,
    LEAGUE_COUNTRIES,
    LEAGUE_IDS,
    TABLE_LEAGUES,
    TODAY_CUP_COMPETITIONS,
    TODAY_PRIORITY_LEAGUES,
    current_season,
    is_allowed_league,
)
from fixturecast.etl.team_names import resolve_team_name
from fixturecast.state import record_error

logger = logging.getLogger(__name__)


def parse_api_date(value: Optional[str]) -> datetime:
    """Parse an upstream ISO date into an aware UTC datetime."""
    if not value:
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_fixture(item: dict, league: Optional[str] = None) -> Optional[Match]:
    """Map an upstream fixture to Match; None when teams/fixture are missing."""
    fixture = item.get("fixture") or {}
    teams = item.get("teams") or {}
    home = teams.get("home") or {}
    away = teams.get("away") or {}
    if not fixture.get("id") or not home or not away:
        return None

    goals = item.get("goals") or {}
    league_info = item.get("league") or {}
    venue = fixture.get("venue") or {}
    status = (fixture.get("status") or {}).get("short") or "NS"

    return Match(
        id=str(fixture["id"]),
        home_team=resolve_team_name(home.get("name", "")),
        away_team=resolve_team_name(away.get("name", "")),
        home_team_id=home.get("id"),
        away_team_id=away.get("id"),
        league=league or league_info.get("name", ""),
        league_id=league_info.get("id"),
        date=parse_api_date(fixture.get("date")),
        venue=venue.get("name"),
        status=status,
        home_score=goals.get("home"),
        away_score=goals.get("away"),
    )


def result_letter(item: dict, team_id: int) -> str:
    """W/D/L from the perspective of team_id (missing goals count as 0)."""
    goals = item.get("goals") or {}
    home_goals = goals.get("home") or 0
    away_goals = goals.get("away") or 0
    is_home = ((item.get("teams") or {}).get("home") or {}).get("id") == team_id
    mine, theirs = (home_goals, away_goals) if is_home else (away_goals, home_goals)
    if mine > theirs:
        return "W"
    if mine == theirs:
        return "D"
    return "L"


def flatten_standings(payload: dict) -> list[dict]:
    """Flatten response[0].league.standings, which is nested per group."""
    response = payload.get("response") or []
    if not response:
        return []
    container = ((response[0] or {}).get("league") or {}).get("standings") or []
    rows: list[dict] = []
    for entry in container:
        if isinstance(entry, list):
            rows.extend(entry)
        elif isinstance(entry, dict):
            rows.append(entry)
    return rows


def parse_standing_row(row: dict, index: int) -> LeagueTableRow:
    team = row.get("team") or {}
    totals = row.get("all") or {}
    goals = totals.get("goals") or {}
    rank = row.get("rank")
    return LeagueTableRow(
        rank=rank if isinstance(rank, int) else index + 1,
        team_name=resolve_team_name(team.get("name", "")),
        team_id=team.get("id"),
        team_logo=team.get("logo"),
        played=totals.get("played") or 0,
        won=totals.get("win") or 0,
        drawn=totals.get("draw") or 0,
        lost=totals.get("lose") or 0,
        goals_for=goals.get("for") or 0,
        goals_against=goals.get("against") or 0,
        goal_difference=row.get("goalsDiff") or 0,
        points=row.get("points") or 0,
        form=row.get("form"),
        group=row.get("group"),
        description=row.get("description"),
    )


def parse_team(item: dict, league: Optional[str] = None) -> Optional[Team]:
    team = item.get("team") or {}
    if not team.get("id"):
        return None
    venue = item.get("venue") or {}
    name = team.get("name", "")
    return Team(
        id=team["id"],
        name=resolve_team_name(name),
        short_name=team.get("code") or name[:3].upper(),
        logo=team.get("logo"),
        league=league,
        country=team.get("country"),
        founded=team.get("founded"),
        venue=venue.get("name"),
        city=venue.get("city"),
        capacity=venue.get("capacity"),
    )


class FootballDataService:
    """Dashboard-level operations; each degrades to an empty result on upstream failure."""

    def __init__(self, client: FootballAPIClient):
        self.client = client
        self._dynamic_league_ids: dict[str, int] = {}

    async def _fetch(self, endpoint: str, params: dict, what: str) -> Optional[dict]:
        """Request that logs and swallows upstream errors (config errors propagate)."""
        try:
            return await self.client.request(endpoint, params)
        except FootballAPIError as e:
            if e.kind == "config":
                raise
            logger.error(f"Failed to fetch {what}: {e}")
            record_error("football_data", f"{what}: {e}", e.kind)
            return None

    # ------------------------------------------------------------------
    # Leagues
    # ------------------------------------------------------------------

    def get_league_id(self, league: str) -> Optional[int]:
        return LEAGUE_IDS.get(league) or self._dynamic_league_ids.get(league)

    async def resolve_league_id(self, league: str) -> Optional[int]:
        """Static id, else a /leagues search restricted to allowed leagues."""
        league_id = self.get_league_id(league)
        if league_id:
            return league_id
        return await self.search_league_id(league)

    async def search_league_id(self, league: str) -> Optional[int]:
        """Look the league up by name via /leagues (allowed leagues only); result is cached."""
        if not is_allowed_league(league):
            logger.warning(f"Blocked attempt to load unauthorized league: {league}")
            return None
        if league in self._dynamic_league_ids:
            return self._dynamic_league_ids[league]

        country = LEAGUE_COUNTRIES.get(league)
        params = {"search": league}
        if country:
            params["country"] = country
        data = await self._fetch("/leagues", params, f"league id for {league}")
        candidates = (data or {}).get("response") or []
        if not candidates:
            return None

        def _matches(item: dict) -> bool:
            name = ((item.get("league") or {}).get("name") or "").lower()
            item_country = ((item.get("country") or {}).get("name") or "").lower()
            seasons = item.get("seasons")
            active = any(s.get("current") for s in seasons) if isinstance(seasons, list) else True
            country_ok = item_country == country.lower() if country else True
            return league.lower() in name and country_ok and active

        chosen = next((item for item in candidates if _matches(item)), candidates[0])
        league_id = (chosen.get("league") or {}).get("id")
        if league_id:
            self._dynamic_league_ids[league] = int(league_id)
            return int(league_id)
        return None

    # ------------------------------------------------------------------
    # Fixtures
    # ------------------------------------------------------------------

    def _parse_fixtures(self, data: Optional[dict], league: Optional[str] = None) -> list[Match]:
        matches = []
        for item in (data or {}).get("response") or []:
            match = parse_fixture(item, league)
            if match is not None:
                matches.append(match)
        return matches

    async def get_upcoming_fixtures(self, league: str, limit: int = 10) -> list[Match]:
        league_id = self.get_league_id(league)
        if not league_id:
            return []
        data = await self._fetch(
            "/fixtures",
            {"league": league_id, "season": current_season(), "status": "NS"},
            f"upcoming fixtures for {league}",
        )
        return self._parse_fixtures(data, league)[:limit]

    async def get_todays_fixtures(self, league: str, today: Optional[datetime] = None) -> list[Match]:
        league_id = self.get_league_id(league)
        if not league_id:
            return []
        today = today or datetime.now(timezone.utc)
        data = await self._fetch(
            "/fixtures",
            {"league": league_id, "season": current_season(today), "date": today.strftime("%Y-%m-%d")},
            f"today's fixtures for {league}",
        )
        return self._parse_fixtures(data, league)

    async def get_finished_fixtures(self, days_back: int = 3, now: Optional[datetime] = None) -> list[Match]:
        """Finished (FT) fixtures from the last days_back days, for accuracy checks."""
        now = now or datetime.now(timezone.utc)
        start = now - timedelta(days=days_back)
        data = await self._fetch(
            "/fixtures",
            {"from": start.strftime("%Y-%m-%d"), "to": now.strftime("%Y-%m-%d"), "status": "FT"},
            "finished fixtures",
        )
        matches = self._parse_fixtures(data)
        for match in matches:
            match.home_score = match.home_score or 0
            match.away_score = match.away_score or 0
        logger.info(f"Found {len(matches)} finished matches in last {days_back} days")
        return matches

    async def get_fixture(self, fixture_id: str) -> Optional[Match]:
        data = await self._fetch("/fixtures", {"id": fixture_id}, f"fixture {fixture_id}")
        matches = self._parse_fixtures(data)
        return matches[0] if matches else None

    async def get_all_upcoming_fixtures(self, now: Optional[datetime] = None) -> list[Match]:
        """
        Dashboard fixture list: today's games first, then upcoming.

        Order of loading: today's games in the priority leagues, today's cup
        and continental games, then upcoming fixtures from featured leagues.
        Stops loading when the soft budget is reached. Duplicates (same id)
        are dropped, keeping the first occurrence.
        """
        now = now or datetime.now(timezone.utc)
        todays: list[Match] = []
        upcoming: list[Match] = []

        for league in TODAY_PRIORITY_LEAGUES:
            if not has_budget():
                logger.warning("API budget reached while loading today's games")
                break
            todays.extend(await self.get_todays_fixtures(league, now))

        for comp_id, comp_name in TODAY_CUP_COMPETITIONS:
            if not has_budget():
                break
            data = await self._fetch(
                "/fixtures",
                {"league": comp_id, "season": current_season(now), "date": now.strftime("%Y-%m-%d")},
                f"today's {comp_name} fixtures",
            )
            todays.extend(self._parse_fixtures(data, comp_name))

        for league in FEATURED_LEAGUES:
            if not has_budget():
                logger.warning("API budget soft limit reached; skipping remaining leagues for fixtures")
                break
            upcoming.extend(await self.get_upcoming_fixtures(league, 7))

        seen: set[str] = set()
        unique: list[Match] = []
        for match in todays + upcoming:
            if match.id in seen:
                continue
            seen.add(match.id)
            unique.append(match)

        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        day_end = day_start + timedelta(days=1)
        unique.sort(key=lambda m: (not (day_start <= m.date < day_end), m.date))

        todays_count = sum(1 for m in unique if day_start <= m.date < day_end)
        logger.info(f"Loaded {len(unique)} fixtures ({todays_count} today)")
        return unique

    # ------------------------------------------------------------------
    # Teams
    # ------------------------------------------------------------------

    async def get_teams_by_league(self, league: str) -> dict[str, Team]:
        """Teams keyed by canonical name; retries once with a dynamically resolved id."""
        league_id = await self.resolve_league_id(league)
        if not league_id:
            logger.warning(f"No league ID found for {league}")
            return {}

        teams = await self._teams_for_league_id(league_id, league)
        if not teams:
            dynamic_id = await self.search_league_id(league)
            if dynamic_id and dynamic_id != league_id:
                teams = await self._teams_for_league_id(dynamic_id, league)
        return teams

    async def _teams_for_league_id(self, league_id: int, league: str) -> dict[str, Team]:
        data = await self._fetch("/teams", {"league": league_id, "season": current_season()}, f"teams for {league}")
        teams: dict[str, Team] = {}
        for item in (data or {}).get("response") or []:
            team = parse_team(item, league)
            if team is not None and team.name not in teams:
                teams[team.name] = team
        return teams

    async def get_all_teams(self) -> dict[str, Team]:
        all_teams: dict[str, Team] = {}
        for league in TABLE_LEAGUES:
            if not has_budget():
                logger.warning("API budget soft limit reached; skipping remaining leagues for teams")
                break
            league_id = self.get_league_id(league)
            if not league_id:
                continue
            for name, team in (await self._teams_for_league_id(league_id, league)).items():
                all_teams.setdefault(name, team)
        return all_teams

    async def get_team_info(self, team_name: str) -> Optional[Team]:
        data = await self._fetch("/teams", {"search": team_name}, f"team info for {team_name}")
        for item in (data or {}).get("response") or []:
            team = parse_team(item)
            if team is not None:
                return team
        logger.warning(f"No team data found for {team_name}")
        return None

    async def get_team_details(self, team_id: int, league: Optional[str] = None) -> Optional[Team]:
        """
        Team info merged with squad, season stats, recent form, transfers and injuries.

        The five lookups run concurrently; one failing leaves its field empty.
        """
        data = await self._fetch("/teams", {"id": team_id}, f"team {team_id}")
        items = (data or {}).get("response") or []
        team = parse_team(items[0], league) if items else None
        if team is None:
            return None

        league_id = self.get_league_id(league) if league else None
        results = await asyncio.gather(
            self.get_squad(team_id),
            self.get_team_stats(team_id, league_id) if league_id else _none(),
            self.get_recent_team_form(team_id),
            self.get_transfers(team_id),
            self.get_injuries(team_id, league_id),
            return_exceptions=True,
        )
        squad, stats, form, transfers, injuries = [
            None if isinstance(r, BaseException) else r for r in results
        ]
        for r in results:
            if isinstance(r, BaseException):
                logger.warning(f"Team {team_id} detail lookup failed: {r}")

        team.squad = squad or []
        team.stats = stats
        team.recent_form = form or []
        team.transfers = transfers or []
        team.injuries = injuries or []
        return team

    async def get_squad(self, team_id: int) -> list[dict]:
        data = await self._fetch("/players/squads", {"team": team_id}, f"squad for team {team_id}")
        response = (data or {}).get("response") or []
        players = (response[0] or {}).get("players", []) if response else []
        return [
            {
                "id": p.get("id"),
                "name": p.get("name"),
                "position": p.get("position"),
                "age": p.get("age") or 0,
                "number": p.get("number"),
                "photo": p.get("photo"),
            }
            for p in players
        ]

    async def get_transfers(self, team_id: int) -> list[dict]:
        data = await self._fetch("/transfers", {"team": team_id}, f"transfers for team {team_id}")
        transfers = []
        for entry in ((data or {}).get("response") or [])[:10]:
            player = entry.get("player") or {}
            for move in entry.get("transfers") or []:
                teams = move.get("teams") or {}
                transfers.append(
                    {
                        "player": player.get("name"),
                        "date": move.get("date"),
                        "type": move.get("type"),
                        "from": (teams.get("out") or {}).get("name"),
                        "to": (teams.get("in") or {}).get("name"),
                    }
                )
        return transfers

    async def get_team_stats(self, team_id: int, league_id: int) -> Optional[dict]:
        data = await self._fetch(
            "/teams/statistics",
            {"team": team_id, "league": league_id, "season": current_season()},
            f"team stats for team {team_id}",
        )
        return (data or {}).get("response") or None

    async def get_recent_team_form(self, team_id: int, last: int = 5) -> list[str]:
        """Last results as W/D/L letters, most recent first as returned upstream."""
        data = await self._fetch(
            "/fixtures",
            {"team": team_id, "season": current_season(), "last": last},
            f"recent form for team {team_id}",
        )
        return [result_letter(item, team_id) for item in (data or {}).get("response") or []]

    async def get_injuries(self, team_id: int, league_id: Optional[int] = None) -> list[dict]:
        """League-scoped injuries, falling back to unscoped when that returns nothing."""
        season = current_season()
        injuries: list = []
        if league_id:
            data = await self._fetch(
                "/injuries",
                {"team": team_id, "league": league_id, "season": season},
                f"injuries for team {team_id}",
            )
            injuries = (data or {}).get("response") or []
        if not injuries:
            data = await self._fetch("/injuries", {"team": team_id, "season": season}, f"injuries for team {team_id}")
            injuries = (data or {}).get("response") or []
        return injuries

    # ------------------------------------------------------------------
    # Tables / H2H
    # ------------------------------------------------------------------

    async def get_league_table(self, league: str) -> list[LeagueTableRow]:
        league_id = self.get_league_id(league)
        if not league_id:
            logger.warning(f"League ID not found for {league}")
            return []
        data = await self._fetch(
            "/standings",
            {"league": league_id, "season": current_season()},
            f"league table for {league}",
        )
        rows = flatten_standings(data or {})
        return [parse_standing_row(row, index) for index, row in enumerate(rows)]

    async def get_all_league_tables(self) -> dict[str, list[LeagueTableRow]]:
        tables: dict[str, list[LeagueTableRow]] = {}
        for league in TABLE_LEAGUES:
            if not has_budget():
                logger.warning("API budget soft limit reached; skipping remaining leagues for tables")
                break
            tables[league] = await self.get_league_table(league)
        return tables

    async def get_head_to_head(self, team1_id: int, team2_id: int, last: int = 5) -> list[dict]:
        data = await self._fetch(
            "/fixtures/headtohead",
            {"h2h": f"{team1_id}-{team2_id}", "last": last},
            f"H2H for teams {team1_id} vs {team2_id}",
        )
        return (data or {}).get("response") or []

    # ------------------------------------------------------------------
    # Usage / cache
    # ------------------------------------------------------------------

    def get_api_usage(self) -> dict:
        return get_api_usage()

    def clear_cache(self) -> None:
        self.client.clear_cache()


async def _none() -> None:
    return None

"""Plain-text context snippets fed into the prediction prompt."""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Optional

from fixturecast.etl.base import LeagueTableRow, Match


@dataclass
class MatchContext:
    league_table: str = ""
    home_form: str = "No recent matches found"
    away_form: str = "No recent matches found"
    head_to_head: str = "No H2H data available."
    btts_historic: str = ""
    home_stats: str = ""
    away_stats: str = ""
    home_injuries: str = ""
    away_injuries: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PastResult:
    """Finished match used for form when no live form is available."""

    home_team: str
    away_team: str
    date: datetime
    home_score: int
    away_score: int


def _result_letter(result: PastResult, team: str) -> str:
    if result.home_score == result.away_score:
        return "D"
    if team == result.home_team:
        return "W" if result.home_score > result.away_score else "L"
    return "W" if result.away_score > result.home_score else "L"


def _row(row: LeagueTableRow) -> str:
    return f"{row.rank}. {row.team_name} ({row.points}pts)"


def league_table_snippet(match: Match, table: Optional[list[LeagueTableRow]]) -> str:
    """Top 5, both teams (when outside top/bottom) and bottom 3."""
    if not table:
        return ""
    top = table[:5]
    bottom = table[-3:]
    shown = {row.team_name for row in top} | {row.team_name for row in bottom}

    snippet = f"Top 5: {', '.join(_row(r) for r in top)}. "
    for row in table:
        if row.team_name in (match.home_team, match.away_team) and row.team_name not in shown:
            snippet += f"{_row(row)}. "
    snippet += f"Bottom 3: {', '.join(_row(r) for r in bottom)}."
    return snippet


def team_form_snippet(team: str, past_results: Optional[list[PastResult]]) -> str:
    """Last five results for team, newest first, e.g. "W, D, L"."""
    if not past_results:
        return "No recent matches found"
    played = [r for r in past_results if team in (r.home_team, r.away_team)]
    played.sort(key=lambda r: r.date, reverse=True)
    if not played:
        return "No recent matches found"
    return ", ".join(_result_letter(r, team) for r in played[:5])


def head_to_head_snippets(match: Match, h2h: Optional[list[dict]]) -> tuple[str, str]:
    """Returns (H2H summary, BTTS rate) from upstream head-to-head fixtures."""
    if not h2h:
        return "No H2H data available.", ""

    home_wins = away_wins = draws = both_scored = 0
    for fixture in h2h:
        goals = fixture.get("goals") or {}
        if (goals.get("home") or 0) > 0 and (goals.get("away") or 0) > 0:
            both_scored += 1
        teams = fixture.get("teams") or {}
        home = teams.get("home") or {}
        away = teams.get("away") or {}
        if home.get("winner"):
            if home.get("id") == match.home_team_id:
                home_wins += 1
            else:
                away_wins += 1
        elif away.get("winner"):
            if away.get("id") == match.away_team_id:
                away_wins += 1
            else:
                home_wins += 1
        else:
            draws += 1

    total = len(h2h)
    summary = (
        f"Last {total} meetings: {match.home_team} {home_wins} wins, "
        f"{match.away_team} {away_wins} wins, {draws} draws."
    )
    btts = f"BTTS occurred in {both_scored} of last {total} meetings ({int(both_scored / total * 100 + 0.5)}%)."
    return summary, btts


def stats_snippet(stats: Optional[dict], team: str) -> str:
    if not stats or not stats.get("goals"):
        return f"No detailed stats for {team}."
    goals = stats["goals"]
    scored = (((goals.get("for") or {}).get("total") or {}).get("total")) or 0
    conceded = (((goals.get("against") or {}).get("total") or {}).get("total")) or 0
    return f"Form: {stats.get('form') or 'N/A'}. Goals Scored: {scored}, Conceded: {conceded}."


def injuries_snippet(injuries: Optional[list[dict]], team: str) -> str:
    if not injuries:
        return f"No reported injuries for {team}."
    names = [(i.get("player") or {}).get("name") or "Unknown" for i in injuries]
    return f"Out: {', '.join(names)}."


def build_context_for_match(
    match: Match,
    table: Optional[list[LeagueTableRow]] = None,
    past_results: Optional[list[PastResult]] = None,
    h2h: Optional[list[dict]] = None,
    home_stats: Optional[dict] = None,
    away_stats: Optional[dict] = None,
    home_injuries: Optional[list[dict]] = None,
    away_injuries: Optional[list[dict]] = None,
    home_form: Optional[str] = None,
    away_form: Optional[str] = None,
) -> MatchContext:
    """
    Assemble every snippet for a fixture. Any input may be missing.

    home_form / away_form override the form derived from past_results.
    """
    head_to_head, btts = head_to_head_snippets(match, h2h)
    return MatchContext(
        league_table=league_table_snippet(match, table),
        home_form=home_form or team_form_snippet(match.home_team, past_results),
        away_form=away_form or team_form_snippet(match.away_team, past_results),
        head_to_head=head_to_head,
        btts_historic=btts,
        home_stats=stats_snippet(home_stats, match.home_team),
        away_stats=stats_snippet(away_stats, match.away_team),
        home_injuries=injuries_snippet(home_injuries, match.home_team),
        away_injuries=injuries_snippet(away_injuries, match.away_team),
    )

"""
Match of the Day heuristic.

score = round((home prestige + away prestige) * league multiplier
              + 50 if the teams are rivals
              + 10 on Saturday/Sunday)

Unknown teams score 30 prestige; unknown leagues get a 1.0 multiplier.
Weekdays and hours are evaluated in UTC.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from fixturecast.etl.base import LeagueTableRow, Match

DEFAULT_PRESTIGE = 30
RIVALRY_BONUS = 50
WEEKEND_BONUS = 10

TEAM_PRESTIGE_SCORES: dict[str, int] = {
    # Tier 1: global superpowers
    "Manchester United": 100,
    "Real Madrid": 100,
    "Barcelona": 95,
    "Liverpool": 95,
    "Bayern Munich": 95,
    "Manchester City": 90,
    "Arsenal": 90,
    "Chelsea": 90,
    "Juventus": 90,
    "AC Milan": 90,
    "Inter": 90,
    "Paris Saint Germain": 90,
    # Tier 2: elite European teams
    "Tottenham": 85,
    "Atletico Madrid": 85,
    "Borussia Dortmund": 85,
    "Napoli": 80,
    "Newcastle": 80,
    "West Ham": 75,
    "Aston Villa": 75,
    "Brighton": 75,
    "Sevilla": 75,
    "Valencia": 75,
    "Villarreal": 75,
    "Athletic Club": 75,
    "Real Sociedad": 75,
    "Roma": 75,
    "Lazio": 75,
    "Atalanta": 75,
    "Fiorentina": 75,
    "RB Leipzig": 75,
    "Bayer Leverkusen": 75,
    "Eintracht Frankfurt": 75,
    "Lyon": 75,
    "Marseille": 75,
    "Monaco": 75,
    # Tier 3: strong teams
    "Everton": 70,
    "Leicester": 70,
    "Crystal Palace": 65,
    "Fulham": 65,
    "Brentford": 65,
    "Wolves": 65,
    "Nottingham Forest": 65,
    "Bournemouth": 60,
    "Sheffield United": 55,
    "Burnley": 55,
    "Luton": 50,
    "Real Betis": 70,
    "Getafe": 60,
    "Real Valladolid": 55,
    "Osasuna": 55,
    "Bologna": 65,
    "Torino": 60,
    "Genoa": 55,
    "Lecce": 50,
    "Werder Bremen": 65,
    "Union Berlin": 60,
    "Freiburg": 60,
    "Hoffenheim": 55,
    "Augsburg": 50,
    "Lille": 65,
    "Rennes": 60,
    "Nice": 60,
    "Montpellier": 55,
    "Strasbourg": 50,
}

LEAGUE_MULTIPLIERS: dict[str, float] = {
    "UEFA Champions League": 1.5,
    "Premier League": 1.3,
    "La Liga": 1.2,
    "Serie A": 1.2,
    "Bundesliga": 1.2,
    "Ligue 1": 1.1,
    "UEFA Europa League": 1.1,
    "UEFA Europa Conference League": 1.0,
    "EFL Championship": 0.7,
}

RIVALRIES: dict[str, list[str]] = {
    # Premier League
    "Manchester United": ["Manchester City", "Liverpool", "Arsenal", "Chelsea", "Leeds United"],
    "Manchester City": ["Manchester United", "Liverpool"],
    "Liverpool": ["Manchester United", "Manchester City", "Everton", "Chelsea"],
    "Arsenal": ["Tottenham", "Chelsea", "Manchester United"],
    "Chelsea": ["Arsenal", "Tottenham", "Liverpool", "Manchester United"],
    "Tottenham": ["Arsenal", "Chelsea"],
    "Everton": ["Liverpool"],
    "Newcastle": ["Sunderland", "Middlesbrough"],
    "West Ham": ["Tottenham", "Chelsea", "Millwall"],
    "Aston Villa": ["Birmingham City"],
    "Leicester": ["Nottingham Forest", "Derby County"],
    "Nottingham Forest": ["Leicester", "Derby County"],
    "Southampton": ["Portsmouth"],
    "Brighton": ["Crystal Palace"],
    "Crystal Palace": ["Brighton"],
    "Brentford": ["Fulham", "QPR"],
    "Fulham": ["Brentford", "QPR", "Chelsea"],
    "Wolves": ["West Bromwich Albion", "Birmingham City"],
    "Bournemouth": ["Southampton"],
    "Ipswich": ["Norwich City"],
    # La Liga
    "Real Madrid": ["Barcelona", "Atletico Madrid", "Sevilla"],
    "Barcelona": ["Real Madrid", "Espanyol", "Atletico Madrid"],
    "Atletico Madrid": ["Real Madrid", "Barcelona"],
    "Sevilla": ["Real Betis", "Real Madrid"],
    "Real Betis": ["Sevilla"],
    "Valencia": ["Villarreal", "Levante"],
    "Villarreal": ["Valencia"],
    "Athletic Club": ["Real Sociedad"],
    "Real Sociedad": ["Athletic Club"],
    # Serie A
    "Juventus": ["Inter", "AC Milan", "Torino", "Napoli"],
    "Inter": ["AC Milan", "Juventus", "Napoli"],
    "AC Milan": ["Inter", "Juventus", "Napoli"],
    "Napoli": ["Juventus", "Inter", "AC Milan", "Roma"],
    "Roma": ["Lazio", "Napoli"],
    "Lazio": ["Roma"],
    "Atalanta": ["Inter", "AC Milan"],
    "Fiorentina": ["Juventus", "Inter", "AC Milan"],
    "Bologna": ["Inter", "AC Milan"],
    "Torino": ["Juventus"],
    # Bundesliga
    "Bayern Munich": ["Borussia Dortmund", "RB Leipzig", "1860 Munich"],
    "Borussia Dortmund": ["Bayern Munich", "Schalke 04", "RB Leipzig"],
    "RB Leipzig": ["Bayern Munich", "Borussia Dortmund"],
    "Bayer Leverkusen": ["Cologne"],
    "Eintracht Frankfurt": ["Mainz 05"],
    "Hoffenheim": ["Stuttgart"],
    "Freiburg": ["Stuttgart"],
    "Augsburg": ["1860 Munich"],
    "Werder Bremen": ["Hamburg"],
    "Stuttgart": ["Hoffenheim", "Freiburg"],
    # Ligue 1
    "Paris Saint Germain": ["Marseille", "Lyon", "Monaco"],
    "Marseille": ["Paris Saint Germain", "Lyon", "Monaco"],
    "Lyon": ["Paris Saint Germain", "Marseille", "Saint-Etienne"],
    "Monaco": ["Paris Saint Germain", "Marseille", "Nice"],
    "Lille": ["Lens", "Lyon"],
    "Lens": ["Lille"],
    "Nice": ["Monaco", "Marseille"],
    "Rennes": ["Nantes"],
    "Montpellier": ["Nimes"],
    "Strasbourg": ["Metz"],
    # Primeira Liga
    "Benfica": ["Porto", "Sporting CP"],
    "Porto": ["Benfica", "Sporting CP"],
    "Sporting CP": ["Benfica", "Porto"],
    "Braga": ["Vitória Guimarães"],
    "Vitória Guimarães": ["Braga"],
    # Süper Lig
    "Galatasaray": ["Fenerbahçe", "Beşiktaş"],
    "Fenerbahçe": ["Galatasaray", "Beşiktaş"],
    "Beşiktaş": ["Galatasaray", "Fenerbahçe"],
    "Trabzonspor": ["Fenerbahçe"],
    "Başakşehir": ["Galatasaray", "Fenerbahçe"],
    # Liga MX
    "Club America": ["Guadalajara", "Cruz Azul", "UNAM"],
    "Guadalajara": ["Club America", "Atlas"],
    "Cruz Azul": ["Club America", "UNAM"],
    "UNAM": ["Club America", "Cruz Azul"],
    "Tigres UANL": ["Monterrey"],
    "Monterrey": ["Tigres UANL"],
    "Santos Laguna": ["Monterrey"],
    "Pachuca": ["Toluca"],
    "Toluca": ["Pachuca"],
    "León": ["Pachuca"],
    # MLS
    "LA Galaxy": ["LAFC", "San Jose Earthquakes"],
    "LAFC": ["LA Galaxy"],
    "Seattle Sounders": ["Portland Timbers", "Vancouver Whitecaps"],
    "Portland Timbers": ["Seattle Sounders", "Vancouver Whitecaps"],
    "New York City FC": ["New York Red Bulls"],
    "New York Red Bulls": ["New York City FC", "DC United"],
    "Atlanta United": ["Orlando City"],
    "Inter Miami": ["Orlando City"],
    "Toronto FC": ["Montreal Impact", "Vancouver Whitecaps"],
    "Vancouver Whitecaps": ["Seattle Sounders", "Portland Timbers", "Toronto FC"],
}


def _round(value: float) -> int:
    """Round half up (0.5 -> 1), not to even."""
    return int(math.floor(value + 0.5))


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def get_team_prestige_score(team_name: str) -> int:
    return TEAM_PRESTIGE_SCORES.get(team_name, DEFAULT_PRESTIGE)


def get_league_multiplier(league: str) -> float:
    return LEAGUE_MULTIPLIERS.get(league, 1.0)


def is_rivalry(home_team: str, away_team: str) -> bool:
    """Rivalry pairs are checked in both directions."""
    return away_team in RIVALRIES.get(home_team, []) or home_team in RIVALRIES.get(away_team, [])


def is_weekend(match_date: datetime) -> bool:
    return _utc(match_date).weekday() >= 5


def score_match(match: Match) -> int:
    """Heuristic interest score for a fixture."""
    total = get_team_prestige_score(match.home_team) + get_team_prestige_score(match.away_team)
    total *= get_league_multiplier(match.league)
    if is_rivalry(match.home_team, match.away_team):
        total += RIVALRY_BONUS
    if is_weekend(match.date):
        total += WEEKEND_BONUS
    return _round(total)


def select_match_of_the_day(fixtures: list[Match], now: Optional[datetime] = None) -> Optional[Match]:
    """
    Highest-scoring fixture in the window [today 00:00 - 12h, today 00:00 + 36h).

    Falls back to the first 10 fixtures when nothing falls inside the window.
    Ties keep the earlier fixture.
    """
    if not fixtures:
        return None

    now = _utc(now or datetime.now(timezone.utc))
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    window_start = today - timedelta(hours=12)
    window_end = today + timedelta(hours=36)

    todays = [m for m in fixtures if window_start <= _utc(m.date) < window_end]
    candidates = todays or fixtures[:10]

    best = candidates[0]
    best_score = score_match(best)
    for match in candidates[1:]:
        score = score_match(match)
        if score > best_score:
            best, best_score = match, score
    return best


def get_match_score_breakdown(match: Match) -> dict:
    """Component-by-component view of score_match for debugging/UI."""
    home_score = get_team_prestige_score(match.home_team)
    away_score = get_team_prestige_score(match.away_team)
    base_score = home_score + away_score
    multiplier = get_league_multiplier(match.league)
    league_adjusted = base_score * multiplier
    rivalry = RIVALRY_BONUS if is_rivalry(match.home_team, match.away_team) else 0
    weekend = WEEKEND_BONUS if is_weekend(match.date) else 0

    return {
        "match": f"{match.home_team} vs {match.away_team}",
        "league": match.league,
        "date": match.date.isoformat(),
        "scores": {
            "homeTeam": f"{match.home_team} ({home_score})",
            "awayTeam": f"{match.away_team} ({away_score})",
            "baseScore": base_score,
            "leagueMultiplier": multiplier,
            "leagueAdjustedScore": _round(league_adjusted),
            "rivalry": rivalry,
            "weekendBonus": weekend,
            "total": _round(league_adjusted + rivalry + weekend),
        },
    }


def get_prime_time_score(match: Match) -> int:
    """Viewing-slot score: weekend/Friday bonus plus a kickoff-hour band."""
    kickoff = _utc(match.date)
    score = 0

    if kickoff.weekday() >= 5:
        score += 30
    elif kickoff.weekday() == 4:
        score += 15

    hour = kickoff.hour
    if 17 <= hour <= 20:
        score += 25
    elif 15 <= hour <= 16:
        score += 20
    elif 12 <= hour <= 14:
        score += 10
    elif 21 <= hour <= 22:
        score += 15

    return score


def get_table_context_score(match: Match, table: list[LeagueTableRow]) -> int:
    """Bonus for fixtures between teams that matter to each other in the table."""
    if not table:
        return 0

    names = [row.team_name for row in table]
    if match.home_team not in names or match.away_team not in names:
        return 0

    home_pos = names.index(match.home_team)
    away_pos = names.index(match.away_team)
    total = len(table)

    if home_pos < 3 and away_pos < 3:
        return 40  # title race
    if home_pos < 6 and away_pos < 6:
        return 30
    if home_pos < 10 and away_pos < 10:
        return 20
    if home_pos >= total - 3 and away_pos >= total - 3:
        return 25  # relegation battle
    if abs(home_pos - away_pos) <= 2:
        return 15
    return 0

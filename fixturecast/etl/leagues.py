"""League catalogue and season helpers for API-Football."""

from datetime import datetime
from typing import Optional

# League name -> API-Football league id
LEAGUE_IDS: dict[str, int] = {
    "Premier League": 39,
    "La Liga": 140,
    "Serie A": 135,
    "Bundesliga": 78,
    "Ligue 1": 61,
    "UEFA Champions League": 2,
    "UEFA Europa League": 3,
    "UEFA Europa Conference League": 848,
    "EFL Championship": 40,
    "Brasileirão Série A": 71,
    "Argentine Liga Profesional": 128,
    "Eredivisie": 88,
    "Primeira Liga": 94,
    "Scottish Premiership": 179,
    "Süper Lig": 203,
    "Liga MX": 262,
    "Major League Soccer": 253,
    # Second divisions
    "2. Bundesliga": 79,
    "Ligue 2": 62,
    "Serie B": 136,
    "Segunda División": 141,
    "Liga Portugal 2": 97,
    # Additional top divisions
    "Belgian Pro League": 144,
    "A-League": 188,
    "Super League 1": 197,
    "Primera A": 279,
    "Primera División": 265,
    "FA WSL": 100,
    "NWSL": 254,
    "AFC Champions League": 11,
    "Copa Libertadores": 13,
}

# Country hints to disambiguate dynamic /leagues?search= lookups
LEAGUE_COUNTRIES: dict[str, str] = {
    "Premier League": "England",
    "La Liga": "Spain",
    "Serie A": "Italy",
    "Bundesliga": "Germany",
    "Ligue 1": "France",
    "2. Bundesliga": "Germany",
    "Ligue 2": "France",
    "Serie B": "Italy",
    "Segunda División": "Spain",
    "Liga Portugal 2": "Portugal",
    "Belgian Pro League": "Belgium",
    "A-League": "Australia",
    "Super League 1": "Greece",
    "Primera A": "Colombia",
    "Primera División": "Chile",
    "FA WSL": "England",
    "AFC Champions League": "Asia",
    "Copa Libertadores": "South America",
}

# Only these competitions are surfaced (fixtures, live, dynamic lookups)
ALLOWED_LEAGUES: list[str] = [
    # UEFA
    "UEFA Champions League",
    "UEFA Europa League",
    "UEFA Europa Conference League",
    # Top 5 + Championship
    "Premier League",
    "La Liga",
    "Serie A",
    "Bundesliga",
    "Ligue 1",
    "EFL Championship",
    "Championship",
    # Other European
    "Eredivisie",
    "Primeira Liga",
    "Scottish Premiership",
    "Turkish Süper Lig",
    "Belgian Pro League",
    # Americas
    "Liga MX",
    "Major League Soccer",
    "Brasileirão Série A",
    "Argentine Liga Profesional",
]

# Leagues loaded for the dashboard's upcoming fixture list
FEATURED_LEAGUES: list[str] = [
    "Premier League",
    "EFL Championship",
    "La Liga",
    "Serie A",
    "Bundesliga",
    "Ligue 1",
    "Eredivisie",
    "Primeira Liga",
    "Scottish Premiership",
    "Brasileirão Série A",
    "Argentine Liga Profesional",
]

# League tables additionally cover these
TABLE_LEAGUES: list[str] = FEATURED_LEAGUES + [
    "Süper Lig",
    "Liga MX",
    "Major League Soccer",
]

# Checked first for today's games
TODAY_PRIORITY_LEAGUES: list[str] = [
    "Premier League",
    "La Liga",
    "Serie A",
    "Bundesliga",
    "Ligue 1",
]

# Cup / continental competitions checked for today's games (id, display name)
TODAY_CUP_COMPETITIONS: list[tuple[int, str]] = [
    (2, "UEFA Champions League"),
    (3, "UEFA Europa League"),
    (48, "League Cup"),
    (45, "FA Cup"),
]


def current_season(now: Optional[datetime] = None) -> int:
    """API-Football season year: seasons start in August."""
    now = now or datetime.utcnow()
    return now.year if now.month >= 8 else now.year - 1


def get_league_id(league: str) -> Optional[int]:
    """Static lookup; see FootballDataService.resolve_league_id for the dynamic path."""
    return LEAGUE_IDS.get(league)


def is_allowed_league(league: str) -> bool:
    target = (league or "").lower()
    return any(allowed.lower() == target for allowed in ALLOWED_LEAGUES)

"""Team name aliases -> canonical names used across the dashboard."""

TEAM_ALIASES: dict[str, str] = {
    "PSG": "Paris Saint Germain",
    "Paris Saint-Germain": "Paris Saint Germain",
    "Man City": "Manchester City",
    "Manchester City FC": "Manchester City",
    "Man United": "Manchester United",
    "Man Utd": "Manchester United",
    "Manchester Utd": "Manchester United",
    "Spurs": "Tottenham",
    "Inter Milan": "Inter",
    "Internazionale": "Inter",
    "Athletic Bilbao": "Athletic Club",
    "Real Betis Balompié": "Real Betis",
    "Bayern München": "Bayern Munich",
    "Bayer 04 Leverkusen": "Bayer Leverkusen",
    "1. FC Köln": "FC Koln",
    "Newcastle United": "Newcastle",
    # NPFL
    "Enyimba International": "Enyimba",
    "Rangers International": "Enugu Rangers",
    "Rangers Int.": "Enugu Rangers",
    "Shooting Stars SC": "Shooting Stars",
    "3SC": "Shooting Stars",
    "Wikki Tourists FC": "Wikki Tourists",
    "Warri Wolves FC": "Warri Wolves",
    "Kano Pillars FC": "Kano Pillars",
    "Katsina Utd": "Katsina United",
    "Kwara Utd": "Kwara United",
    "Plateau Utd": "Plateau United",
    "Remo Stars FC": "Remo Stars",
    "Rivers Utd": "Rivers United",
    "Niger Tornadoes FC": "Niger Tornadoes",
    "Nasarawa Utd": "Nasarawa United",
    "Bendel Insurance FC": "Bendel Insurance",
    "Bayelsa Utd": "Bayelsa United",
    "Abia Warriors FC": "Abia Warriors",
    "El Kanemi Warriors": "El-Kanemi Warriors",
}


def resolve_team_name(name: str) -> str:
    """Map an upstream team name to its canonical form (unknown names pass through trimmed)."""
    key = (name or "").strip()
    if not key:
        return name
    return TEAM_ALIASES.get(key, key)

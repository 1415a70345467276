"""
Supported leagues and season label formatting.

TheSportsDB labels seasons per league: European leagues span two
calendar years ("2024-2025"), MLS uses the single calendar year ("2024").
"""
from dataclasses import dataclass
from typing import Dict, List

from app.services.sync.exceptions import ConfigurationError

LA_LIGA_ID = "4335"
MLS_ID = "4346"


@dataclass(frozen=True)
class LeagueInfo:
    league_id: str
    name: str
    alternate_name: str
    country: str
    description: str
    badge_url: str
    split_season: bool  # True -> "YYYY-YYYY+1"


# Processing order matters: sync walks leagues in this order.
LEAGUES: Dict[str, LeagueInfo] = {
    LA_LIGA_ID: LeagueInfo(
        league_id=LA_LIGA_ID,
        name="Spanish La Liga",
        alternate_name="La Liga",
        country="Spain",
        description="The top professional football division of the Spanish football league system.",
        badge_url="https://r2.thesportsdb.com/images/media/league/badge/ja4it51687628717.png",
        split_season=True,
    ),
    MLS_ID: LeagueInfo(
        league_id=MLS_ID,
        name="Major League Soccer",
        alternate_name="MLS",
        country="USA",
        description="The top professional soccer league in the United States and Canada.",
        badge_url="https://www.thesportsdb.com/images/media/league/badge/4346.png",
        split_season=False,
    ),
}


def supported_league_ids() -> List[str]:
    return list(LEAGUES.keys())


def get_league(league_id: str) -> LeagueInfo:
    """Look up a supported league, raising ConfigurationError when unknown."""
    league = LEAGUES.get(str(league_id))
    if league is None:
        raise ConfigurationError(f"Unsupported league: {league_id}")
    return league


def format_season(league_id: str, year: int) -> str:
    """
    Format the season label TheSportsDB uses for a league and start year.

    Args:
        league_id: TheSportsDB league id ("4335" or "4346")
        year: Season start year

    Returns:
        "2024-2025" for La Liga, "2024" for MLS

    Raises:
        ConfigurationError: If the league is not supported
    """
    league = get_league(league_id)
    if league.split_season:
        return f"{year}-{year + 1}"
    return str(year)

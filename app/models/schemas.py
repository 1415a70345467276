"""
Pydantic models for provider payloads and service results.

TheSportsDB returns loosely typed JSON (numbers as strings, "" for
missing values, occasionally real integers). The provider models
normalise that into explicit optional fields so downstream code never
has to guess.
"""
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class Coordinates(BaseModel):
    """Decimal latitude/longitude pair."""
    model_config = ConfigDict(frozen=True)

    lat: float
    lon: float


class WeatherSnapshot(BaseModel):
    """Historical weather at kickoff (OpenWeather One Call 3.0 timemachine)."""

    temperature: Optional[float] = None
    feels_like: Optional[float] = None
    humidity: Optional[float] = None
    pressure: Optional[float] = None
    visibility: Optional[float] = None  # km
    wind_speed: Optional[float] = None
    wind_direction: Optional[float] = None
    clouds: Optional[float] = None
    weather: Optional[str] = None  # category, e.g. "Rain"
    weather_description: Optional[str] = None
    weather_icon: Optional[str] = None
    lat: float
    lon: float
    timestamp: str


class SportsDbEvent(BaseModel):
    """One entry of TheSportsDB `events` array."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id_event: str = Field(alias="idEvent")
    id_api_football: Optional[str] = Field(default=None, alias="idAPIfootball")
    event_name: Optional[str] = Field(default=None, alias="strEvent")
    event_name_alternate: Optional[str] = Field(default=None, alias="strEventAlternate")
    sport: Optional[str] = Field(default=None, alias="strSport")
    league_id: Optional[str] = Field(default=None, alias="idLeague")
    league_name: Optional[str] = Field(default=None, alias="strLeague")
    season: Optional[str] = Field(default=None, alias="strSeason")
    description: Optional[str] = Field(default=None, alias="strDescriptionEN")
    home_team_id: Optional[str] = Field(default=None, alias="idHomeTeam")
    home_team: Optional[str] = Field(default=None, alias="strHomeTeam")
    home_team_badge: Optional[str] = Field(default=None, alias="strHomeTeamBadge")
    away_team_id: Optional[str] = Field(default=None, alias="idAwayTeam")
    away_team: Optional[str] = Field(default=None, alias="strAwayTeam")
    away_team_badge: Optional[str] = Field(default=None, alias="strAwayTeamBadge")
    home_score: Optional[str] = Field(default=None, alias="intHomeScore")
    away_score: Optional[str] = Field(default=None, alias="intAwayScore")
    round: Optional[str] = Field(default=None, alias="intRound")
    spectators: Optional[int] = Field(default=None, alias="intSpectators")
    official: Optional[str] = Field(default=None, alias="strOfficial")
    result: Optional[str] = Field(default=None, alias="strResult")
    timestamp: Optional[str] = Field(default=None, alias="strTimestamp")
    date_event: Optional[str] = Field(default=None, alias="dateEvent")
    date_event_local: Optional[str] = Field(default=None, alias="dateEventLocal")
    time: Optional[str] = Field(default=None, alias="strTime")
    time_local: Optional[str] = Field(default=None, alias="strTimeLocal")
    venue_id: Optional[str] = Field(default=None, alias="idVenue")
    venue_name: Optional[str] = Field(default=None, alias="strVenue")
    city: Optional[str] = Field(default=None, alias="strCity")
    country: Optional[str] = Field(default=None, alias="strCountry")
    status: Optional[str] = Field(default=None, alias="strStatus")
    postponed: Optional[str] = Field(default=None, alias="strPostponed")
    thumb: Optional[str] = Field(default=None, alias="strThumb")
    video: Optional[str] = Field(default=None, alias="strVideo")

    @field_validator("id_event", mode="before")
    @classmethod
    def _id_to_str(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator(
        "id_api_football", "league_id", "home_team_id", "away_team_id", "venue_id",
        "home_score", "away_score", "round",
        mode="before",
    )
    @classmethod
    def _number_to_str(cls, value: Any) -> Any:
        # Scores: None = not played, "0" = zero goals. Never collapse the two.
        value = _blank_to_none(value)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value))
        return value

    @field_validator("spectators", mode="before")
    @classmethod
    def _parse_spectators(cls, value: Any) -> Optional[int]:
        value = _blank_to_none(value)
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    @field_validator(
        "event_name", "event_name_alternate", "sport", "league_name", "season",
        "description", "home_team", "home_team_badge", "away_team", "away_team_badge",
        "official", "result", "timestamp", "date_event", "date_event_local", "time",
        "time_local", "venue_name", "city", "country", "status", "postponed",
        "thumb", "video",
        mode="before",
    )
    @classmethod
    def _blank_strings(cls, value: Any) -> Any:
        return _blank_to_none(value)


class SportsDbVenue(BaseModel):
    """One entry of TheSportsDB `venues` array (searchvenues.php)."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    venue_id: Optional[str] = Field(default=None, alias="idVenue")
    name: Optional[str] = Field(default=None, alias="strVenue")
    city: Optional[str] = Field(default=None, alias="strCity")
    country: Optional[str] = Field(default=None, alias="strCountry")
    capacity: Optional[str] = Field(default=None, alias="intCapacity")
    surface: Optional[str] = Field(default=None, alias="strSurface")
    sport: Optional[str] = Field(default=None, alias="strSport")
    league: Optional[str] = Field(default=None, alias="strLeague")
    map_string: Optional[str] = Field(default=None, alias="strMap")
    location: Optional[str] = Field(default=None, alias="strLocation")
    double_lat: Optional[str] = Field(default=None, alias="doubleLat")
    double_long: Optional[str] = Field(default=None, alias="doubleLong")
    str_latitude: Optional[str] = Field(default=None, alias="strLatitude")
    str_longitude: Optional[str] = Field(default=None, alias="strLongitude")

    @field_validator(
        "venue_id", "capacity", "double_lat", "double_long", "str_latitude", "str_longitude",
        mode="before",
    )
    @classmethod
    def _number_to_str(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator(
        "name", "city", "country", "surface", "sport", "league", "map_string", "location",
        mode="before",
    )
    @classmethod
    def _blank_strings(cls, value: Any) -> Any:
        return _blank_to_none(value)


class EnrichedMatch(BaseModel):
    """Upcoming fixture with resolved venue coordinates and kickoff weather."""

    id_event: str
    event_name: Optional[str] = None
    league_id: Optional[str] = None
    league_name: Optional[str] = None
    season: Optional[str] = None
    home_team_id: Optional[str] = None
    home_team: Optional[str] = None
    away_team_id: Optional[str] = None
    away_team: Optional[str] = None
    timestamp: Optional[str] = None
    date_event: Optional[str] = None
    time: Optional[str] = None
    venue_id: Optional[str] = None
    venue_name: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    status: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    weather_at_match_time: Optional[WeatherSnapshot] = None


class LeagueSyncResult(BaseModel):
    league_id: str
    league_name: str
    total_matches: int = 0
    synced_matches: int = 0
    skipped_matches: int = 0
    skipped_seasons: int = 0


class SyncResult(BaseModel):
    """
    Aggregate counters for one sync run.

    synced_matches counts inserts; skipped_matches counts updates of
    existing records plus per-match failures; total_matches includes the
    stored counts of seasons that were skipped without an API call.
    """

    total_matches: int = 0
    synced_matches: int = 0
    skipped_matches: int = 0
    skipped_seasons: int = 0
    leagues: List[LeagueSyncResult] = Field(default_factory=list)

    def add(self, league_result: LeagueSyncResult) -> None:
        self.leagues.append(league_result)
        self.total_matches += league_result.total_matches
        self.synced_matches += league_result.synced_matches
        self.skipped_matches += league_result.skipped_matches
        self.skipped_seasons += league_result.skipped_seasons

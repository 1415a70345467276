"""
Database models for the match weather sync service.

Matches and venues are keyed by TheSportsDB natural identifiers
(id_event, venue_id) so that every sync is an upsert.
"""
from datetime import datetime
from sqlalchemy import Column, String, Float, Integer, DateTime, Text, Index, JSON
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class League(Base):
    """Supported league registry (seeded on startup)."""
    __tablename__ = "leagues"

    league_id = Column(String(16), primary_key=True)  # TheSportsDB idLeague
    name = Column(String(255), nullable=False)
    alternate_name = Column(String(255), nullable=True)
    sport = Column(String(50), nullable=False)
    country = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    badge_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class Match(Base):
    """
    A fixture or result from TheSportsDB.

    Scores are kept as nullable strings: None means not yet played,
    "0" means zero goals. Weather at kickoff is embedded as JSON
    (see app.models.schemas.WeatherSnapshot for its shape).
    """
    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    id_event = Column(String(32), unique=True, nullable=False, index=True)
    id_api_football = Column(String(32), nullable=True)
    event_name = Column(String(255), nullable=False)
    event_name_alternate = Column(String(255), nullable=True)
    sport = Column(String(50), nullable=False, default="Soccer")
    league_id = Column(String(16), nullable=False, index=True)
    league_name = Column(String(255), nullable=False)
    season = Column(String(16), nullable=False, index=True)
    description = Column(Text, nullable=True)

    home_team_id = Column(String(32), nullable=False)
    home_team = Column(String(255), nullable=False)
    home_team_badge = Column(String(500), nullable=True)
    away_team_id = Column(String(32), nullable=False)
    away_team = Column(String(255), nullable=False)
    away_team_badge = Column(String(500), nullable=True)
    home_score = Column(String(8), nullable=True)
    away_score = Column(String(8), nullable=True)
    round = Column(String(16), nullable=True)
    spectators = Column(Integer, nullable=True)
    official = Column(String(255), nullable=True)
    result = Column(Text, nullable=True)

    timestamp = Column(String(32), nullable=True, index=True)  # ISO kickoff, UTC
    date_event = Column(String(16), nullable=True, index=True)
    date_event_local = Column(String(16), nullable=True)
    time = Column(String(16), nullable=True)
    time_local = Column(String(16), nullable=True)

    venue_id = Column(String(32), nullable=True, index=True)
    venue_name = Column(String(255), nullable=True)
    city = Column(String(255), nullable=True)
    country = Column(String(100), nullable=True)

    status = Column(String(50), nullable=True, index=True)  # Match Finished, Not Started, ...
    postponed = Column(String(8), nullable=True)
    thumb = Column(String(500), nullable=True)
    video = Column(String(500), nullable=True)

    weather_at_match_time = Column(JSON, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index('ix_matches_league_season', 'league_id', 'season'),
        Index('ix_matches_league_season_status', 'league_id', 'season', 'status'),
    )


class Venue(Base):
    """
    Stadium with resolved coordinates.

    lat/lon stay NULL when the provider had no usable location;
    last_lookup_at records when the provider was last searched.
    """
    __tablename__ = "venues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    venue_id = Column(String(32), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False, index=True)
    city = Column(String(255), nullable=True)
    country = Column(String(100), nullable=True)
    capacity = Column(String(16), nullable=True)
    surface = Column(String(100), nullable=True)
    sport = Column(String(50), nullable=True)
    league = Column(String(255), nullable=True)
    map_string = Column(String(500), nullable=True)
    lat = Column(Float, nullable=True)
    lon = Column(Float, nullable=True)
    last_lookup_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lon is not None

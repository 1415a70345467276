"""
Match repository: upserts keyed by TheSportsDB idEvent plus the
season/team queries used by sync, statistics and prediction.
"""
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import desc, or_
from sqlalchemy.orm import Session

from app.models.models import Match
from app.models.schemas import SportsDbEvent, WeatherSnapshot
from app.repositories.base import BaseRepository

FINISHED_STATUS = "Match Finished"


class MatchRepository(BaseRepository[Match]):
    """Repository for Match records."""

    def __init__(self, db: Session):
        super().__init__(Match, db)

    def find_by_event_id(self, id_event: str) -> Optional[Match]:
        return self.where_first(Match.id_event == id_event)

    def count_for_season(self, league_id: str, season: str) -> int:
        """Number of stored matches for a (league, season) pair."""
        return self.count(Match.league_id == league_id, Match.season == season)

    def upsert_from_event(
        self,
        event: SportsDbEvent,
        weather: Optional[WeatherSnapshot],
        league_id: str,
        league_name: str,
        season: str,
    ) -> Tuple[Match, bool]:
        """
        Insert or update the match identified by event.id_event.

        The league/season passed in are used when the provider omits them.
        Weather is overwritten on every upsert; passing None clears a
        previously stored snapshot.

        Args:
            event: Parsed provider event
            weather: Kickoff weather or None
            league_id: League being synced
            league_name: Display name of that league
            season: Season label being synced

        Returns:
            Tuple of (match, inserted) where inserted is False for updates.
            The change is flushed, not committed.
        """
        values = {
            "id_api_football": event.id_api_football,
            "event_name": event.event_name or f"{event.home_team or ''} vs {event.away_team or ''}".strip(),
            "event_name_alternate": event.event_name_alternate,
            "sport": event.sport or "Soccer",
            "league_id": event.league_id or league_id,
            "league_name": event.league_name or league_name,
            "season": event.season or season,
            "description": event.description,
            "home_team_id": event.home_team_id or "",
            "home_team": event.home_team or "",
            "home_team_badge": event.home_team_badge,
            "away_team_id": event.away_team_id or "",
            "away_team": event.away_team or "",
            "away_team_badge": event.away_team_badge,
            "home_score": event.home_score,
            "away_score": event.away_score,
            "round": event.round,
            "spectators": event.spectators,
            "official": event.official,
            "result": event.result,
            "timestamp": event.timestamp,
            "date_event": event.date_event,
            "date_event_local": event.date_event_local,
            "time": event.time,
            "time_local": event.time_local,
            "venue_id": event.venue_id,
            "venue_name": event.venue_name,
            "city": event.city,
            "country": event.country,
            "status": event.status,
            "postponed": event.postponed,
            "thumb": event.thumb,
            "video": event.video,
            "weather_at_match_time": weather.model_dump() if weather else None,
        }

        match = self.find_by_event_id(event.id_event)
        inserted = match is None
        if inserted:
            match = self.create(id_event=event.id_event, **values)
        else:
            for key, value in values.items():
                setattr(match, key, value)
            match.updated_at = datetime.utcnow()

        self.flush()
        return match, inserted

    def completed_for_season(self, league_id: str, season: str) -> List[Match]:
        """Finished matches of a season in chronological order."""
        return (
            self.query()
            .filter(
                Match.league_id == league_id,
                Match.season == season,
                Match.status == FINISHED_STATUS,
            )
            .order_by(Match.date_event, Match.timestamp)
            .all()
        )

    def search(
        self,
        league_id: Optional[str] = None,
        season: Optional[str] = None,
        teams: Optional[List[str]] = None,
        limit: Optional[int] = None,
    ) -> List[Match]:
        """
        Filter stored matches, newest first.

        Team filters are case-insensitive substring matches against either
        side; a match is kept when any of the given teams played in it.
        """
        query = self.query()
        if league_id:
            query = query.filter(Match.league_id == league_id)
        if season:
            query = query.filter(Match.season == season)

        team_filters = []
        for team in teams or []:
            if team:
                team_filters.append(Match.home_team.ilike(f"%{team}%"))
                team_filters.append(Match.away_team.ilike(f"%{team}%"))
        if team_filters:
            query = query.filter(or_(*team_filters))

        query = query.order_by(desc(Match.date_event), desc(Match.timestamp))
        if limit is not None:
            query = query.limit(limit)
        return query.all()

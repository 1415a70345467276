"""
Venue repository: coordinate cache keyed by TheSportsDB idVenue.
"""
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.models.models import Venue
from app.repositories.base import BaseRepository


class VenueRepository(BaseRepository[Venue]):
    """Repository for Venue records."""

    def __init__(self, db: Session):
        super().__init__(Venue, db)

    def find_by_venue_id(self, venue_id: str) -> Optional[Venue]:
        return self.where_first(Venue.venue_id == venue_id)

    def find_by_id_or_name(self, venue_id: Optional[str], name: Optional[str]) -> Optional[Venue]:
        """
        Find a venue by provider id, falling back to its name.

        Rows holding coordinates win over rows without, so a name match with
        coordinates is preferred to an id match that never resolved.
        """
        criteria = []
        if venue_id:
            criteria.append(Venue.venue_id == venue_id)
        if name:
            criteria.append(Venue.name == name)
        if not criteria:
            return None

        candidates = self.where(or_(*criteria))
        if not candidates:
            return None
        for venue in candidates:
            if venue.has_coordinates:
                return venue
        return candidates[0]

    def upsert(self, venue_id: str, name: str, **fields: Any) -> Venue:
        """
        Insert or update a venue by provider id.

        None values in `fields` never overwrite stored data, so resolved
        coordinates survive a later failed lookup. last_lookup_at is stamped.

        Returns:
            The venue (flushed, not committed)
        """
        venue = self.find_by_venue_id(venue_id)
        now = datetime.utcnow()
        if venue is None:
            venue = self.create(venue_id=venue_id, name=name, last_lookup_at=now, **fields)
        else:
            venue.name = name or venue.name
            for key, value in fields.items():
                if value is not None:
                    setattr(venue, key, value)
            venue.last_lookup_at = now
            venue.updated_at = now
        self.flush()
        return venue

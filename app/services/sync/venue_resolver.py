"""
Venue name/id to coordinates, cached in the venues table.

Lookup order:
1. Stored venue with coordinates -> returned, no API call
2. Stored venue without coordinates -> re-attempt policy decides
3. TheSportsDB venue search -> strMap parsed, then explicit lat/long fields
4. Whatever was learned is upserted by venue id with last_lookup_at stamped

Outcomes are memoised per resolver instance, so one run searches an
unresolvable venue at most once.
"""
from datetime import datetime, timedelta
from typing import Callable, Dict, Literal, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.logging import get_logger
from app.models.models import Venue
from app.models.schemas import Coordinates, SportsDbVenue
from app.repositories.venue_repository import VenueRepository
from app.services.sync.adapters.sportsdb_client import SportsDbClient
from app.services.sync.utils.coordinates import extract_coordinates

logger = get_logger(__name__)

RetryPolicy = Literal["always", "never", "cooldown"]


def _to_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def coordinates_from_venue(venue: SportsDbVenue) -> Optional[Coordinates]:
    """
    Pull coordinates out of a provider venue record.

    strMap is parsed first; doubleLat/doubleLong then strLatitude/strLongitude
    are the fallbacks. Out-of-range values are ignored.
    """
    coords = extract_coordinates(venue.map_string)
    if coords:
        return coords

    for raw_lat, raw_lon in (
        (venue.double_lat, venue.double_long),
        (venue.str_latitude, venue.str_longitude),
    ):
        lat, lon = _to_float(raw_lat), _to_float(raw_lon)
        if lat is None or lon is None:
            continue
        if -90 <= lat <= 90 and -180 <= lon <= 180:
            return Coordinates(lat=lat, lon=lon)

    return None


class VenueResolver:
    """
    Resolves venues to coordinates for one sync run or upcoming listing.

    Attributes:
        policy: Re-attempt policy for stored venues without coordinates
        searches: Provider searches made by this instance
    """

    def __init__(
        self,
        db: Session,
        sports_client: SportsDbClient,
        policy: Optional[RetryPolicy] = None,
        cooldown_hours: Optional[int] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.venues = VenueRepository(db)
        self.sports_client = sports_client
        self.policy: RetryPolicy = policy or settings.VENUE_COORDINATE_RETRY_POLICY
        self.cooldown = timedelta(
            hours=settings.VENUE_RETRY_COOLDOWN_HOURS if cooldown_hours is None else cooldown_hours
        )
        self._now = now or datetime.utcnow
        self._memo: Dict[str, Optional[Coordinates]] = {}
        self.searches = 0

    def _should_search_again(self, venue: Venue) -> bool:
        if self.policy == "always":
            return True
        if self.policy == "never":
            return False
        if venue.last_lookup_at is None:
            return True
        return self._now() - venue.last_lookup_at >= self.cooldown

    async def resolve(
        self,
        venue_name: Optional[str],
        venue_id: Optional[str],
        match_city: Optional[str] = None,
        match_country: Optional[str] = None,
    ) -> Optional[Coordinates]:
        """
        Resolve a venue to coordinates.

        Args:
            venue_name: Venue name from the match (strVenue)
            venue_id: Provider venue id from the match (idVenue)
            match_city: City from the match, preferred over the venue record's
            match_country: Country from the match, preferred over the venue record's

        Returns:
            Coordinates or None when the venue cannot be located
        """
        memo_key = venue_id or venue_name
        if not memo_key:
            return None
        if memo_key in self._memo:
            return self._memo[memo_key]

        stored = self.venues.find_by_id_or_name(venue_id, venue_name)
        if stored is not None and stored.has_coordinates:
            coords = Coordinates(lat=stored.lat, lon=stored.lon)
            logger.debug(f"Venue {venue_name} found in DB: lat={coords.lat}, lon={coords.lon}")
            self._memo[memo_key] = coords
            return coords

        if stored is not None and not self._should_search_again(stored):
            logger.debug(f"Venue {venue_name} stored without coordinates; not searching again ({self.policy})")
            self._memo[memo_key] = None
            return None

        logger.info(f"Venue {venue_name} has no stored coordinates, searching TheSportsDB")
        self.searches += 1
        found = await self.sports_client.search_venue(venue_name)
        coords = coordinates_from_venue(found) if found else None

        persist_id = venue_id or (found.venue_id if found else None) or (stored.venue_id if stored else None)
        if persist_id:
            self.venues.upsert(
                persist_id,
                venue_name or (found.name if found else None) or persist_id,
                city=match_city or (found.city if found else None),
                country=match_country or (found.country if found else None),
                capacity=found.capacity if found else None,
                surface=found.surface if found else None,
                sport=found.sport if found else None,
                league=found.league if found else None,
                map_string=found.map_string if found else None,
                lat=coords.lat if coords else None,
                lon=coords.lon if coords else None,
            )
            self.venues.save()

        if coords:
            logger.info(f"Resolved venue {venue_name}: lat={coords.lat}, lon={coords.lon}")
        else:
            logger.warning(f"No coordinates for venue {venue_name}")

        self._memo[memo_key] = coords
        return coords

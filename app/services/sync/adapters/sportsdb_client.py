"""
TheSportsDB API client with a shared call quota.

The free tier allows roughly 30 requests per minute. Every call goes
through a QuotaWindow: once `limit` calls have been made the next caller
sleeps for `cooldown_seconds` and the counter starts over. The window is
an explicit object so tests can drive it with a fake sleep; clients
built without one share the process-wide window from get_quota_window().

Error handling is deliberately asymmetric:
- list_season_matches raises SportsApiError (a missing season fails the run)
- list_upcoming_matches returns [] (read-only listing degrades to empty)
- search_venue returns None (venue enrichment is best-effort)
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError

from app.core.config import settings
from app.core.logging import get_logger
from app.core.metrics import record_quota_cooldown, record_sportsdb_request, sportsdb_quota_used
from app.models.schemas import SportsDbEvent, SportsDbVenue
from app.services.sync.exceptions import SportsApiError

logger = get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class QuotaWindow:
    """
    Call counter with a fixed cooldown once the limit is reached.

    Attributes:
        limit: Calls allowed before a cooldown
        cooldown_seconds: Pause length once the limit is reached
        count: Calls made in the current window
    """

    def __init__(
        self,
        limit: int = 28,
        cooldown_seconds: float = 60.0,
        sleep: Optional[SleepFunc] = None,
    ):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self.cooldown_seconds = cooldown_seconds
        self.count = 0
        self.cooldowns = 0
        self._sleep = sleep or asyncio.sleep
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait out the cooldown if the window is spent."""
        async with self._lock:
            if self.count >= self.limit:
                logger.warning(
                    f"[RATE LIMIT] Reached {self.limit} requests. "
                    f"Waiting {self.cooldown_seconds:g} seconds before continuing"
                )
                record_quota_cooldown()
                self.cooldowns += 1
                await self._sleep(self.cooldown_seconds)
                self.count = 0
                sportsdb_quota_used.set(0)
                logger.info("[RATE LIMIT] Wait complete. Counter reset")

    def record_call(self) -> int:
        """Count one call against the window; returns the new count."""
        self.count += 1
        sportsdb_quota_used.set(self.count)
        return self.count

    def reset(self) -> None:
        previous = self.count
        self.count = 0
        sportsdb_quota_used.set(0)
        logger.info(f"[RATE LIMIT] Counter manually reset. Previous count: {previous}")


# Global quota window, shared by every client in the process
_quota_window: Optional[QuotaWindow] = None


def get_quota_window() -> QuotaWindow:
    """Get the process-wide TheSportsDB quota window."""
    global _quota_window
    if _quota_window is None:
        _quota_window = QuotaWindow(
            limit=settings.SPORTSDB_RATE_LIMIT,
            cooldown_seconds=settings.SPORTSDB_COOLDOWN_SECONDS,
        )
    return _quota_window


class SportsDbClient:
    """
    Client for TheSportsDB v1 JSON API.

    Usage:
        client = SportsDbClient()
        events = await client.list_season_matches("4335", "2024-2025")
        venue = await client.search_venue("Estadio Santiago Bernabéu")
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        quota: Optional[QuotaWindow] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API root (defaults to SPORTSDB_BASE_URL)
            api_key: Key path segment (defaults to SPORTSDB_API_KEY, "123" on the free tier)
            timeout: Request timeout in seconds
            quota: QuotaWindow to count calls against (the process-wide window when omitted)
            transport: Optional httpx transport, used by tests
        """
        root = (base_url or settings.SPORTSDB_BASE_URL).rstrip("/")
        self.base_url = f"{root}/{api_key or settings.SPORTSDB_API_KEY}/"
        self.timeout = timeout or settings.SPORTSDB_TIMEOUT
        self.quota = quota or get_quota_window()
        self._transport = transport

    @property
    def call_count(self) -> int:
        return self.quota.count

    async def _get(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Perform one quota-counted GET.

        Raises:
            httpx.HTTPError: On transport or HTTP status errors
            ValueError: When the body is not JSON
        """
        await self.quota.acquire()
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(endpoint, params=params)
                response.raise_for_status()
                data = response.json()
                return data if isinstance(data, dict) else {}
        finally:
            self.quota.record_call()

    @staticmethod
    def _parse_events(payload: Dict[str, Any]) -> List[SportsDbEvent]:
        events: List[SportsDbEvent] = []
        for raw in payload.get("events") or []:
            try:
                events.append(SportsDbEvent.model_validate(raw))
            except ValidationError as e:
                event_id = raw.get("idEvent") if isinstance(raw, dict) else None
                logger.warning(f"Skipping malformed event {event_id}: {e.error_count()} validation errors")
        return events

    async def list_season_matches(self, league_id: str, season: str) -> List[SportsDbEvent]:
        """
        Fetch every event of a league season.

        Args:
            league_id: TheSportsDB league id
            season: Season label ("2024-2025" or "2024")

        Returns:
            Parsed events (empty when the provider has none)

        Raises:
            SportsApiError: On network, HTTP or decoding failure
        """
        try:
            payload = await self._get("eventsseason.php", {"id": league_id, "s": season})
        except (httpx.HTTPError, ValueError) as e:
            record_sportsdb_request("eventsseason", "error")
            logger.error(
                f"[API CALL #{self.call_count}] Error fetching matches for league {league_id}, "
                f"season {season}: {e}"
            )
            raise SportsApiError(
                f"Failed to fetch matches for league {league_id}, season {season}: {e}",
                league_id=league_id,
                season=season,
            ) from e

        events = self._parse_events(payload)
        record_sportsdb_request("eventsseason", "success")
        logger.info(
            f"[API CALL #{self.call_count}] Retrieved {len(events)} matches "
            f"for league {league_id}, season {season}"
        )
        return events

    async def list_upcoming_matches(self, league_id: str) -> List[SportsDbEvent]:
        """Fetch the next fixtures of a league; [] on any failure."""
        try:
            payload = await self._get("eventsnextleague.php", {"id": league_id})
        except (httpx.HTTPError, ValueError) as e:
            record_sportsdb_request("eventsnextleague", "error")
            logger.error(
                f"[API CALL #{self.call_count}] Error fetching upcoming matches for league {league_id}: {e}"
            )
            return []

        events = self._parse_events(payload)
        record_sportsdb_request("eventsnextleague", "success")
        logger.info(f"[API CALL #{self.call_count}] Retrieved {len(events)} upcoming matches")
        return events

    async def search_venue(self, name: Optional[str]) -> Optional[SportsDbVenue]:
        """
        Search a venue by name and return the first hit.

        Blank names return None without spending quota.
        """
        if not name or not name.strip():
            return None

        try:
            payload = await self._get("searchvenues.php", {"v": name})
        except (httpx.HTTPError, ValueError) as e:
            record_sportsdb_request("searchvenues", "error")
            logger.error(f"[API CALL #{self.call_count}] Error searching venue {name}: {e}")
            return None

        venues = payload.get("venues") or []
        if not venues:
            record_sportsdb_request("searchvenues", "not_found")
            logger.warning(f"[API CALL #{self.call_count}] Venue not found: {name}")
            return None

        try:
            venue = SportsDbVenue.model_validate(venues[0])
        except ValidationError as e:
            record_sportsdb_request("searchvenues", "error")
            logger.warning(f"Malformed venue payload for {name}: {e.error_count()} validation errors")
            return None

        record_sportsdb_request("searchvenues", "success")
        logger.info(
            f"[API CALL #{self.call_count}] Found venue {name}: {venue.map_string or 'no coordinates'}"
        )
        return venue

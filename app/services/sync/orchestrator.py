"""Sync orchestrator for previous-match ingestion and upcoming fixtures.

This orchestrator coordinates:
- Season-by-season, league-by-league reconciliation with TheSportsDB
- Venue coordinate resolution via VenueResolver
- Kickoff weather enrichment via WeatherClient
- Idempotent match upserts keyed by idEvent
- Lock ownership and progress reporting via SyncLock

A run walks leagues in fixed order (La Liga, then MLS) and seasons from
the current year backwards. Past seasons that already have stored matches
are skipped without an API call; the current season is always refreshed.
Every default client counts against the process-wide quota window.
"""
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.kv_store import get_kv_store
from app.core.logging import clear_sync_run_id, get_logger, set_sync_run_id
from app.core.metrics import record_sync_match, record_sync_run, sync_running
from app.models.schemas import EnrichedMatch, LeagueSyncResult, SportsDbEvent, SyncResult
from app.repositories.match_repository import MatchRepository
from app.services.sync.adapters.sportsdb_client import SportsDbClient
from app.services.sync.adapters.weather_client import WeatherClient
from app.services.sync.leagues import LEAGUES, LeagueInfo, format_season, get_league
from app.services.sync.lock import STATUS_COMPLETED, STATUS_ERROR, SyncLease, SyncLock
from app.services.sync.venue_resolver import VenueResolver

logger = get_logger(__name__)

MIN_YEARS_TO_SYNC = 1
MAX_YEARS_TO_SYNC = 20


def validate_years_to_sync(years_to_sync: int) -> int:
    if not MIN_YEARS_TO_SYNC <= years_to_sync <= MAX_YEARS_TO_SYNC:
        raise ValueError(
            f"years_to_sync must be between {MIN_YEARS_TO_SYNC} and {MAX_YEARS_TO_SYNC}, "
            f"got {years_to_sync}"
        )
    return years_to_sync


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def lock_params(years_to_sync: int) -> Dict:
    """Run parameters recorded in the running status."""
    return {"leagues": list(LEAGUES.keys()), "years_to_sync": years_to_sync}


class SyncOrchestrator:
    """
    Coordinates the previous-matches sync and the upcoming listing.

    This is the main entry point for the data sync layer.
    All sync operations should go through this orchestrator.
    """

    def __init__(
        self,
        db: Session,
        lock: Optional[SyncLock] = None,
        sports_client: Optional[SportsDbClient] = None,
        weather_client: Optional[WeatherClient] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the sync orchestrator.

        Args:
            db: SQLAlchemy database session
            lock: Sync lock (defaults to one over the global key-value store)
            sports_client: TheSportsDB client (defaults to one on the process-wide quota window)
            weather_client: OpenWeather client
            now: Clock used to determine the current season year
        """
        self.db = db
        self.lock = lock or SyncLock(get_kv_store())
        self.sports_client = sports_client or SportsDbClient()
        self.weather_client = weather_client or WeatherClient()
        self.matches = MatchRepository(db)
        self._now = now or _utc_now

    def _new_resolver(self) -> VenueResolver:
        return VenueResolver(self.db, self.sports_client)

    # ========================================================================
    # Lock helpers
    # ========================================================================

    async def acquire_lock(self, years_to_sync: int = settings.DEFAULT_YEARS_TO_SYNC) -> Optional[SyncLease]:
        """Take the sync lock for a run; None when another run holds it."""
        validate_years_to_sync(years_to_sync)
        return await self.lock.acquire(lock_params(years_to_sync))

    async def get_sync_status(self) -> Dict:
        return await self.lock.get_status()

    # ========================================================================
    # Previous-match sync
    # ========================================================================

    async def run_sync(
        self,
        lease: SyncLease,
        years_to_sync: int = settings.DEFAULT_YEARS_TO_SYNC,
    ) -> SyncResult:
        """
        Sync both leagues for the current season and `years_to_sync` past seasons.

        The lock is always released (and a terminal status written) when the
        run ends, whether it completed, failed or was cancelled.

        Args:
            lease: Lease from acquire_lock()
            years_to_sync: Past seasons to cover (1-20); current year is always included

        Returns:
            Aggregate SyncResult

        Raises:
            SportsApiError: If a season listing fails
            LockLostError: If the lock expired or was taken mid-run
            ValueError: If years_to_sync is out of range
        """
        run_token = set_sync_run_id(lease.token)
        sync_running.set(1)
        start_time = _utc_now()
        final_status: Optional[Dict] = None

        try:
            validate_years_to_sync(years_to_sync)
            current_year = self._now().year
            logger.info(
                f"[SYNC] Starting sync for leagues {', '.join(LEAGUES)} with {years_to_sync} years "
                f"(current year {current_year})"
            )

            resolver = self._new_resolver()
            result = SyncResult()

            for league in LEAGUES.values():
                logger.info(f"[SYNC] Processing league {league.league_id} ({league.alternate_name})")
                await self.lock.update_progress(
                    lease,
                    current_league=league.league_id,
                    current_league_name=league.alternate_name,
                )
                league_result = await self._sync_league(lease, league, years_to_sync, current_year, resolver)
                result.add(league_result)
                logger.info(
                    f"[SYNC] Completed league {league.league_id}: {league_result.synced_matches} synced, "
                    f"{league_result.skipped_matches} updated/skipped, "
                    f"{league_result.skipped_seasons} seasons skipped"
                )

            duration_ms = int((_utc_now() - start_time).total_seconds() * 1000)
            logger.info(
                f"[SYNC] Completed sync. Total: {result.total_matches} matches, "
                f"{result.synced_matches} synced, {result.skipped_matches} updated/skipped "
                f"({duration_ms}ms)"
            )
            final_status = {
                "status": STATUS_COMPLETED,
                "completed_at": _utc_now().isoformat(),
                "duration_ms": duration_ms,
                "result": result.model_dump(),
            }
            record_sync_run(STATUS_COMPLETED)
            return result

        except Exception as e:
            logger.error(f"[SYNC] Error during sync: {e}", exc_info=True)
            final_status = {
                "status": STATUS_ERROR,
                "error": str(e),
                "completed_at": _utc_now().isoformat(),
            }
            record_sync_run(STATUS_ERROR)
            raise

        finally:
            if final_status is None:
                # Only reachable on cancellation (BaseException)
                final_status = {
                    "status": STATUS_ERROR,
                    "error": "Sync run was cancelled",
                    "completed_at": _utc_now().isoformat(),
                }
                record_sync_run(STATUS_ERROR)
            try:
                await self.lock.release(lease, final_status)
            finally:
                sync_running.set(0)
                clear_sync_run_id(run_token)

    async def _sync_league(
        self,
        lease: SyncLease,
        league: LeagueInfo,
        years_to_sync: int,
        current_year: int,
        resolver: VenueResolver,
    ) -> LeagueSyncResult:
        """Sync every season of one league, newest first."""
        league_result = LeagueSyncResult(league_id=league.league_id, league_name=league.alternate_name)

        for i in range(years_to_sync + 1):
            year = current_year - i
            season = format_season(league.league_id, year)
            await self.lock.update_progress(lease, current_season=season)

            # Past seasons do not change once stored
            existing = self.matches.count_for_season(league.league_id, season)
            if year != current_year and existing > 0:
                logger.info(
                    f"[SYNC] Skipping season {season} for league {league.league_id}: "
                    f"{existing} matches already stored"
                )
                league_result.total_matches += existing
                league_result.skipped_seasons += 1
                continue

            logger.info(f"[SYNC] Fetching season {season} for league {league.league_id}")
            events = await self.sports_client.list_season_matches(league.league_id, season)
            league_result.total_matches += len(events)

            for event in events:
                outcome = await self._sync_match(event, league, season, resolver)
                record_sync_match(league.league_id, outcome)
                if outcome == "inserted":
                    league_result.synced_matches += 1
                else:
                    league_result.skipped_matches += 1

        return league_result

    async def _sync_match(
        self,
        event: SportsDbEvent,
        league: LeagueInfo,
        season: str,
        resolver: VenueResolver,
    ) -> str:
        """
        Enrich and upsert one match.

        Returns:
            "inserted", "updated" or "failed"
        """
        weather = None
        try:
            coords = await resolver.resolve(event.venue_name, event.venue_id, event.city, event.country)
            if coords is not None and event.timestamp:
                weather = await self.weather_client.fetch(coords.lat, coords.lon, event.timestamp)
        except Exception as e:
            # Enrichment failures leave the match without weather
            self.matches.rollback()
            logger.error(f"[SYNC] Error enriching match {event.id_event}: {e}")
            weather = None

        try:
            _, inserted = self.matches.upsert_from_event(
                event, weather, league.league_id, league.name, season
            )
            self.matches.save()
        except Exception as e:
            self.matches.rollback()
            logger.error(f"[SYNC] Error syncing match {event.id_event}: {e}")
            return "failed"

        if inserted:
            logger.debug(f"Created match {event.id_event}: {event.event_name}")
            return "inserted"
        logger.debug(f"Updated match {event.id_event}: {event.event_name}")
        return "updated"

    # ========================================================================
    # Upcoming fixtures (read-only for matches)
    # ========================================================================

    async def list_upcoming(self, league_id: str) -> List[EnrichedMatch]:
        """
        Fetch the next fixtures of a league with venue coordinates and weather.

        Matches are never written; newly resolved venue coordinates are.

        Raises:
            ConfigurationError: If the league is not supported
        """
        league = get_league(league_id)
        events = await self.sports_client.list_upcoming_matches(league.league_id)
        resolver = self._new_resolver()

        enriched: List[EnrichedMatch] = []
        for event in events:
            enriched.append(await self._enrich_upcoming(event, resolver))

        logger.info(f"[UPCOMING] Enriched {len(enriched)} upcoming matches for league {league.league_id}")
        return enriched

    async def _enrich_upcoming(self, event: SportsDbEvent, resolver: VenueResolver) -> EnrichedMatch:
        match = EnrichedMatch(
            id_event=event.id_event,
            event_name=event.event_name,
            league_id=event.league_id,
            league_name=event.league_name,
            season=event.season,
            home_team_id=event.home_team_id,
            home_team=event.home_team,
            away_team_id=event.away_team_id,
            away_team=event.away_team,
            timestamp=event.timestamp,
            date_event=event.date_event,
            time=event.time,
            venue_id=event.venue_id,
            venue_name=event.venue_name,
            city=event.city,
            country=event.country,
            status=event.status,
        )

        try:
            coords = await resolver.resolve(event.venue_name, event.venue_id, event.city, event.country)
            if coords is not None:
                match.lat, match.lon = coords.lat, coords.lon
                if event.timestamp:
                    match.weather_at_match_time = await self.weather_client.fetch(
                        coords.lat, coords.lon, event.timestamp
                    )
        except Exception as e:
            self.db.rollback()
            logger.error(f"[UPCOMING] Error enriching match {event.id_event}: {e}")
            match.weather_at_match_time = None

        return match

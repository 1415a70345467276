"""Sync API routes.

Provides endpoints for:
- Sync status (lock state and last run outcome)
- Upcoming fixtures with venue coordinates and weather forecast
- Starting the previous-matches sync in the background
"""
import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings
from app.core.database import get_db, get_session_factory
from app.core.kv_store import KeyValueStore, get_kv_store
from app.core.rate_limit import GENERAL_LIMIT, SYNC_TRIGGER_LIMIT, limiter
from app.core.tasks import BackgroundTaskRunner, get_task_runner
from app.services.sync.exceptions import ConfigurationError, SyncAlreadyRunningError
from app.services.sync.jobs import start_previous_matches_sync
from app.services.sync.leagues import supported_league_ids
from app.services.sync.lock import SyncLock
from app.services.sync.orchestrator import MAX_YEARS_TO_SYNC, MIN_YEARS_TO_SYNC, SyncOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


def get_sync_lock(store: KeyValueStore = Depends(get_kv_store)) -> SyncLock:
    """Dependency to get the sync lock over the shared store."""
    return SyncLock(store)


def get_orchestrator(
    db: Session = Depends(get_db),
    lock: SyncLock = Depends(get_sync_lock),
) -> SyncOrchestrator:
    """Dependency to get sync orchestrator instance."""
    return SyncOrchestrator(db, lock=lock)


@router.get("/sync-status")
@limiter.limit(GENERAL_LIMIT)
async def get_sync_status(
    request: Request,
    lock: SyncLock = Depends(get_sync_lock),
) -> Dict:
    """
    Get the previous-matches sync status.

    Returns:
        is_running plus the last recorded status (running progress, or the
        completed/error outcome of the last run while it is retained)
    """
    return {"success": True, "data": await lock.get_status()}


@router.get("/upcoming-matches")
@limiter.limit(GENERAL_LIMIT)
async def get_upcoming_matches(
    request: Request,
    league_id: str = Query(..., description="TheSportsDB league id (4335 La Liga, 4346 MLS)"),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> Dict:
    """
    Get the next fixtures of a league enriched with coordinates and weather.

    Matches are not stored; newly resolved venue coordinates are.
    """
    if league_id not in supported_league_ids():
        raise HTTPException(
            status_code=400,
            detail=f"Invalid league_id. Must be one of: {', '.join(supported_league_ids())}",
        )

    try:
        matches = await orchestrator.list_upcoming(league_id)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "success": True,
        "data": [m.model_dump() for m in matches],
        "count": len(matches),
    }


@router.post("/previous-matches")
@limiter.limit(SYNC_TRIGGER_LIMIT)
async def sync_previous_matches(
    request: Request,
    years_to_sync: int = Query(
        settings.DEFAULT_YEARS_TO_SYNC,
        ge=MIN_YEARS_TO_SYNC,
        le=MAX_YEARS_TO_SYNC,
        description="Past seasons to sync in addition to the current one",
    ),
    lock: SyncLock = Depends(get_sync_lock),
    runner: BackgroundTaskRunner = Depends(get_task_runner),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> Dict:
    """
    Start syncing previous matches for all supported leagues.

    Returns as soon as the lock is taken; poll /sync/sync-status for
    progress and the outcome.

    Raises:
        409: A sync is already running (detail.code == "SYNC_IN_PROGRESS")
    """
    try:
        lease = await start_previous_matches_sync(years_to_sync, lock, runner, session_factory)
    except SyncAlreadyRunningError as e:
        raise HTTPException(
            status_code=409,
            detail={
                "code": "SYNC_IN_PROGRESS",
                "message": f"{e}. Check /api/v1/sync/sync-status for progress.",
            },
        )

    logger.info(f"Previous-matches sync started for {years_to_sync} years (run {lease.token[:8]})")
    return {
        "success": True,
        "message": "Sync started in background. Check /api/v1/sync/sync-status for progress.",
        "data": {
            "status": "started",
            "started_at": lease.started_at,
            "leagues": lease.params.get("leagues"),
            "years_to_sync": years_to_sync,
        },
    }

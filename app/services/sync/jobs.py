"""
Sync entry points that own their database session.

A detached sync outlives the HTTP request that started it, so it cannot
borrow the request's session; these helpers open their own and close it
when the run ends. Used by the sync route, the scheduler and the CLI.
"""
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.core.database import SessionLocal
from app.core.logging import get_logger
from app.core.tasks import BackgroundTaskRunner
from app.models.schemas import SyncResult
from app.services.sync.exceptions import SyncAlreadyRunningError
from app.services.sync.lock import SyncLease, SyncLock
from app.services.sync.orchestrator import SyncOrchestrator, lock_params, validate_years_to_sync

logger = get_logger(__name__)

SessionFactory = Callable[[], Session]


async def run_previous_matches_sync(
    lease: SyncLease,
    years_to_sync: int,
    lock: SyncLock,
    session_factory: Optional[SessionFactory] = None,
) -> SyncResult:
    """Run a sync for an already acquired lease in a fresh session."""
    db = (session_factory or SessionLocal)()
    try:
        orchestrator = SyncOrchestrator(db, lock=lock)
        return await orchestrator.run_sync(lease, years_to_sync)
    finally:
        db.close()


async def sync_if_idle(
    years_to_sync: int,
    lock: SyncLock,
    session_factory: Optional[SessionFactory] = None,
) -> Optional[SyncResult]:
    """
    Acquire the lock and run a sync in the foreground.

    Returns:
        The SyncResult, or None when another run already holds the lock
    """
    db = (session_factory or SessionLocal)()
    try:
        orchestrator = SyncOrchestrator(db, lock=lock)
        lease = await orchestrator.acquire_lock(years_to_sync)
        if lease is None:
            logger.info("Sync already running elsewhere; skipping")
            return None
        return await orchestrator.run_sync(lease, years_to_sync)
    finally:
        db.close()


async def start_previous_matches_sync(
    years_to_sync: int,
    lock: SyncLock,
    runner: BackgroundTaskRunner,
    session_factory: Optional[SessionFactory] = None,
) -> SyncLease:
    """
    Acquire the lock and hand the run to the background runner.

    Returns as soon as the lock is held; progress and the outcome are
    published through the lock's status record.

    Raises:
        ValueError: If years_to_sync is out of range
        SyncAlreadyRunningError: If another run holds the lock
    """
    validate_years_to_sync(years_to_sync)
    lease = await lock.acquire(lock_params(years_to_sync))
    if lease is None:
        raise SyncAlreadyRunningError("A sync is already in progress")

    runner.spawn(
        f"previous-matches-sync:{lease.token[:8]}",
        run_previous_matches_sync(lease, years_to_sync, lock, session_factory),
    )
    return lease

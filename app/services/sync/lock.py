"""
Distributed sync lock and status record.

Two keys in the shared key-value store:
- sync:previous-matches:lock    absent, or the lease token of the running sync
- sync:previous-matches:status  last known status (running/completed/error)

The lock carries a TTL so a crashed run frees it on its own. Every write
made on behalf of a run presents the lease token; a run whose lock has
expired (or been taken by another run) cannot release someone else's
lock or overwrite their status.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from app.core.config import settings
from app.core.kv_store import KeyValueStore
from app.core.logging import get_logger
from app.services.sync.exceptions import LockLostError

logger = get_logger(__name__)

LOCK_KEY = "sync:previous-matches:lock"
STATUS_KEY = "sync:previous-matches:status"

STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class SyncLease:
    """Proof of lock ownership handed out by SyncLock.acquire()."""
    token: str
    started_at: str
    params: Dict[str, Any] = field(default_factory=dict)


class SyncLock:
    """
    Lock and status tracker for the previous-matches sync.

    Usage:
        lease = await lock.acquire({"years_to_sync": 5})
        if lease is None:
            ...  # another sync is running
        try:
            await lock.update_progress(lease, current_league="4335")
            ...
        finally:
            await lock.release(lease, {"status": "completed"})
    """

    def __init__(
        self,
        store: KeyValueStore,
        lock_ttl: Optional[int] = None,
        result_ttl: Optional[int] = None,
        now: Optional[Callable[[], str]] = None,
    ):
        self.store = store
        self.lock_ttl = lock_ttl or settings.SYNC_LOCK_TTL_SECONDS
        self.result_ttl = result_ttl or settings.SYNC_RESULT_TTL_SECONDS
        self._now = now or _utc_now_iso

    async def acquire(self, params: Optional[Dict[str, Any]] = None) -> Optional[SyncLease]:
        """
        Try to take the lock.

        Args:
            params: Extra fields recorded in the running status (leagues, years_to_sync)

        Returns:
            A lease when acquired, None when another run holds the lock
        """
        token = uuid.uuid4().hex
        if not await self.store.set_if_absent(LOCK_KEY, token, ttl=self.lock_ttl):
            logger.info("Sync lock already held; not starting another run")
            return None

        started_at = self._now()
        params = dict(params or {})
        await self.store.set(
            STATUS_KEY,
            {"started_at": started_at, "status": STATUS_RUNNING, **params},
            ttl=self.lock_ttl,
        )
        logger.info(f"Sync lock acquired (run {token[:8]})")
        return SyncLease(token=token, started_at=started_at, params=params)

    async def owns(self, lease: SyncLease) -> bool:
        return await self.store.get(LOCK_KEY) == lease.token

    async def update_progress(self, lease: SyncLease, **fields: Any) -> Dict[str, Any]:
        """
        Merge progress fields into the running status and extend both TTLs.

        Raises:
            LockLostError: If the lease no longer owns the lock
        """
        if not await self.store.refresh_if_equals(LOCK_KEY, lease.token, self.lock_ttl):
            raise LockLostError(f"Sync run {lease.token[:8]} no longer holds the lock")

        current = await self.store.get(STATUS_KEY) or {
            "started_at": lease.started_at,
            "status": STATUS_RUNNING,
            **lease.params,
        }
        current.update(fields)
        await self.store.set(STATUS_KEY, current, ttl=self.lock_ttl)
        return current

    async def release(
        self,
        lease: SyncLease,
        final_status: Dict[str, Any],
        ttl: Optional[int] = None,
    ) -> bool:
        """
        Delete the lock if this lease owns it and publish the terminal status.

        The terminal status is merged over the running status (so started_at
        and params survive) and kept for `ttl` seconds (SYNC_RESULT_TTL_SECONDS).

        Returns:
            True when this lease owned the lock, False when it had been lost
        """
        if not await self.store.delete_if_equals(LOCK_KEY, lease.token):
            logger.warning(
                f"Sync run {lease.token[:8]} lost its lock before release; "
                f"not overwriting status"
            )
            return False

        current = await self.store.get(STATUS_KEY) or {
            "started_at": lease.started_at,
            **lease.params,
        }
        current.update(final_status)
        current.setdefault("completed_at", self._now())
        await self.store.set(STATUS_KEY, current, ttl=ttl or self.result_ttl)
        logger.info(f"Sync lock released (run {lease.token[:8]}, status={current.get('status')})")
        return True

    async def is_running(self) -> bool:
        return await self.store.get(LOCK_KEY) is not None

    async def get_status(self) -> Dict[str, Any]:
        """Return {is_running, status}; status is None when nothing is recorded."""
        return {
            "is_running": await self.is_running(),
            "status": await self.store.get(STATUS_KEY),
        }

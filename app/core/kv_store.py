"""
Shared key-value store with per-key TTLs.

Holds the sync lock and status record, the prediction answer cache and
prediction conversations. Values are JSON-serialised.

Backends (KV_STORE_BACKEND):
- memory: in-process dict guarded by an asyncio.Lock. Single instance only.
- redis: redis.asyncio; SET NX EX for set-if-absent and Lua scripts for
  the compare-and-delete / compare-and-expire operations.
"""
import asyncio
import json
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

import redis.asyncio as redis

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


def _encode(value: Any) -> str:
    return json.dumps(value, default=str)


def _decode(raw: Optional[str]) -> Any:
    if raw is None:
        return None
    return json.loads(raw)


class KeyValueStore(ABC):
    """Async key-value store contract."""

    @abstractmethod
    async def get(self, key: str) -> Any:
        """Return the decoded value, or None when absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store a value, optionally expiring after `ttl` seconds."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key; True when it existed."""

    @abstractmethod
    async def set_if_absent(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Atomically store a value only if the key is absent; True on success."""

    @abstractmethod
    async def delete_if_equals(self, key: str, expected: Any) -> bool:
        """Atomically delete a key only if it holds `expected`; True when deleted."""

    @abstractmethod
    async def refresh_if_equals(self, key: str, expected: Any, ttl: int) -> bool:
        """Atomically reset a key's TTL only if it holds `expected`; True when refreshed."""

    async def close(self) -> None:
        """Release backend resources."""


class InMemoryKeyValueStore(KeyValueStore):
    """
    Process-local store with lazy expiry.

    Reads drop the expired key they touch; writes also sweep every
    expired key at most once per `sweep_interval` seconds.

    Args:
        clock: Monotonic seconds source (injectable so tests can expire keys)
        sweep_interval: Minimum seconds between full sweeps
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None, sweep_interval: float = 60.0):
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}  # key -> (json, expiry)
        self._lock = asyncio.Lock()
        self._clock = clock or time.monotonic
        self._sweep_interval = sweep_interval
        self._next_sweep = self._clock() + sweep_interval

    def _expiry(self, ttl: Optional[int]) -> Optional[float]:
        return self._clock() + ttl if ttl else None

    def _sweep(self) -> None:
        """Drop every expired key when a sweep is due. Caller holds the lock."""
        now = self._clock()
        if now < self._next_sweep:
            return
        self._next_sweep = now + self._sweep_interval
        expired = [key for key, (_, expiry) in self._data.items() if expiry is not None and now >= expiry]
        for key in expired:
            del self._data[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired keys")

    def _live(self, key: str) -> Optional[str]:
        """Return the raw value if present and unexpired. Caller holds the lock."""
        entry = self._data.get(key)
        if entry is None:
            return None
        raw, expiry = entry
        if expiry is not None and self._clock() >= expiry:
            del self._data[key]
            return None
        return raw

    async def get(self, key: str) -> Any:
        async with self._lock:
            return _decode(self._live(key))

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        async with self._lock:
            self._sweep()
            self._data[key] = (_encode(value), self._expiry(ttl))

    async def delete(self, key: str) -> bool:
        async with self._lock:
            existed = self._live(key) is not None
            self._data.pop(key, None)
            return existed

    async def set_if_absent(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        async with self._lock:
            self._sweep()
            if self._live(key) is not None:
                return False
            self._data[key] = (_encode(value), self._expiry(ttl))
            return True

    async def delete_if_equals(self, key: str, expected: Any) -> bool:
        async with self._lock:
            if self._live(key) != _encode(expected):
                return False
            del self._data[key]
            return True

    async def refresh_if_equals(self, key: str, expected: Any, ttl: int) -> bool:
        async with self._lock:
            raw = self._live(key)
            if raw != _encode(expected):
                return False
            self._data[key] = (raw, self._expiry(ttl))
            return True


# KEYS[1] = key, ARGV[1] = expected encoded value
_DELETE_IF_EQUALS = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""

# KEYS[1] = key, ARGV[1] = expected encoded value, ARGV[2] = ttl seconds
_REFRESH_IF_EQUALS = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('EXPIRE', KEYS[1], ARGV[2])
end
return 0
"""


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed store shared by every API instance."""

    def __init__(self, url: Optional[str] = None, client: Optional[redis.Redis] = None):
        if client is None:
            if not (url or settings.REDIS_URL):
                raise ValueError("REDIS_URL is required for the redis key-value store")
            client = redis.from_url(url or settings.REDIS_URL, decode_responses=True)
        self.redis = client

    async def get(self, key: str) -> Any:
        return _decode(await self.redis.get(key))

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        await self.redis.set(key, _encode(value), ex=ttl or None)

    async def delete(self, key: str) -> bool:
        return bool(await self.redis.delete(key))

    async def set_if_absent(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        return bool(await self.redis.set(key, _encode(value), ex=ttl or None, nx=True))

    async def delete_if_equals(self, key: str, expected: Any) -> bool:
        return bool(await self.redis.eval(_DELETE_IF_EQUALS, 1, key, _encode(expected)))

    async def refresh_if_equals(self, key: str, expected: Any, ttl: int) -> bool:
        return bool(await self.redis.eval(_REFRESH_IF_EQUALS, 1, key, _encode(expected), ttl))

    async def close(self) -> None:
        await self.redis.aclose()


# Global store instance
_store: Optional[KeyValueStore] = None


def create_kv_store(backend: Optional[str] = None) -> KeyValueStore:
    """Build a store for the configured (or given) backend."""
    backend = backend or settings.KV_STORE_BACKEND
    if backend == "redis":
        logger.info("Using Redis key-value store")
        return RedisKeyValueStore()
    logger.info("Using in-memory key-value store (single instance only)")
    return InMemoryKeyValueStore()


def get_kv_store() -> KeyValueStore:
    """Get the global key-value store, creating it on first use."""
    global _store
    if _store is None:
        _store = create_kv_store()
    return _store


async def close_kv_store() -> None:
    """Close and forget the global store."""
    global _store
    if _store is not None:
        await _store.close()
        _store = None

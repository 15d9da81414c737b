# netwatch/cache.py
# ------------------------------------------------------------
# Persistent cache with timestamp-based expiry.
#
# Entry layout (JSON text under "<prefix><key>"):
#   {"data": <payload>, "timestamp": <unix sec>, "expiry": <sec>}
#
# The cache is best-effort: store failures are logged and read as
# a miss, never raised. Only get_or_fetch re-raises, and only the
# fetch function's own error when nothing is cached at all.
# ------------------------------------------------------------

from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .store import KeyValueStore

logger = logging.getLogger(__name__)

CACHE_PREFIX = "netwatch:cache:"
DEFAULT_EXPIRY_SEC = 30 * 60


class PersistentCache:
    def __init__(
        self,
        store: KeyValueStore,
        prefix: str = CACHE_PREFIX,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._prefix = prefix
        self._clock = clock
        self._locks: Dict[str, asyncio.Lock] = {}

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def _read_entry(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            raw = await self._store.get(self._key(key))
        except Exception as exc:  # noqa: BLE001
            logger.error("cache read failed key=%s: %s", key, exc)
            return None
        if not raw:
            return None
        try:
            entry = json.loads(raw)
        except ValueError:
            logger.warning("cache entry is not JSON, ignoring key=%s", key)
            return None
        if not isinstance(entry, dict) or "data" not in entry:
            return None
        return entry

    def _is_valid(self, entry: Dict[str, Any]) -> bool:
        try:
            ts = float(entry.get("timestamp", 0))
            expiry = float(entry.get("expiry", 0))
        except (TypeError, ValueError):
            return False
        return self._clock() - ts < expiry

    # --------------------------------------------------------
    # Public API
    # --------------------------------------------------------
    async def get(self, key: str, evict: bool = True) -> Optional[Any]:
        """
        Fresh read. Expired entries read as absent and are evicted
        unless evict=False (callers that may still need the stale copy).
        """
        entry = await self._read_entry(key)
        if entry is None:
            return None
        if not self._is_valid(entry):
            if evict:
                await self.remove(key)
            return None
        return entry["data"]

    async def get_stale(self, key: str) -> Optional[Any]:
        """
        Most recent payload regardless of expiry.
        """
        entry = await self._read_entry(key)
        return None if entry is None else entry["data"]

    async def set(self, key: str, value: Any, expiry_sec: float = DEFAULT_EXPIRY_SEC) -> None:
        entry = {"data": value, "timestamp": self._clock(), "expiry": expiry_sec}
        async with self._lock(key):
            try:
                await self._store.set(self._key(key), json.dumps(entry))
            except Exception as exc:  # noqa: BLE001
                logger.error("cache write failed key=%s: %s", key, exc)

    async def get_or_fetch(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        expiry_sec: float = DEFAULT_EXPIRY_SEC,
    ) -> Any:
        """
        Cached value if valid, else fetch + cache.

        If fetch_fn raises, the last cached value is returned whatever
        its age (stale-if-error). With nothing cached the error is
        re-raised.
        """
        # read the raw entry without evicting it: an expired entry is
        # still the stale-if-error candidate
        entry = await self._read_entry(key)
        if entry is not None and self._is_valid(entry):
            return entry["data"]

        try:
            data = await fetch_fn()
        except Exception as exc:
            if entry is not None:
                logger.warning("using stale cache for key=%s (%s)", key, exc)
                return entry["data"]
            raise

        await self.set(key, data, expiry_sec)
        return data

    async def get_last_write_time(self, key: str) -> Optional[datetime]:
        entry = await self._read_entry(key)
        if entry is None:
            return None
        try:
            return datetime.fromtimestamp(float(entry["timestamp"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError):
            return None

    async def remove(self, key: str) -> None:
        async with self._lock(key):
            try:
                await self._store.remove(self._key(key))
            except Exception as exc:  # noqa: BLE001
                logger.error("cache remove failed key=%s: %s", key, exc)

    async def clear(self) -> int:
        """
        Remove every entry under this cache's namespace.
        Returns how many keys were removed.
        """
        try:
            keys: List[str] = await self._store.keys(self._prefix)
            await self._store.remove(*keys)
        except Exception as exc:  # noqa: BLE001
            logger.error("cache clear failed: %s", exc)
            return 0
        return len(keys)

# netwatch/store.py
# ------------------------------------------------------------
# Abstract persistent key/value store supplied by the host.
#
# Values are plain strings (callers store JSON text).
# - RedisStore: production backend (redis-py asyncio client)
# - MemoryStore: process-local backend for dev runs and tests
# ------------------------------------------------------------

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import redis.asyncio as redis


class KeyValueStore(ABC):
    """get / set / remove / list-keys over string values."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    async def remove(self, *keys: str) -> None:
        ...

    @abstractmethod
    async def keys(self, prefix: str) -> List[str]:
        ...

    async def close(self) -> None:
        return None


class RedisStore(KeyValueStore):
    def __init__(self, client: redis.Redis):
        self._r = client

    async def get(self, key: str) -> Optional[str]:
        return await self._r.get(key)

    async def set(self, key: str, value: str) -> None:
        await self._r.set(key, value)

    async def remove(self, *keys: str) -> None:
        if keys:
            await self._r.delete(*keys)

    async def keys(self, prefix: str) -> List[str]:
        # SCAN instead of KEYS so large keyspaces don't block the server
        return [k async for k in self._r.scan_iter(match=f"{prefix}*")]

    async def ping(self) -> bool:
        return bool(await self._r.ping())

    async def close(self) -> None:
        await self._r.aclose()


class MemoryStore(KeyValueStore):
    def __init__(self):
        self._data: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, *keys: str) -> None:
        for k in keys:
            self._data.pop(k, None)

    async def keys(self, prefix: str) -> List[str]:
        return [k for k in self._data if k.startswith(prefix)]

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional


@dataclass
class CacheEntry:
    value: Any
    expires_at: float
    stored_at: float


class TTLCache:
    """In-memory TTL cache with LRU eviction.

    Expiry is measured against ``clock`` so callers (and tests) control time
    explicitly instead of relying on wall-clock module state.
    """

    def __init__(
        self,
        default_ttl: float = 300,
        max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._clock = clock
        self._cache: Dict[str, CacheEntry] = {}
        self._access_order: list = []
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        entry = await self.get_entry(key)
        return entry.value if entry is not None else None

    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        async with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None

            if self._clock() >= entry.expires_at:
                self._evict(key)
                return None

            if key in self._access_order:
                self._access_order.remove(key)
            self._access_order.append(key)

            return entry

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        async with self._lock:
            ttl = self.default_ttl if ttl is None else ttl
            now = self._clock()

            self._cache[key] = CacheEntry(value=value, expires_at=now + ttl, stored_at=now)

            if key in self._access_order:
                self._access_order.remove(key)
            self._access_order.append(key)

            while len(self._cache) > self.max_size:
                self._evict(self._access_order[0])

    def age(self, entry: CacheEntry) -> float:
        """Seconds since ``entry`` was stored, by this cache's clock."""
        return self._clock() - entry.stored_at

    async def clear(self) -> None:
        async with self._lock:
            self._cache.clear()
            self._access_order.clear()

    def size(self) -> int:
        return len(self._cache)

    def _evict(self, key: str) -> None:
        self._cache.pop(key, None)
        if key in self._access_order:
            self._access_order.remove(key)

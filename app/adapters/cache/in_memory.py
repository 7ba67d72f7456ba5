"""In-memory TTL cache used when Redis is not configured.

Thread-safe with LRU eviction. Values are stored as deep copies so callers
can never mutate a cached envelope in place.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable

from app.adapters.cache.base import AbstractResponseCache

logger = logging.getLogger(__name__)


@dataclass
class CacheItem:
    """Container for cached values with expiration metadata."""

    value: dict[str, Any]
    expires_at: float


class InMemoryResponseCache(AbstractResponseCache):
    """Per-process TTL cache with LRU eviction.

    Attributes:
        max_entries: Maximum number of cached items (None for unlimited).
    """

    name = "memory"

    def __init__(
        self,
        max_entries: int | None = 1024,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._max_entries = max_entries
        self._clock = clock
        self._store: OrderedDict[str, CacheItem] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryResponseCache(max_entries={self._max_entries}, "
            f"size={len(self._store)}, hits={self._hits}, misses={self._misses}, "
            f"evictions={self._evictions})"
        )

    async def get(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            item = self._store.get(key)
            if item is None:
                self._misses += 1
                return None

            if self._clock() >= item.expires_at:
                self._evict_single(key)
                self._misses += 1
                logger.debug("cache.expired", extra={"cache_key": key})
                return None

            self._hits += 1
            self._store.move_to_end(key)  # mark as recently used
            return copy.deepcopy(item.value)

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        with self._lock:
            self._evict_expired_locked()
            self._store[key] = CacheItem(
                value=copy.deepcopy(value),
                expires_at=self._clock() + ttl_seconds,
            )
            self._store.move_to_end(key)
            self._evict_if_over_capacity_locked()

    async def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        """Remove all cached entries and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def stats(self) -> dict[str, int | None]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            return {
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _evict_single(self, key: str) -> None:
        if self._store.pop(key, None) is not None:
            self._evictions += 1

    def _evict_expired_locked(self) -> None:
        now = self._clock()
        expired_keys = [k for k, item in self._store.items() if item.expires_at <= now]
        for key in expired_keys:
            self._evict_single(key)

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._store) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            self._store.popitem(last=False)
            self._evictions += 1

"""In-process TTL cache."""

from __future__ import annotations

import fnmatch
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from game_recommender.application.interfaces.cache import Cache, CacheFactory
from game_recommender.domain.shared.messages import LogTemplates

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class CacheEntry:
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class InMemoryTTLCache(Cache):
    """Dictionary-backed cache with per-entry expiry.

    Expired entries are dropped lazily on access. ``get_or_set`` does not
    coalesce concurrent misses; two callers racing on the same key may both
    run the factory, and the last write wins.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    async def get(self, key: str) -> Any | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(now):
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            return
        with self._lock:
            self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl_seconds)

    async def get_or_set(self, key: str, ttl_seconds: float, factory: CacheFactory[T]) -> T:
        if ttl_seconds > 0:
            now = self._clock()
            with self._lock:
                entry = self._entries.get(key)
                if entry is not None and not entry.is_expired(now):
                    self._hits += 1
                    logger.debug(LogTemplates.CACHE_HIT, key)
                    return entry.value
                self._misses += 1

        logger.debug(LogTemplates.CACHE_MISS, key)
        value = await factory()
        # None is a valid answer but is not worth remembering.
        if value is not None:
            await self.set(key, value, ttl_seconds)
        return value

    async def remove(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    async def remove_by_pattern(self, pattern: str) -> int:
        with self._lock:
            matched = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
            for key in matched:
                del self._entries[key]
        if matched:
            logger.debug(LogTemplates.CACHE_INVALIDATED, len(matched), pattern)
        return len(matched)

    async def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / total * 100, 1) if total else 0.0,
            }

"""
Cache Interface

Port for the TTL-keyed memoization layer in front of expensive reads.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

T = TypeVar("T")

CacheFactory = Callable[[], Awaitable[T]]


class Cache(ABC):
    """Abstract cache.

    A TTL of 0 disables storage: every `get_or_set` calls its factory.
    Correctness never depends on a value being cached.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the live value for ``key`` or None."""
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Store ``value`` for ``ttl_seconds``."""
        ...

    @abstractmethod
    async def get_or_set(self, key: str, ttl_seconds: float, factory: CacheFactory[T]) -> T:
        """Return the cached value, or compute, store and return it.

        Args:
            key: Cache key.
            ttl_seconds: Lifetime of a freshly computed value.
            factory: Coroutine function producing the value on a miss.

        Returns:
            The cached or freshly computed value.
        """
        ...

    @abstractmethod
    async def remove(self, key: str) -> bool:
        """Evict one key. Returns True if it was present."""
        ...

    @abstractmethod
    async def remove_by_pattern(self, pattern: str) -> int:
        """Evict every key matching a glob pattern such as ``recommendations:42:*``.

        Returns:
            Number of evicted keys.
        """
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Evict everything."""
        ...

"""Cache implementations."""

from game_recommender.infrastructure.cache.memory_cache import InMemoryTTLCache

__all__ = ["InMemoryTTLCache"]

"""Evicts cached reads when the events they depend on are published."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ...domain.shared.constants import CacheKeys
from ...domain.shared.events import (
    ItemOverrideSettingsUpdated,
    RecommendationClicked,
    RecommendationPlayed,
)
from ...domain.shared.messages import LogTemplates

if TYPE_CHECKING:
    from ...domain.shared.events import EventBus
    from ..interfaces.cache import Cache

logger = logging.getLogger(__name__)


class CacheInvalidationSubscriber:
    """Subscribes to catalog and interaction events.

    Override changes can hide or reveal items, so every cached recommendation
    list and override entry is dropped. Clicks and plays change strategy
    metrics, so cached rankings are dropped.
    """

    def __init__(self, *, cache: Cache, event_bus: EventBus) -> None:
        self._cache = cache
        self._bus = event_bus
        self._started = False

    def start(self) -> None:
        if self._started:
            return
        self._bus.subscribe(ItemOverrideSettingsUpdated, self._on_overrides_updated)
        self._bus.subscribe(RecommendationClicked, self._on_engagement)
        self._bus.subscribe(RecommendationPlayed, self._on_engagement)
        self._started = True

    def stop(self) -> None:
        if not self._started:
            return
        self._bus.unsubscribe(ItemOverrideSettingsUpdated, self._on_overrides_updated)
        self._bus.unsubscribe(RecommendationClicked, self._on_engagement)
        self._bus.unsubscribe(RecommendationPlayed, self._on_engagement)
        self._started = False

    async def _on_overrides_updated(self, event: ItemOverrideSettingsUpdated) -> None:
        for pattern in (CacheKeys.RECOMMENDATIONS_ALL, CacheKeys.ITEM_OVERRIDES_PATTERN):
            removed = await self._cache.remove_by_pattern(pattern)
            logger.debug(LogTemplates.CACHE_INVALIDATED, removed, pattern)

    async def _on_engagement(self, event: RecommendationClicked | RecommendationPlayed) -> None:
        removed = await self._cache.remove_by_pattern(CacheKeys.STRATEGY_RANKING_ALL)
        logger.debug(LogTemplates.CACHE_INVALIDATED, removed, CacheKeys.STRATEGY_RANKING_ALL)

"""Popularity-based recommendations."""

from __future__ import annotations

from typing import Any, ClassVar

from game_recommender.domain.catalog.entities import ItemFeatures
from game_recommender.domain.players.entities import PlayerFeatures
from game_recommender.domain.shared.constants import ContextTags

from .base import ScoringStrategy, StrategyKind

POPULARITY_WEIGHT = 0.7
REVENUE_WEIGHT = 0.3
PROMOTION_NEW_ITEM_BOOST = 0.1


class PopularityBasedStrategy(ScoringStrategy):
    name: ClassVar[str] = StrategyKind.POPULARITY_BASED.value
    description: ClassVar[str] = "Ranks items by platform-wide popularity and revenue"
    supports_real_time: ClassVar[bool] = True
    requires_training: ClassVar[bool] = False

    def score(self, player: PlayerFeatures, item: ItemFeatures, context: str, state: Any) -> float:
        value = item.popularity_score * POPULARITY_WEIGHT + item.revenue_score * REVENUE_WEIGHT
        if context == ContextTags.PROMOTION and item.is_new:
            value += PROMOTION_NEW_ITEM_BOOST
        return value

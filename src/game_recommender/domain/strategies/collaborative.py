"""Collaborative filtering from co-play signals of similar players."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, ClassVar

from game_recommender.domain.catalog.entities import ItemFeatures
from game_recommender.domain.players.entities import PlayerFeatures

from .base import CoPlaySource, PerformanceMetricsSource, ScoringStrategy, StrategyKind

NEIGHBOUR_WEIGHT = 0.8
PRIOR_WEIGHT = 0.2
# Without neighbour signal the score is a damped popularity prior.
NO_SIGNAL_DAMPING = 0.5


class CollaborativeFilteringStrategy(ScoringStrategy):
    name: ClassVar[str] = StrategyKind.COLLABORATIVE_FILTERING.value
    description: ClassVar[str] = "Item-to-item co-play affinity across players"
    supports_real_time: ClassVar[bool] = True
    requires_training: ClassVar[bool] = True

    def __init__(
        self,
        *,
        co_play_source: CoPlaySource | None = None,
        metrics_source: PerformanceMetricsSource | None = None,
    ) -> None:
        super().__init__(metrics_source=metrics_source)
        self._co_play_source = co_play_source

    async def prepare(
        self, player: PlayerFeatures, items: Sequence[ItemFeatures], context: str
    ) -> dict[int, float]:
        if self._co_play_source is None:
            return {}
        return await self._co_play_source.co_play_scores(player.player_id)

    def score(self, player: PlayerFeatures, item: ItemFeatures, context: str, state: Any) -> float:
        neighbours: dict[int, float] = state or {}
        if not neighbours:
            return item.popularity_score * NO_SIGNAL_DAMPING
        return (
            neighbours.get(item.item_id, 0.0) * NEIGHBOUR_WEIGHT
            + item.popularity_score * PRIOR_WEIGHT
        )

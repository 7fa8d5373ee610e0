"""Weighted blend of other scoring strategies."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from typing import Any, ClassVar

from game_recommender.domain.catalog.entities import ItemFeatures
from game_recommender.domain.players.entities import PlayerFeatures
from game_recommender.domain.shared.exceptions import ValidationError
from game_recommender.domain.shared.messages import ErrorMessages

from .base import PerformanceMetricsSource, ScoringStrategy, StrategyKind


class HybridStrategy(ScoringStrategy):
    """Blends component strategies by normalized weight.

    Example::

        HybridStrategy([(CollaborativeFilteringStrategy(), 0.4), (ContentBasedStrategy(), 0.6)])
    """

    name: ClassVar[str] = StrategyKind.HYBRID.value
    description: ClassVar[str] = "Weighted blend of collaborative, content and popularity signals"
    supports_real_time: ClassVar[bool] = True
    requires_training: ClassVar[bool] = True

    def __init__(
        self,
        components: Sequence[tuple[ScoringStrategy, float]],
        *,
        metrics_source: PerformanceMetricsSource | None = None,
    ) -> None:
        super().__init__(metrics_source=metrics_source)
        weights = {strategy.name: weight for strategy, weight in components}
        if not components or not self.validate_configuration({"weights": weights}):
            raise ValidationError(ErrorMessages.INVALID_WEIGHTS, field="weights")
        total = sum(weight for _, weight in components)
        self._components = [(strategy, weight / total) for strategy, weight in components]

    @property
    def component_weights(self) -> dict[str, float]:
        return {strategy.name: weight for strategy, weight in self._components}

    def validate_configuration(self, config: Mapping[str, Any]) -> bool:
        weights = config.get("weights")
        if not isinstance(weights, Mapping) or not weights:
            return False
        values = list(weights.values())
        return all(isinstance(v, (int, float)) and v >= 0 for v in values) and sum(values) > 0

    async def prepare(
        self, player: PlayerFeatures, items: Sequence[ItemFeatures], context: str
    ) -> list[Any]:
        return list(
            await asyncio.gather(
                *(strategy.prepare(player, items, context) for strategy, _ in self._components)
            )
        )

    def score(self, player: PlayerFeatures, item: ItemFeatures, context: str, state: Any) -> float:
        states = state or [None] * len(self._components)
        return sum(
            weight * strategy.score(player, item, context, component_state)
            for (strategy, weight), component_state in zip(self._components, states, strict=True)
        )

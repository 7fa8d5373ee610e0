"""Embedding model scoring, remote when a model server is configured."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from typing import Any, ClassVar

from game_recommender.domain.catalog.entities import ItemFeatures
from game_recommender.domain.players.entities import PlayerFeatures
from game_recommender.domain.shared.exceptions import DomainError
from game_recommender.domain.shared.messages import LogTemplates

from .base import ModelScorer, PerformanceMetricsSource, ScoringStrategy, StrategyKind

logger = logging.getLogger(__name__)

# Local fallback: logistic over a handful of hand-weighted interactions.
_LOCAL_WEIGHTS: dict[str, float] = {
    "category_affinity": 2.2,
    "provider_affinity": 0.9,
    "popularity": 1.6,
    "revenue": 0.6,
    "rtp": 0.8,
    "novelty": 0.4,
}
_LOCAL_BIAS = -2.0


class DeepLearningStrategy(ScoringStrategy):
    name: ClassVar[str] = StrategyKind.DEEP_LEARNING.value
    description: ClassVar[str] = "Neural ranking model served over HTTP with a local fallback"
    supports_real_time: ClassVar[bool] = False
    requires_training: ClassVar[bool] = True

    def __init__(
        self,
        *,
        model_client: ModelScorer | None = None,
        model_version: str = "1.0",
        metrics_source: PerformanceMetricsSource | None = None,
    ) -> None:
        super().__init__(metrics_source=metrics_source)
        self._model_client = model_client
        self._model_version = model_version

    @property
    def version(self) -> str:  # type: ignore[override]
        return self._model_version

    def validate_configuration(self, config: Mapping[str, Any]) -> bool:
        timeout = config.get("timeout_seconds", 1.0)
        return isinstance(timeout, (int, float)) and timeout > 0

    async def prepare(
        self, player: PlayerFeatures, items: Sequence[ItemFeatures], context: str
    ) -> dict[int, float]:
        if self._model_client is None or not items:
            return {}
        try:
            scores = await self._model_client.predict(
                player.as_vector(),
                [self._item_vector(player, item) for item in items],
            )
        except (DomainError, TimeoutError) as exc:
            logger.warning(LogTemplates.MODEL_SERVING_FALLBACK, exc)
            return {}
        return {item.item_id: score for item, score in zip(items, scores, strict=True)}

    def score(self, player: PlayerFeatures, item: ItemFeatures, context: str, state: Any) -> float:
        remote: dict[int, float] = state or {}
        if item.item_id in remote:
            return remote[item.item_id]
        return self.local_score(player, item)

    def local_score(self, player: PlayerFeatures, item: ItemFeatures) -> float:
        vector = self._item_vector(player, item)
        logit = _LOCAL_BIAS + sum(
            weight * float(vector.get(name, 0.0)) for name, weight in _LOCAL_WEIGHTS.items()
        )
        return 1.0 / (1.0 + math.exp(-logit))

    @staticmethod
    def _item_vector(player: PlayerFeatures, item: ItemFeatures) -> dict[str, Any]:
        return {
            "item_id": item.item_id,
            "category_affinity": player.category_affinity(item.category),
            "provider_affinity": player.provider_affinity(item.provider),
            "popularity": item.popularity_score,
            "revenue": item.revenue_score,
            "rtp": item.average_rtp,
            "novelty": 1.0 if item.is_new else 0.0,
            **item.features,
        }

"""The recommendation strategy contract and its scoring base class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from enum import StrEnum
from typing import Any, ClassVar, Protocol

from game_recommender.domain.catalog.entities import ItemFeatures
from game_recommender.domain.players.entities import PlayerFeatures
from game_recommender.domain.recommendations.entities import Recommendation, RecommendationRequest
from game_recommender.domain.shared.exceptions import EntityNotFoundError
from game_recommender.domain.shared.messages import ErrorMessages

from .metrics import PerformanceWindow, StrategyPerformanceMetrics


class StrategyKind(StrEnum):
    """Built-in strategy families. The registry may hold others."""

    COLLABORATIVE_FILTERING = "CollaborativeFiltering"
    CONTENT_BASED = "ContentBased"
    HYBRID = "Hybrid"
    POPULARITY_BASED = "PopularityBased"
    BANDIT = "Bandit"
    DEEP_LEARNING = "DeepLearning"


class PerformanceMetricsSource(Protocol):
    async def metrics_for(
        self,
        strategy_name: str,
        window: PerformanceWindow,
        context: str | None = None,
    ) -> StrategyPerformanceMetrics | None: ...


class CoPlaySource(Protocol):
    async def co_play_scores(self, player_id: int) -> dict[int, float]: ...


class ModelScorer(Protocol):
    async def predict(
        self,
        player: Mapping[str, Any],
        items: Sequence[Mapping[str, Any]],
    ) -> list[float]: ...


def clamp_score(value: float) -> float:
    if value != value:  # NaN
        return 0.0
    return max(0.0, min(1.0, float(value)))


class RecommendationStrategy(ABC):
    """Contract shared by every recommendation-generation algorithm."""

    name: ClassVar[str]
    version: ClassVar[str] = "1.0"
    description: ClassVar[str] = ""
    supports_real_time: ClassVar[bool] = True
    requires_training: ClassVar[bool] = False

    @abstractmethod
    async def generate_recommendations(
        self,
        request: RecommendationRequest,
        player: PlayerFeatures,
        items: Sequence[ItemFeatures],
    ) -> list[Recommendation]:
        """Produce at most ``request.count`` recommendations with unique item ids.

        Args:
            request: The recommendation request.
            player: Feature snapshot of the requesting player.
            items: Candidate items.

        Returns:
            Recommendations ranked from position 1.
        """
        ...

    @abstractmethod
    async def calculate_score(self, player: PlayerFeatures, item: ItemFeatures, context: str) -> float:
        """Score one item for one player, in [0, 1]."""
        ...

    @abstractmethod
    async def get_performance_metrics(
        self, window: PerformanceWindow, context: str | None = None
    ) -> StrategyPerformanceMetrics:
        """Aggregate metrics for recommendations this strategy produced.

        Raises:
            EntityNotFoundError: If no metrics exist for the window.
        """
        ...

    def validate_configuration(self, config: Mapping[str, Any]) -> bool:
        """Check a configuration map for this strategy. Accepts anything by default."""
        return True

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "supports_real_time": self.supports_real_time,
            "requires_training": self.requires_training,
        }


class ScoringStrategy(RecommendationStrategy):
    """Scores each candidate independently and keeps the best ``count``.

    Subclasses implement `score` and may override `prepare` to load per-request
    state (e.g. neighbour signals) once rather than per item.
    """

    def __init__(self, *, metrics_source: PerformanceMetricsSource | None = None) -> None:
        self._metrics_source = metrics_source

    async def prepare(
        self, player: PlayerFeatures, items: Sequence[ItemFeatures], context: str
    ) -> Any:
        return None

    @abstractmethod
    def score(self, player: PlayerFeatures, item: ItemFeatures, context: str, state: Any) -> float:
        ...

    async def generate_recommendations(
        self,
        request: RecommendationRequest,
        player: PlayerFeatures,
        items: Sequence[ItemFeatures],
    ) -> list[Recommendation]:
        candidates: dict[int, ItemFeatures] = {}
        for item in items:
            if item.item_id in request.excluded_item_ids:
                continue
            candidates.setdefault(item.item_id, item)

        if not candidates:
            return []

        state = await self.prepare(player, list(candidates.values()), request.context)
        scored = sorted(
            (
                (clamp_score(self.score(player, item, request.context, state)), item)
                for item in candidates.values()
            ),
            key=lambda pair: (-pair[0], pair[1].item_id),
        )

        return [
            Recommendation(
                player_id=request.player_id,
                item_id=item.item_id,
                algorithm=self.name,
                score=score,
                position=position,
                context=request.context,
                category=item.category,
                provider=item.provider,
                session_id=request.session_id,
                model_version=self.version,
                features=self.feature_snapshot(player, item),
            )
            for position, (score, item) in enumerate(scored[: request.count], start=1)
        ]

    async def calculate_score(self, player: PlayerFeatures, item: ItemFeatures, context: str) -> float:
        state = await self.prepare(player, [item], context)
        return clamp_score(self.score(player, item, context, state))

    async def get_performance_metrics(
        self, window: PerformanceWindow, context: str | None = None
    ) -> StrategyPerformanceMetrics:
        metrics = None
        if self._metrics_source is not None:
            metrics = await self._metrics_source.metrics_for(self.name, window, context)
        if metrics is None:
            raise EntityNotFoundError(
                "StrategyPerformanceMetrics",
                self.name,
                ErrorMessages.NO_METRICS.format(name=self.name),
            )
        return metrics

    def feature_snapshot(self, player: PlayerFeatures, item: ItemFeatures) -> dict[str, float]:
        return {
            "popularity": item.popularity_score,
            "revenue": item.revenue_score,
            "category_affinity": player.category_affinity(item.category),
            "provider_affinity": player.provider_affinity(item.provider),
        }

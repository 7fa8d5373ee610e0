"""Name-to-constructor registry of recommendation strategies."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from types import MappingProxyType

from game_recommender.domain.shared.messages import LogTemplates

from .base import (
    CoPlaySource,
    ModelScorer,
    PerformanceMetricsSource,
    RecommendationStrategy,
    ScoringStrategy,
    StrategyKind,
)

logger = logging.getLogger(__name__)

StrategyFactory = Callable[[], RecommendationStrategy]

DEFAULT_HYBRID_WEIGHTS: dict[str, float] = {
    StrategyKind.COLLABORATIVE_FILTERING.value: 0.4,
    StrategyKind.CONTENT_BASED.value: 0.4,
    StrategyKind.POPULARITY_BASED.value: 0.2,
}


class StrategyRegistry:
    """Immutable mapping from strategy name to factory.

    Lookups are case-insensitive. Unknown names resolve to the fallback
    strategy (collaborative filtering unless configured otherwise) so that
    serving degrades instead of failing.
    """

    def __init__(
        self,
        factories: Mapping[str, StrategyFactory],
        *,
        fallback: str = StrategyKind.COLLABORATIVE_FILTERING.value,
    ) -> None:
        entries = {name.lower(): (name, factory) for name, factory in factories.items()}
        if fallback.lower() not in entries:
            raise ValueError(f"Fallback strategy {fallback!r} is not registered")
        self._entries = MappingProxyType(entries)
        self._fallback = entries[fallback.lower()][0]

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self._entries.values())

    @property
    def fallback_name(self) -> str:
        return self._fallback

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __len__(self) -> int:
        return len(self._entries)

    def create(self, name: str | None) -> RecommendationStrategy:
        entry = self._entries.get((name or "").lower())
        if entry is None:
            logger.warning(LogTemplates.STRATEGY_UNKNOWN, name, self._fallback)
            entry = self._entries[self._fallback.lower()]
        return entry[1]()

    def create_fallback(self) -> RecommendationStrategy:
        return self._entries[self._fallback.lower()][1]()

    def create_all(self) -> list[RecommendationStrategy]:
        return [factory() for _, factory in self._entries.values()]

    def with_strategy(self, name: str, factory: StrategyFactory) -> StrategyRegistry:
        """Return a new registry that also knows ``name``."""
        factories = {registered: f for registered, f in self._entries.values()}
        factories[name] = factory
        return StrategyRegistry(factories, fallback=self._fallback)


def build_default_registry(
    *,
    co_play_source: CoPlaySource | None = None,
    metrics_source: PerformanceMetricsSource | None = None,
    model_client: ModelScorer | None = None,
    model_version: str = "1.0",
    exploration_rate: float = 0.1,
    new_player_exploration_rate: float = 0.3,
    hybrid_weights: Mapping[str, float] | None = None,
) -> StrategyRegistry:
    """Registry holding the six built-in strategies wired to shared sources."""
    from .bandit import BanditStrategy
    from .collaborative import CollaborativeFilteringStrategy
    from .content_based import ContentBasedStrategy
    from .deep_learning import DeepLearningStrategy
    from .hybrid import HybridStrategy
    from .popularity import PopularityBasedStrategy

    weights = dict(hybrid_weights or DEFAULT_HYBRID_WEIGHTS)

    def collaborative() -> CollaborativeFilteringStrategy:
        return CollaborativeFilteringStrategy(
            co_play_source=co_play_source, metrics_source=metrics_source
        )

    def content_based() -> ContentBasedStrategy:
        return ContentBasedStrategy(metrics_source=metrics_source)

    def popularity() -> PopularityBasedStrategy:
        return PopularityBasedStrategy(metrics_source=metrics_source)

    component_factories: dict[str, Callable[[], ScoringStrategy]] = {
        StrategyKind.COLLABORATIVE_FILTERING.value: collaborative,
        StrategyKind.CONTENT_BASED.value: content_based,
        StrategyKind.POPULARITY_BASED.value: popularity,
    }

    def hybrid() -> HybridStrategy:
        return HybridStrategy(
            [(component_factories[name](), weight) for name, weight in weights.items()],
            metrics_source=metrics_source,
        )

    def bandit() -> BanditStrategy:
        return BanditStrategy(
            exploration_rate=exploration_rate,
            new_player_exploration_rate=new_player_exploration_rate,
            metrics_source=metrics_source,
        )

    def deep_learning() -> DeepLearningStrategy:
        return DeepLearningStrategy(
            model_client=model_client, model_version=model_version, metrics_source=metrics_source
        )

    return StrategyRegistry(
        {
            **component_factories,
            StrategyKind.HYBRID.value: hybrid,
            StrategyKind.BANDIT.value: bandit,
            StrategyKind.DEEP_LEARNING.value: deep_learning,
        }
    )

"""
Strategies Bounded Context

Interchangeable recommendation-generation algorithms behind one contract.
"""

from game_recommender.domain.strategies.bandit import BanditStrategy
from game_recommender.domain.strategies.base import (
    CoPlaySource,
    ModelScorer,
    PerformanceMetricsSource,
    RecommendationStrategy,
    ScoringStrategy,
    StrategyKind,
)
from game_recommender.domain.strategies.collaborative import CollaborativeFilteringStrategy
from game_recommender.domain.strategies.content_based import ContentBasedStrategy
from game_recommender.domain.strategies.deep_learning import DeepLearningStrategy
from game_recommender.domain.strategies.hybrid import HybridStrategy
from game_recommender.domain.strategies.metrics import (
    PerformanceWindow,
    StrategyPerformanceMetrics,
    StrategyRanking,
    rank_strategies,
)
from game_recommender.domain.strategies.popularity import PopularityBasedStrategy
from game_recommender.domain.strategies.registry import StrategyRegistry, build_default_registry

__all__ = [
    # Contract
    "RecommendationStrategy",
    "ScoringStrategy",
    "StrategyKind",
    "CoPlaySource",
    "ModelScorer",
    "PerformanceMetricsSource",
    # Strategies
    "BanditStrategy",
    "CollaborativeFilteringStrategy",
    "ContentBasedStrategy",
    "DeepLearningStrategy",
    "HybridStrategy",
    "PopularityBasedStrategy",
    # Registry
    "StrategyRegistry",
    "build_default_registry",
    # Metrics
    "PerformanceWindow",
    "StrategyPerformanceMetrics",
    "StrategyRanking",
    "rank_strategies",
]

"""A/B experiment assignment."""

from game_recommender.infrastructure.experiments.hash_ring import ConsistentHashRing
from game_recommender.infrastructure.experiments.sqlite_experiment_service import (
    ExperimentDefinition,
    SQLiteExperimentService,
    VariantAllocation,
)

__all__ = [
    "ConsistentHashRing",
    "ExperimentDefinition",
    "SQLiteExperimentService",
    "VariantAllocation",
]

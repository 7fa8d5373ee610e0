"""
Catalog Bounded Context

Item features and per-item administrator overrides.
"""

from game_recommender.domain.catalog.entities import ItemFeatures, ItemOverrideSettings
from game_recommender.domain.catalog.repository import ItemFeatureRepository, ItemOverrideRepository

__all__ = [
    "ItemFeatures",
    "ItemOverrideSettings",
    "ItemFeatureRepository",
    "ItemOverrideRepository",
]

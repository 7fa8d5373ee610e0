"""SQLite repository implementations."""

from game_recommender.infrastructure.persistence.repositories.interactions import (
    SQLiteInteractionRepository,
)
from game_recommender.infrastructure.persistence.repositories.item_features import (
    SQLiteItemFeatureRepository,
)
from game_recommender.infrastructure.persistence.repositories.item_overrides import (
    SQLiteItemOverrideRepository,
)
from game_recommender.infrastructure.persistence.repositories.player_features import (
    SQLitePlayerFeatureRepository,
)
from game_recommender.infrastructure.persistence.repositories.players import (
    SQLitePlayerRepository,
)
from game_recommender.infrastructure.persistence.repositories.recommendations import (
    SQLiteRecommendationRepository,
)

__all__ = [
    "SQLiteInteractionRepository",
    "SQLiteItemFeatureRepository",
    "SQLiteItemOverrideRepository",
    "SQLitePlayerFeatureRepository",
    "SQLitePlayerRepository",
    "SQLiteRecommendationRepository",
]

"""
Recommendations Bounded Context

The recommendation aggregate, interaction records and candidate-list rules.
"""

from game_recommender.domain.recommendations.entities import (
    DEFAULT_RECOMMENDATION_COUNT,
    MAX_RECOMMENDATION_COUNT,
    InteractionType,
    Page,
    Recommendation,
    RecommendationInteraction,
    RecommendationRequest,
)
from game_recommender.domain.recommendations.repository import (
    InteractionRepository,
    RecommendationRepository,
)
from game_recommender.domain.recommendations.services import RecommendationDomainService

__all__ = [
    # Entities
    "InteractionType",
    "Page",
    "Recommendation",
    "RecommendationInteraction",
    "RecommendationRequest",
    "DEFAULT_RECOMMENDATION_COUNT",
    "MAX_RECOMMENDATION_COUNT",
    # Repositories
    "RecommendationRepository",
    "InteractionRepository",
    # Services
    "RecommendationDomainService",
]

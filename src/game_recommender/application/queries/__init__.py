"""Read-only query objects and handlers."""

from .get_item_override_settings import (
    GetItemOverrideSettingsHandler,
    GetItemOverrideSettingsQuery,
)
from .get_recommendation_history import (
    GetRecommendationHistoryHandler,
    GetRecommendationHistoryQuery,
)
from .get_recommendations import GetRecommendationsHandler, GetRecommendationsQuery
from .get_strategy_ranking import GetStrategyRankingHandler, GetStrategyRankingQuery

__all__ = [
    "GetItemOverrideSettingsHandler",
    "GetItemOverrideSettingsQuery",
    "GetRecommendationHistoryHandler",
    "GetRecommendationHistoryQuery",
    "GetRecommendationsHandler",
    "GetRecommendationsQuery",
    "GetStrategyRankingHandler",
    "GetStrategyRankingQuery",
]

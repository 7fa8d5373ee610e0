"""Command objects and handlers for every state change."""

from .create_recommendation import CreateRecommendationCommand, CreateRecommendationHandler
from .record_served_recommendations import (
    RecordServedRecommendationsCommand,
    RecordServedRecommendationsHandler,
)
from .track_interaction import InteractionOutcome, TrackInteractionCommand, TrackInteractionHandler
from .update_item_overrides import (
    UpdateItemOverrideSettingsCommand,
    UpdateItemOverrideSettingsHandler,
)

__all__ = [
    "CreateRecommendationCommand",
    "CreateRecommendationHandler",
    "InteractionOutcome",
    "RecordServedRecommendationsCommand",
    "RecordServedRecommendationsHandler",
    "TrackInteractionCommand",
    "TrackInteractionHandler",
    "UpdateItemOverrideSettingsCommand",
    "UpdateItemOverrideSettingsHandler",
]

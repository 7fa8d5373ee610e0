"""Core domain entities for the recommendations bounded context."""

from __future__ import annotations

import hashlib
import json
from datetime import datetime
from enum import StrEnum
from typing import Any, Final, Generic, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from game_recommender.domain.shared.constants import CacheKeys, ContextTags
from game_recommender.domain.shared.datetime_utils import utcnow
from game_recommender.domain.shared.events import (
    AggregateRoot,
    RecommendationClicked,
    RecommendationGenerated,
    RecommendationPlayed,
)
from game_recommender.domain.shared.types import (
    AlgorithmNameStr,
    ContextTagStr,
    ItemIdField,
    NonEmptyStr,
    NonNegativeFloat,
    NonNegativeInt,
    PlayerIdField,
    PositiveInt,
    RankPosition,
    RecommendationCount,
    UnitInterval,
    UtcDatetimeField,
)

DEFAULT_RECOMMENDATION_COUNT: Final[int] = 10
MAX_RECOMMENDATION_COUNT: Final[int] = 100

T = TypeVar("T")


class InteractionType(StrEnum):
    """Kinds of player interaction with a served recommendation."""

    VIEW = "view"
    CLICK = "click"
    PLAY = "play"
    DISMISS = "dismiss"
    LIKE = "like"
    DISLIKE = "dislike"


class RecommendationRequest(BaseModel):
    """Value object for one recommendation request. Never persisted."""

    model_config = ConfigDict(frozen=True)

    player_id: PlayerIdField
    count: RecommendationCount = DEFAULT_RECOMMENDATION_COUNT
    context: ContextTagStr = ContextTags.LOBBY
    algorithm: AlgorithmNameStr | None = None
    excluded_item_ids: frozenset[int] = Field(default_factory=frozenset)
    parameters: dict[str, Any] = Field(default_factory=dict)
    session_id: str | None = None

    @property
    def fingerprint(self) -> str:
        """Stable digest of everything besides player and context that shapes the result."""
        payload = json.dumps(
            {
                "count": self.count,
                "algorithm": (self.algorithm or "").lower(),
                "excluded": sorted(self.excluded_item_ids),
                "parameters": self.parameters,
            },
            sort_keys=True,
            default=str,
        )
        return hashlib.sha1(payload.encode("utf-8")).hexdigest()[:16]

    @property
    def cache_key(self) -> str:
        return CacheKeys.RECOMMENDATIONS.format(
            player_id=self.player_id, context=self.context, fingerprint=self.fingerprint
        )


class Recommendation(AggregateRoot):
    """One item recommended to one player.

    Immutable after creation except for the click/play flags, which only move
    from unset to set.
    """

    id: NonEmptyStr = Field(default_factory=lambda: str(uuid4()))
    player_id: PlayerIdField
    item_id: ItemIdField
    algorithm: AlgorithmNameStr
    score: UnitInterval
    position: RankPosition
    context: ContextTagStr = ContextTags.LOBBY
    category: str | None = None
    provider: str | None = None
    is_clicked: bool = False
    clicked_at: UtcDatetimeField | None = None
    is_played: bool = False
    played_at: UtcDatetimeField | None = None
    session_id: str | None = None
    experiment_variant: str | None = None
    model_version: str | None = None
    features: dict[str, float] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: UtcDatetimeField = Field(default_factory=utcnow)
    version: PositiveInt = 1
    interactions: list[RecommendationInteraction] = Field(default_factory=list, exclude=True)

    def record_generated(self) -> None:
        """Buffer the generation event; called once when the recommendation is persisted."""
        self.record_event(
            RecommendationGenerated(
                recommendation_id=self.id,
                player_id=self.player_id,
                item_id=self.item_id,
                algorithm=self.algorithm,
                context=self.context,
                position=self.position,
            )
        )

    def mark_clicked(self, at: datetime | None = None, session_id: str | None = None) -> bool:
        """Set the click flag once. Returns False when it was already set."""
        if self.is_clicked:
            return False
        self.is_clicked = True
        self.clicked_at = at or utcnow()
        self.record_event(
            RecommendationClicked(
                recommendation_id=self.id,
                player_id=self.player_id,
                item_id=self.item_id,
                algorithm=self.algorithm,
                session_id=session_id or "",
            )
        )
        return True

    def mark_played(self, at: datetime | None = None, session_id: str | None = None) -> bool:
        """Set the play flag once. Returns False when it was already set."""
        if self.is_played:
            return False
        self.is_played = True
        self.played_at = at or utcnow()
        self.record_event(
            RecommendationPlayed(
                recommendation_id=self.id,
                player_id=self.player_id,
                item_id=self.item_id,
                algorithm=self.algorithm,
                session_id=session_id or "",
            )
        )
        return True

    def with_position(self, position: int) -> Recommendation:
        return self.model_copy(update={"position": position})


class RecommendationInteraction(BaseModel):
    """Immutable record of one tracked interaction."""

    model_config = ConfigDict(frozen=True)

    id: NonEmptyStr = Field(default_factory=lambda: str(uuid4()))
    recommendation_id: NonEmptyStr
    player_id: PlayerIdField
    item_id: ItemIdField
    interaction_type: InteractionType
    value: NonNegativeFloat = 0.0
    session_id: str = ""
    platform: str | None = None
    user_agent: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    occurred_at: UtcDatetimeField = Field(default_factory=utcnow)

    @property
    def dedup_key(self) -> tuple[str, str, str]:
        return (self.recommendation_id, self.session_id, self.interaction_type.value)


class Page(BaseModel, Generic[T]):
    """One page of a larger result set."""

    items: list[T] = Field(default_factory=list)
    total_count: NonNegativeInt = 0
    page: PositiveInt = 1
    page_size: PositiveInt = 20

    @property
    def total_pages(self) -> int:
        return (self.total_count + self.page_size - 1) // self.page_size

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


Recommendation.model_rebuild()

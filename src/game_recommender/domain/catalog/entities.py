"""Recommendable items and their per-item override settings."""

from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from game_recommender.domain.shared.datetime_utils import utcnow
from game_recommender.domain.shared.events import AggregateRoot, ItemOverrideSettingsUpdated
from game_recommender.domain.shared.exceptions import BusinessRuleViolationError
from game_recommender.domain.shared.messages import ErrorMessages
from game_recommender.domain.shared.types import (
    ItemIdField,
    NonEmptyStr,
    NonNegativeFloat,
    NonNegativeInt,
    PositiveInt,
    UnitInterval,
    UtcDatetimeField,
)


class ItemFeatures(BaseModel):
    """Feature-store attributes of one recommendable game."""

    model_config = ConfigDict(frozen=True)

    item_id: ItemIdField
    name: NonEmptyStr
    category: NonEmptyStr
    provider: NonEmptyStr
    volatility: str = "medium"
    average_rtp: UnitInterval = 0.96
    min_bet: NonNegativeFloat = 0.1
    max_bet: NonNegativeFloat = 100.0
    popularity_score: UnitInterval = 0.0
    revenue_score: UnitInterval = 0.0
    is_mobile: bool = True
    is_new: bool = False
    is_active: bool = True
    features: dict[str, float] = Field(default_factory=dict)
    updated_at: UtcDatetimeField = Field(default_factory=utcnow)


class ItemOverrideSettings(AggregateRoot):
    """Administrator overrides for one item.

    A ``None`` override means "use the catalog value".
    """

    OVERRIDABLE_FIELDS: ClassVar[tuple[str, ...]] = (
        "is_active",
        "hide_in_lobby",
        "display_order",
        "min_bet",
        "max_bet",
        "is_mobile",
        "is_desktop",
        "is_featured",
        "feature_priority",
        "tags",
        "notes",
        "settings",
    )

    item_id: ItemIdField
    is_active: bool | None = None
    hide_in_lobby: bool | None = None
    display_order: NonNegativeInt | None = None
    min_bet: NonNegativeFloat | None = None
    max_bet: NonNegativeFloat | None = None
    is_mobile: bool | None = None
    is_desktop: bool | None = None
    is_featured: bool = False
    feature_priority: NonNegativeInt = 0
    tags: tuple[str, ...] = ()
    notes: str | None = None
    settings: dict[str, Any] = Field(default_factory=dict)
    updated_by: str | None = None
    updated_at: UtcDatetimeField = Field(default_factory=utcnow)
    version: PositiveInt = 1

    @model_validator(mode="after")
    def _check_bet_range(self) -> ItemOverrideSettings:
        if self.min_bet is not None and self.max_bet is not None and self.min_bet > self.max_bet:
            raise ValueError(ErrorMessages.INVALID_BET_RANGE)
        return self

    def apply_changes(
        self,
        changes: dict[str, Any],
        *,
        updated_by: str | None = None,
        at: datetime | None = None,
    ) -> tuple[str, ...]:
        """Apply override values and record an update event.

        Args:
            changes: Field name to new value; unknown names are ignored.
            updated_by: Identity of the administrator making the change.
            at: Change timestamp, defaults to now.

        Returns:
            Names of the fields whose value actually changed.
        """
        changed = tuple(
            name
            for name in self.OVERRIDABLE_FIELDS
            if name in changes and getattr(self, name) != changes[name]
        )
        if not changed:
            return ()

        # Validate the combined state before mutating anything.
        candidate = self.model_copy(update={name: changes[name] for name in changed})
        if (
            candidate.min_bet is not None
            and candidate.max_bet is not None
            and candidate.min_bet > candidate.max_bet
        ):
            raise BusinessRuleViolationError("bet_range", ErrorMessages.INVALID_BET_RANGE)
        validated = type(self).model_validate(candidate.model_dump())

        for name in changed:
            setattr(self, name, getattr(validated, name))
        self.updated_by = updated_by
        self.updated_at = at or utcnow()
        self.record_event(
            ItemOverrideSettingsUpdated(
                item_id=self.item_id, changed_fields=changed, updated_by=updated_by
            )
        )
        return changed

    def hides(self, context: str, lobby_context: str) -> bool:
        if self.is_active is False:
            return True
        return bool(self.hide_in_lobby) and context == lobby_context

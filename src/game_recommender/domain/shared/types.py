"""Reusable Pydantic Annotated types for domain-wide validation.

Every constrained type used across bounded contexts is defined here once,
so models can simply annotate their fields::

    from game_recommender.domain.shared.types import PlayerIdField, UnitInterval

    class MyModel(BaseModel):
        player_id: PlayerIdField
        score: UnitInterval
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from pydantic import BeforeValidator, Field

# ── Numeric constraints ─────────────────────────────────────────────

NonNegativeInt = Annotated[int, Field(ge=0)]
"""Integer >= 0."""

PositiveInt = Annotated[int, Field(gt=0)]
"""Integer > 0."""

NonNegativeFloat = Annotated[float, Field(ge=0.0)]
"""Float >= 0.0."""

UnitInterval = Annotated[float, Field(ge=0.0, le=1.0)]
"""Float in [0.0, 1.0], used for scores and rates."""


# ── String constraints ──────────────────────────────────────────────

NonEmptyStr = Annotated[str, Field(min_length=1)]
"""String with at least one character."""

ContextTagStr = Annotated[str, Field(min_length=1, max_length=64)]
"""Request context tag such as ``lobby`` or ``game_end``."""

AlgorithmNameStr = Annotated[str, Field(min_length=1, max_length=100)]
"""Strategy name as registered in the strategy registry."""


# ── Domain identifiers ──────────────────────────────────────────────

PlayerIdField = PositiveInt
"""Player identifier supplied by the platform."""

ItemIdField = PositiveInt
"""Recommendable item (game) identifier."""

RankPosition = Annotated[int, Field(ge=1)]
"""One-based rank position within a result set."""

RecommendationCount = Annotated[int, Field(ge=1, le=100)]
"""Number of recommendations requested: 1 … 100."""


# ── Settings-specific constraints ──────────────────────────────────

BusyTimeoutMs = Annotated[int, Field(ge=1000, le=30000)]
"""Database busy timeout in milliseconds: 1 000 … 30 000."""

ConnectionTimeoutS = Annotated[int, Field(ge=1, le=60)]
"""Database connection timeout in seconds: 1 … 60."""

TtlSeconds = Annotated[int, Field(ge=0, le=86_400)]
"""Cache time-to-live in seconds, 0 disables caching."""


# ── Datetime constraints ────────────────────────────────────────────

def _ensure_utc(v: datetime) -> datetime:
    """Validate that a datetime is timezone-aware and normalise to UTC."""
    if isinstance(v, datetime):
        if v.tzinfo is None:
            raise ValueError("datetime must be timezone-aware (UTC)")
        return v.astimezone(UTC)
    return v


UtcDatetimeField = Annotated[datetime, BeforeValidator(_ensure_utc)]
"""Timezone-aware datetime, normalised to UTC on input."""

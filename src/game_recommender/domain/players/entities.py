"""Player accounts and their behavioural feature snapshots."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from game_recommender.domain.shared.datetime_utils import utcnow
from game_recommender.domain.shared.types import (
    NonNegativeFloat,
    NonNegativeInt,
    PlayerIdField,
    UnitInterval,
    UtcDatetimeField,
)


class Player(BaseModel):
    """A platform account that can receive recommendations."""

    model_config = ConfigDict(frozen=True)

    player_id: PlayerIdField
    username: str = ""
    country: str | None = None
    is_active: bool = True
    created_at: UtcDatetimeField = Field(default_factory=utcnow)


class PlayerFeatures(BaseModel):
    """Snapshot of a player's behavioural profile.

    Owned by the feature store and refreshed out of band; the engine only
    reads it.
    """

    model_config = ConfigDict(frozen=True)

    player_id: PlayerIdField
    age: NonNegativeInt | None = None
    country: str | None = None
    risk_level: str = "unknown"
    vip_level: NonNegativeInt = 0

    total_games_played: NonNegativeInt = 0
    session_count: NonNegativeInt = 0
    average_session_minutes: NonNegativeFloat = 0.0
    days_since_last_play: NonNegativeInt | None = None
    last_play_date: UtcDatetimeField | None = None

    total_deposits: NonNegativeFloat = 0.0
    total_bets: NonNegativeFloat = 0.0
    total_wins: NonNegativeFloat = 0.0
    average_bet_size: NonNegativeFloat = 0.0

    preferred_categories: tuple[str, ...] = ()
    preferred_providers: tuple[str, ...] = ()
    preferred_volatility: str | None = None
    preferred_rtp: UnitInterval | None = None

    play_style: str = "casual"
    win_rate: UnitInterval = 0.0
    consecutive_losses: NonNegativeInt = 0
    is_new_player: bool = False

    custom_features: dict[str, float] = Field(default_factory=dict)
    updated_at: UtcDatetimeField = Field(default_factory=utcnow)

    @classmethod
    def new_player(cls, player_id: int) -> PlayerFeatures:
        """Default record used when the feature store has no row yet."""
        return cls(player_id=player_id, is_new_player=True, play_style="new")

    @property
    def net_position(self) -> float:
        return self.total_wins - self.total_bets

    def category_affinity(self, category: str) -> float:
        """1.0 for the top preference, decaying with preference rank, 0 if absent."""
        try:
            index = self.preferred_categories.index(category)
        except ValueError:
            return 0.0
        return 1.0 / (1 + index)

    def provider_affinity(self, provider: str) -> float:
        try:
            index = self.preferred_providers.index(provider)
        except ValueError:
            return 0.0
        return 1.0 / (1 + index)

    def as_vector(self) -> dict[str, Any]:
        return {
            "total_games_played": self.total_games_played,
            "session_count": self.session_count,
            "average_session_minutes": self.average_session_minutes,
            "average_bet_size": self.average_bet_size,
            "vip_level": self.vip_level,
            "win_rate": self.win_rate,
            "is_new_player": self.is_new_player,
            **self.custom_features,
        }


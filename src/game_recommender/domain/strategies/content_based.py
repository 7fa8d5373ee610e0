"""Content-based recommendations matching item attributes to a player profile."""

from __future__ import annotations

from typing import Any, ClassVar

from game_recommender.domain.catalog.entities import ItemFeatures
from game_recommender.domain.players.entities import PlayerFeatures

from .base import ScoringStrategy, StrategyKind

# Profile match weights; sum to 1.
CATEGORY_WEIGHT = 0.35
PROVIDER_WEIGHT = 0.15
VOLATILITY_WEIGHT = 0.1
RTP_WEIGHT = 0.1
BET_FIT_WEIGHT = 0.1
POPULARITY_WEIGHT = 0.2

# Weights used when the player has no stated preferences.
COLD_POPULARITY_WEIGHT = 0.6
COLD_NOVELTY_WEIGHT = 0.2
COLD_BET_FIT_WEIGHT = 0.2


class ContentBasedStrategy(ScoringStrategy):
    name: ClassVar[str] = StrategyKind.CONTENT_BASED.value
    description: ClassVar[str] = "Matches game attributes against the player's stated preferences"
    supports_real_time: ClassVar[bool] = True
    requires_training: ClassVar[bool] = False

    def score(self, player: PlayerFeatures, item: ItemFeatures, context: str, state: Any) -> float:
        bet_fit = self._bet_fit(player, item)
        if not player.preferred_categories and not player.preferred_providers:
            return (
                item.popularity_score * COLD_POPULARITY_WEIGHT
                + (1.0 if item.is_new else 0.0) * COLD_NOVELTY_WEIGHT
                + bet_fit * COLD_BET_FIT_WEIGHT
            )

        return (
            player.category_affinity(item.category) * CATEGORY_WEIGHT
            + player.provider_affinity(item.provider) * PROVIDER_WEIGHT
            + self._volatility_match(player, item) * VOLATILITY_WEIGHT
            + self._rtp_match(player, item) * RTP_WEIGHT
            + bet_fit * BET_FIT_WEIGHT
            + item.popularity_score * POPULARITY_WEIGHT
        )

    @staticmethod
    def _volatility_match(player: PlayerFeatures, item: ItemFeatures) -> float:
        if player.preferred_volatility is None:
            return 0.5
        return 1.0 if player.preferred_volatility == item.volatility else 0.0

    @staticmethod
    def _rtp_match(player: PlayerFeatures, item: ItemFeatures) -> float:
        if player.preferred_rtp is None:
            return 0.5
        return max(0.0, 1.0 - abs(player.preferred_rtp - item.average_rtp) * 10)

    @staticmethod
    def _bet_fit(player: PlayerFeatures, item: ItemFeatures) -> float:
        # New players have no bet history; any table with a low floor fits.
        budget = max(player.average_bet_size, 1.0)
        if item.min_bet <= budget:
            return 1.0
        return max(0.0, budget / item.min_bet)

"""Epsilon-greedy multi-armed bandit over catalog items."""

from __future__ import annotations

import random
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, ClassVar

from game_recommender.domain.catalog.entities import ItemFeatures
from game_recommender.domain.players.entities import PlayerFeatures
from game_recommender.domain.shared.datetime_utils import utcnow

from .base import PerformanceMetricsSource, ScoringStrategy, StrategyKind, clamp_score

CTR_FEATURE = "ctr"


@dataclass(frozen=True, slots=True)
class BanditRound:
    rng: random.Random
    exploration_rate: float


class BanditStrategy(ScoringStrategy):
    """Each item is an arm whose value is its observed click-through rate.

    With probability ``exploration_rate`` an arm gets a random score instead,
    so rarely shown items still collect feedback. The random stream is seeded
    per player, context and day, which keeps one day's ordering stable.
    """

    name: ClassVar[str] = StrategyKind.BANDIT.value
    description: ClassVar[str] = "Epsilon-greedy exploration over per-item click-through rates"
    supports_real_time: ClassVar[bool] = True
    requires_training: ClassVar[bool] = True

    def __init__(
        self,
        *,
        exploration_rate: float = 0.1,
        new_player_exploration_rate: float = 0.3,
        metrics_source: PerformanceMetricsSource | None = None,
    ) -> None:
        super().__init__(metrics_source=metrics_source)
        self.exploration_rate = exploration_rate
        self.new_player_exploration_rate = new_player_exploration_rate

    def validate_configuration(self, config: Mapping[str, Any]) -> bool:
        rate = config.get("exploration_rate", self.exploration_rate)
        return isinstance(rate, (int, float)) and 0.0 <= rate <= 1.0

    def exploration_rate_for(self, player: PlayerFeatures) -> float:
        if player.is_new_player:
            return self.new_player_exploration_rate
        return self.exploration_rate

    async def prepare(
        self, player: PlayerFeatures, items: Sequence[ItemFeatures], context: str
    ) -> BanditRound:
        seed = f"{player.player_id}:{context}:{utcnow().date().isoformat()}"
        return BanditRound(rng=random.Random(seed), exploration_rate=self.exploration_rate_for(player))

    def score(self, player: PlayerFeatures, item: ItemFeatures, context: str, state: Any) -> float:
        exploit = item.features.get(CTR_FEATURE, item.popularity_score)
        if isinstance(state, BanditRound) and state.rng.random() < state.exploration_rate:
            return state.rng.random()
        return exploit

    async def calculate_score(self, player: PlayerFeatures, item: ItemFeatures, context: str) -> float:
        # Point scores report the exploitation value only.
        return clamp_score(item.features.get(CTR_FEATURE, item.popularity_score))

"""Per-request strategy choice from overrides, experiments and player profile."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from ...domain.players.entities import PlayerFeatures
from ...domain.players.repository import PlayerFeatureRepository
from ...domain.shared.constants import ContextTags
from ...domain.shared.exceptions import EntityNotFoundError
from ...domain.shared.messages import LogTemplates
from ...domain.strategies.base import StrategyKind
from ...domain.strategies.metrics import (
    PerformanceWindow,
    StrategyPerformanceMetrics,
    StrategyRanking,
    rank_strategies,
)

if TYPE_CHECKING:
    from ...config.settings import SelectionSettings
    from ...domain.strategies.base import RecommendationStrategy
    from ...domain.strategies.registry import StrategyRegistry
    from ..interfaces.experiments import ExperimentService, ExperimentVariant
    from ..interfaces.unit_of_work import UnitOfWorkFactory

logger = logging.getLogger(__name__)


class SelectionReason(Enum):
    """Why a strategy was chosen."""

    OVERRIDE = "override"
    EXPERIMENT = "experiment"
    COLD_START = "cold_start"
    HIGH_ACTIVITY = "high_activity"
    BROAD_PREFERENCE = "broad_preference"
    CONTEXT_DEFAULT = "context_default"
    DEFAULT = "default"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class StrategySelection:
    strategy: RecommendationStrategy
    reason: SelectionReason
    variant: ExperimentVariant | None = None

    @property
    def algorithm(self) -> str:
        return self.strategy.name


class StrategySelector:
    """Chooses a recommendation strategy for one request.

    Order of precedence: explicit override, active experiment assignment,
    profile heuristics, context default, fallback strategy. Selection never
    raises; any error degrades to the registry's fallback strategy.
    """

    def __init__(
        self,
        *,
        registry: StrategyRegistry,
        uow_factory: UnitOfWorkFactory,
        settings: SelectionSettings,
        experiment_service: ExperimentService | None = None,
    ) -> None:
        self._registry = registry
        self._uow_factory = uow_factory
        self._settings = settings
        self._experiments = experiment_service

    async def select_strategy(
        self, player_id: int, context: str, *, override: str | None = None
    ) -> RecommendationStrategy:
        selection = await self.choose(player_id, context, override=override)
        return selection.strategy

    async def choose(
        self,
        player_id: int,
        context: str,
        *,
        override: str | None = None,
        features: PlayerFeatures | None = None,
    ) -> StrategySelection:
        """Pick a strategy and report why.

        Args:
            player_id: Requesting player.
            context: Request context tag.
            override: Explicit algorithm name from the request, used verbatim.
            features: Already-loaded features; looked up when omitted.

        Returns:
            The selection. Never raises except on cancellation.
        """
        try:
            if override:
                logger.info(LogTemplates.STRATEGY_OVERRIDE, override, player_id)
                return StrategySelection(self._registry.create(override), SelectionReason.OVERRIDE)

            selection = await self._from_experiment(player_id, context)
            if selection is not None:
                return selection

            if features is None:
                features = await self._load_features(player_id)
            return self._from_profile(features, context)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            return self._fallback(player_id, exc)

    async def select_strategy_for_experiment(
        self, player_id: int, experiment_name: str
    ) -> RecommendationStrategy:
        """Strategy assigned by ``experiment_name``, else regular selection for "abtest"."""
        try:
            variant = None
            if self._experiments is not None:
                variant = await self._experiments.get_player_variant(player_id, experiment_name)
            if variant is not None and variant.algorithm:
                logger.info(
                    LogTemplates.STRATEGY_EXPERIMENT,
                    player_id,
                    variant.experiment_name,
                    variant.variant_name,
                    variant.algorithm,
                )
                return self._registry.create(variant.algorithm)
            return await self.select_strategy(player_id, ContextTags.AB_TEST)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            return self._fallback(player_id, exc).strategy

    async def get_strategy_ranking(
        self, window: PerformanceWindow, context: str | None = None
    ) -> list[StrategyRanking]:
        """Rank every registered strategy by its weighted performance over ``window``.

        Strategies whose metrics cannot be fetched are left out of the ranking.
        """
        collected: list[StrategyPerformanceMetrics] = []
        for strategy in self._registry.create_all():
            try:
                collected.append(await strategy.get_performance_metrics(window, context))
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                level = logging.DEBUG if isinstance(exc, EntityNotFoundError) else logging.WARNING
                logger.log(level, LogTemplates.STRATEGY_METRICS_UNAVAILABLE, strategy.name, exc)
        return rank_strategies(collected, context)

    # ---- Internals ----

    async def _from_experiment(self, player_id: int, context: str) -> StrategySelection | None:
        if self._experiments is None:
            return None
        experiment = await self._experiments.find_active_experiment(context)
        if experiment is None:
            return None
        variant = await self._experiments.get_player_variant(player_id, experiment)
        if variant is None or not variant.algorithm:
            return None
        logger.info(
            LogTemplates.STRATEGY_EXPERIMENT,
            player_id,
            variant.experiment_name,
            variant.variant_name,
            variant.algorithm,
        )
        return StrategySelection(
            self._registry.create(variant.algorithm), SelectionReason.EXPERIMENT, variant
        )

    async def _load_features(self, player_id: int) -> PlayerFeatures:
        async with self._uow_factory() as uow:
            features = await uow.get_repository(PlayerFeatureRepository).get(player_id)
        return features or PlayerFeatures.new_player(player_id)

    def _from_profile(self, features: PlayerFeatures, context: str) -> StrategySelection:
        s = self._settings
        if features.is_new_player or features.total_games_played < s.cold_start_games_threshold:
            name, reason = StrategyKind.CONTENT_BASED.value, SelectionReason.COLD_START
        elif (
            features.total_games_played > s.high_activity_games_threshold
            and features.session_count > s.high_activity_sessions_threshold
        ):
            name, reason = StrategyKind.COLLABORATIVE_FILTERING.value, SelectionReason.HIGH_ACTIVITY
        elif len(set(features.preferred_categories)) > s.broad_preference_threshold:
            name, reason = StrategyKind.HYBRID.value, SelectionReason.BROAD_PREFERENCE
        elif context.lower() in s.context_defaults:
            name, reason = s.context_defaults[context.lower()], SelectionReason.CONTEXT_DEFAULT
        else:
            name, reason = s.fallback_algorithm, SelectionReason.DEFAULT

        logger.debug(LogTemplates.STRATEGY_HEURISTIC, name, features.player_id, reason.value)
        return StrategySelection(self._registry.create(name), reason)

    def _fallback(self, player_id: int, exc: Exception) -> StrategySelection:
        logger.warning(
            LogTemplates.STRATEGY_SELECTION_FAILED, player_id, self._registry.fallback_name, exc
        )
        return StrategySelection(self._registry.create_fallback(), SelectionReason.FALLBACK)

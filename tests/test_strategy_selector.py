"""
Unit Tests for StrategySelector

Tests for:
- Precedence: override, experiment, profile heuristics, context default
- Fallback on any selection error
- Experiment-specific selection
- Strategy ranking over performance metrics
"""

from unittest.mock import AsyncMock

import pytest

from game_recommender.application.services.strategy_selector import (
    SelectionReason,
    StrategySelector,
)
from game_recommender.domain.players.entities import PlayerFeatures
from game_recommender.domain.shared.exceptions import TransientInfrastructureError
from game_recommender.domain.strategies import (
    PerformanceWindow,
    StrategyPerformanceMetrics,
    build_default_registry,
)
from game_recommender.infrastructure.experiments import ExperimentDefinition, VariantAllocation


async def create_lobby_experiment(experiment_service, algorithm="Bandit"):
    await experiment_service.create_experiment(
        ExperimentDefinition(
            name="AlgoTest",
            context="lobby",
            variants=(VariantAllocation(name="B", weight=1.0, algorithm=algorithm),),
        )
    )


# =============================================================================
# Selection Precedence Tests
# =============================================================================


class TestStrategySelectorChoose:
    """Unit tests for StrategySelector.choose."""

    @pytest.mark.asyncio
    async def test_override_wins(self, seeded, selector, experiment_service):
        """An explicit algorithm should beat experiments and heuristics."""
        await create_lobby_experiment(experiment_service)

        selection = await selector.choose(1, "lobby", override="popularitybased")

        assert selection.algorithm == "PopularityBased"
        assert selection.reason is SelectionReason.OVERRIDE

    @pytest.mark.asyncio
    async def test_unknown_override_resolves_to_fallback(self, seeded, selector):
        selection = await selector.choose(1, "lobby", override="Nope")
        assert selection.algorithm == "CollaborativeFiltering"

    @pytest.mark.asyncio
    async def test_experiment_assignment(self, seeded, selector, experiment_service):
        """An active experiment for the context should decide the strategy."""
        await create_lobby_experiment(experiment_service)

        selection = await selector.choose(42, "lobby")

        assert selection.algorithm == "Bandit"
        assert selection.reason is SelectionReason.EXPERIMENT
        assert selection.variant.experiment_name == "AlgoTest"
        assert selection.variant.variant_name == "B"

    @pytest.mark.asyncio
    async def test_experiment_only_applies_to_its_context(self, seeded, selector, experiment_service):
        await create_lobby_experiment(experiment_service)

        selection = await selector.choose(1, "game_end")

        assert selection.reason is not SelectionReason.EXPERIMENT

    @pytest.mark.asyncio
    async def test_player_without_features_is_cold_start(self, seeded, selector):
        """A player with no feature row should be treated as new."""
        selection = await selector.choose(7, "lobby")

        assert selection.algorithm == "ContentBased"
        assert selection.reason is SelectionReason.COLD_START

    @pytest.mark.asyncio
    async def test_high_activity_player(self, seeded, selector):
        selection = await selector.choose(42, "lobby")

        assert selection.algorithm == "CollaborativeFiltering"
        assert selection.reason is SelectionReason.HIGH_ACTIVITY

    @pytest.mark.asyncio
    async def test_broad_preferences(self, selector):
        """More than three preferred categories should select Hybrid."""
        features = PlayerFeatures(
            player_id=3,
            total_games_played=30,
            session_count=5,
            preferred_categories=("slots", "table", "live", "crash"),
        )

        selection = await selector.choose(3, "promotion", features=features)

        assert selection.algorithm == "Hybrid"
        assert selection.reason is SelectionReason.BROAD_PREFERENCE

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("context", "algorithm", "reason"),
        [
            ("lobby", "Hybrid", SelectionReason.CONTEXT_DEFAULT),
            ("game_end", "ContentBased", SelectionReason.CONTEXT_DEFAULT),
            ("promotion", "PopularityBased", SelectionReason.CONTEXT_DEFAULT),
            ("LOBBY", "Hybrid", SelectionReason.CONTEXT_DEFAULT),
            ("homepage", "CollaborativeFiltering", SelectionReason.DEFAULT),
        ],
    )
    async def test_context_defaults(self, seeded, selector, context, algorithm, reason):
        """Regular players should get the default for their request context."""
        selection = await selector.choose(1, context)

        assert selection.algorithm == algorithm
        assert selection.reason is reason

    @pytest.mark.asyncio
    async def test_cold_start_threshold_is_configurable(self, seeded, registry, uow_factory):
        from game_recommender.config.settings import SelectionSettings

        selector = StrategySelector(
            registry=registry,
            uow_factory=uow_factory,
            settings=SelectionSettings(cold_start_games_threshold=25),
        )

        selection = await selector.choose(1, "lobby")

        assert selection.reason is SelectionReason.COLD_START


# =============================================================================
# Fallback Tests
# =============================================================================


class TestStrategySelectorFallback:
    """Selection must degrade to the fallback strategy instead of failing."""

    @pytest.mark.asyncio
    async def test_feature_lookup_failure(self, registry, selection_settings):
        """A failing feature store should yield collaborative filtering."""

        def broken_uow_factory():
            raise TransientInfrastructureError("database")

        selector = StrategySelector(
            registry=registry, uow_factory=broken_uow_factory, settings=selection_settings
        )

        selection = await selector.choose(1, "lobby")

        assert selection.algorithm == "CollaborativeFiltering"
        assert selection.reason is SelectionReason.FALLBACK

    @pytest.mark.asyncio
    async def test_experiment_service_failure(self, seeded, registry, uow_factory, selection_settings):
        experiments = AsyncMock()
        experiments.find_active_experiment.side_effect = RuntimeError("experiments down")
        selector = StrategySelector(
            registry=registry,
            uow_factory=uow_factory,
            settings=selection_settings,
            experiment_service=experiments,
        )

        selection = await selector.choose(1, "lobby")

        assert selection.reason is SelectionReason.FALLBACK

    @pytest.mark.asyncio
    async def test_select_strategy_returns_strategy(self, seeded, selector):
        strategy = await selector.select_strategy(42, "lobby")
        assert strategy.name == "CollaborativeFiltering"


# =============================================================================
# Experiment Selection Tests
# =============================================================================


class TestSelectStrategyForExperiment:
    """Unit tests for select_strategy_for_experiment."""

    @pytest.mark.asyncio
    async def test_assigned_variant(self, seeded, selector, experiment_service):
        await create_lobby_experiment(experiment_service, algorithm="DeepLearning")

        strategy = await selector.select_strategy_for_experiment(1, "AlgoTest")

        assert strategy.name == "DeepLearning"

    @pytest.mark.asyncio
    async def test_unknown_experiment_uses_regular_selection(self, seeded, selector):
        """Without an assignment the abtest context heuristics apply."""
        strategy = await selector.select_strategy_for_experiment(1, "Missing")
        assert strategy.name == "CollaborativeFiltering"

        strategy = await selector.select_strategy_for_experiment(7, "Missing")
        assert strategy.name == "ContentBased"


# =============================================================================
# Ranking Tests
# =============================================================================


class TestStrategyRanking:
    """Unit tests for get_strategy_ranking."""

    @pytest.mark.asyncio
    async def test_strategies_without_metrics_are_omitted(self, uow_factory, selection_settings):
        """Only strategies with metrics should appear, densely ranked."""
        window = PerformanceWindow.last(7)
        ctr = {"Hybrid": 0.3, "Bandit": 0.5, "ContentBased": 0.3}

        async def metrics_for(name, w, context=None):
            if name not in ctr:
                return None
            return StrategyPerformanceMetrics(
                strategy_name=name, window=w, click_through_rate=ctr[name]
            )

        source = AsyncMock()
        source.metrics_for.side_effect = metrics_for
        selector = StrategySelector(
            registry=build_default_registry(metrics_source=source),
            uow_factory=uow_factory,
            settings=selection_settings,
        )

        ranking = await selector.get_strategy_ranking(window, "lobby")

        assert [(r.strategy_name, r.rank) for r in ranking] == [
            ("Bandit", 1),
            ("ContentBased", 2),
            ("Hybrid", 2),
        ]
        assert source.metrics_for.await_count == 6

    @pytest.mark.asyncio
    async def test_failing_metrics_source_is_omitted(self, uow_factory, selection_settings):
        source = AsyncMock()
        source.metrics_for.side_effect = TransientInfrastructureError("database")
        selector = StrategySelector(
            registry=build_default_registry(metrics_source=source),
            uow_factory=uow_factory,
            settings=selection_settings,
        )

        assert await selector.get_strategy_ranking(PerformanceWindow.last(7)) == []

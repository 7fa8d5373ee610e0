"""
Tests for the Recommendation Pipeline

Tests for:
- End-to-end runs for new, regular and experiment players
- Served recommendation tracking after a pipeline run
- ValidatePlayer failures
- ApplyBusinessRules and Diversify transformations
- CacheResult storage and failure recovery
- Identical responses with caching enabled and disabled
"""

from collections import Counter
from unittest.mock import AsyncMock

import pytest
from conftest import make_recommendation

from game_recommender.application.pipeline.engine import PipelineContext
from game_recommender.application.pipeline.recommendation_steps import (
    ApplyBusinessRulesStep,
    CacheResultStep,
    DiversifyStep,
    GenerateRecommendationsStep,
    ValidatePlayerStep,
)
from game_recommender.domain.recommendations.entities import RecommendationRequest
from game_recommender.domain.shared.constants import MetadataKeys, PipelineContextKeys
from game_recommender.domain.shared.result import ErrorCode


async def run(pipeline, **request_values):
    context = PipelineContext()
    result = await pipeline.execute(RecommendationRequest(**request_values), context)
    return result, context


def assert_well_formed(recs, count):
    assert 0 < len(recs) <= count
    assert [r.position for r in recs] == list(range(1, len(recs) + 1))
    assert len({r.item_id for r in recs}) == len(recs)
    assert max(Counter(r.provider for r in recs).values()) <= 3
    assert max(Counter(r.category for r in recs).values()) <= 3


# =============================================================================
# End-to-End Tests
# =============================================================================


class TestRecommendationPipelineEndToEnd:
    """Full pipeline runs against the seeded database."""

    @pytest.mark.asyncio
    async def test_new_player_gets_content_based_cold_start(self, seeded, recommendation_pipeline):
        """A player without features should get synthesized defaults and content-based picks."""
        result, context = await run(recommendation_pipeline, player_id=7)

        assert result.is_success
        assert_well_formed(result.value, 10)
        assert {r.algorithm for r in result.value} == {"ContentBased"}
        assert {r.metadata[MetadataKeys.SELECTION_REASON] for r in result.value} == {"cold_start"}
        assert context.get(PipelineContextKeys.FEATURES_SYNTHESIZED, bool) is True

    @pytest.mark.asyncio
    async def test_regular_player_in_lobby(self, seeded, recommendation_pipeline):
        result, context = await run(recommendation_pipeline, player_id=1, count=6)

        assert_well_formed(result.value, 6)
        assert {r.algorithm for r in result.value} == {"Hybrid"}
        assert all(r.score > 0.1 for r in result.value)
        assert all(r.context == "lobby" for r in result.value)
        assert not context.has(PipelineContextKeys.FEATURES_SYNTHESIZED)

    @pytest.mark.asyncio
    async def test_every_step_is_timed(self, seeded, recommendation_pipeline):
        _, context = await run(recommendation_pipeline, player_id=42)

        assert list(context.step_timings) == [
            "ValidatePlayer",
            "LookupCache",
            "ExtractFeatures",
            "SelectAlgorithm",
            "GenerateRecommendations",
            "ApplyBusinessRules",
            "Conditional(Diversify)",
            "CacheResult",
        ]
        assert context.get(PipelineContextKeys.GENERATION_MS, float) is not None

    @pytest.mark.asyncio
    async def test_excluded_items_never_returned(self, seeded, recommendation_pipeline):
        excluded = frozenset(range(11, 21))

        result, _ = await run(recommendation_pipeline, player_id=42, excluded_item_ids=excluded)

        assert result.value
        assert not {r.item_id for r in result.value} & excluded

    @pytest.mark.asyncio
    async def test_algorithm_override(self, seeded, recommendation_pipeline):
        result, context = await run(
            recommendation_pipeline, player_id=1, context="promotion", algorithm="bandit"
        )

        assert {r.algorithm for r in result.value} == {"Bandit"}
        assert context.get(PipelineContextKeys.SELECTED_STRATEGY, object).name == "Bandit"

    @pytest.mark.asyncio
    async def test_item_overrides_hide_items(self, seeded, uow_factory, recommendation_pipeline):
        """Deactivated items disappear everywhere; lobby-hidden items only from the lobby."""
        from game_recommender.domain.catalog.entities import ItemOverrideSettings
        from game_recommender.domain.catalog.repository import ItemOverrideRepository

        async with uow_factory() as uow:
            overrides = uow.get_repository(ItemOverrideRepository)
            await overrides.add(ItemOverrideSettings(item_id=20, hide_in_lobby=True))
            await overrides.add(ItemOverrideSettings(item_id=19, is_active=False))
            await uow.save_changes()

        lobby, _ = await run(recommendation_pipeline, player_id=42, algorithm="PopularityBased")
        promo, _ = await run(
            recommendation_pipeline,
            player_id=42,
            context="promotion",
            algorithm="PopularityBased",
        )

        assert not {19, 20} & {r.item_id for r in lobby.value}
        assert 20 in {r.item_id for r in promo.value}
        assert 19 not in {r.item_id for r in promo.value}

    @pytest.mark.asyncio
    async def test_experiment_variant_is_stamped_and_sticky(
        self, seeded, recommendation_pipeline, experiment_service
    ):
        """Repeated uncached requests should stay in the same experiment arm."""
        from game_recommender.application.queries.get_recommendations import (
            GetRecommendationsHandler,
            GetRecommendationsQuery,
        )
        from game_recommender.infrastructure.experiments import (
            ExperimentDefinition,
            VariantAllocation,
        )

        await experiment_service.create_experiment(
            ExperimentDefinition(
                name="AlgoTest",
                context="lobby",
                variants=(VariantAllocation(name="B", weight=1.0, algorithm="Hybrid"),),
            )
        )
        handler = GetRecommendationsHandler(pipeline=recommendation_pipeline)
        query = GetRecommendationsQuery(player_id=42, use_cache=False)

        first = await handler.handle(query)
        second = await handler.handle(query)

        for result in (first, second):
            assert {r.algorithm for r in result.value} == {"Hybrid"}
            assert {r.experiment_variant for r in result.value} == {"B"}
            assert {r.metadata[MetadataKeys.EXPERIMENT] for r in result.value} == {"AlgoTest"}

    @pytest.mark.asyncio
    async def test_served_recommendations_track_one_click(
        self, seeded, uow_factory, recommendation_pipeline
    ):
        """Generate, record as served, then click the same item twice in one session."""
        from game_recommender.application.commands.record_served_recommendations import (
            RecordServedRecommendationsCommand,
            RecordServedRecommendationsHandler,
        )
        from game_recommender.application.commands.track_interaction import (
            TrackInteractionCommand,
            TrackInteractionHandler,
        )
        from game_recommender.domain.recommendations.repository import InteractionRepository

        result, _ = await run(recommendation_pipeline, player_id=1, session_id="sess-9")
        served = await RecordServedRecommendationsHandler(uow_factory=uow_factory).handle(
            RecordServedRecommendationsCommand(player_id=1, recommendations=result.value)
        )
        assert served.value == len(result.value)

        tracker = TrackInteractionHandler(uow_factory=uow_factory)
        click = TrackInteractionCommand(
            recommendation_id=result.value[0].id,
            player_id=1,
            interaction_type="click",
            session_id="sess-9",
        )
        first = await tracker.handle(click)
        second = await tracker.handle(click)

        assert first.value.recorded is True
        assert second.value.recorded is False
        assert second.value.is_clicked is True
        async with uow_factory() as uow:
            stored = await uow.get_repository(InteractionRepository).for_recommendations(
                [result.value[0].id]
            )
        assert len(stored[result.value[0].id]) == 1


# =============================================================================
# ValidatePlayer Tests
# =============================================================================


class TestValidatePlayer:
    """The first step must stop the run for unusable players."""

    @pytest.mark.asyncio
    async def test_unknown_player(self, seeded, recommendation_pipeline):
        result, _ = await run(recommendation_pipeline, player_id=404)

        assert result.code is ErrorCode.NOT_FOUND
        assert result.message == "Player not found"

    @pytest.mark.asyncio
    async def test_inactive_player(self, seeded, recommendation_pipeline):
        result, context = await run(recommendation_pipeline, player_id=2)

        assert result.code is ErrorCode.VALIDATION
        assert result.message == "Player account is inactive"
        assert list(context.step_timings) == ["ValidatePlayer"]

    @pytest.mark.asyncio
    async def test_non_positive_player_id(self, uow_factory):
        step = ValidatePlayerStep(uow_factory=uow_factory)
        request = RecommendationRequest.model_construct(player_id=0)

        result = await step.execute(request, PipelineContext())

        assert result.code is ErrorCode.VALIDATION

    @pytest.mark.asyncio
    async def test_valid_player_is_stored_in_context(self, seeded, uow_factory):
        step = ValidatePlayerStep(uow_factory=uow_factory)
        context = PipelineContext()

        result = await step.execute(RecommendationRequest(player_id=1), context)

        assert result.value.player_id == 1
        assert context.has(PipelineContextKeys.PLAYER)
        assert context.has(PipelineContextKeys.REQUEST)


class TestGenerateRecommendations:
    """Unit tests for GenerateRecommendationsStep."""

    @pytest.mark.asyncio
    async def test_missing_features_fail_the_run(self):
        from game_recommender.domain.shared.exceptions import MissingContextError

        step = GenerateRecommendationsStep()

        with pytest.raises(MissingContextError) as excinfo:
            await step.execute(RecommendationRequest(player_id=1), PipelineContext())

        failure = await step.handle_failure(None, PipelineContext(), excinfo.value)
        assert failure.code is ErrorCode.MISSING_CONTEXT


# =============================================================================
# Business Rules and Diversity Tests
# =============================================================================


def context_for(**request_values):
    context = PipelineContext()
    context.set(PipelineContextKeys.REQUEST, RecommendationRequest(player_id=1, **request_values))
    return context


class TestApplyBusinessRules:
    """Unit tests for ApplyBusinessRulesStep."""

    @pytest.mark.asyncio
    async def test_rules_apply_in_order(self):
        """Duplicates, exclusions and low scores are removed, then providers capped."""
        candidates = [
            make_recommendation(item_id=1, score=0.9, provider="NetEnt"),
            make_recommendation(item_id=1, score=0.5, provider="NetEnt"),
            make_recommendation(item_id=2, score=0.8, provider="NetEnt"),
            make_recommendation(item_id=3, score=0.7, provider="NetEnt"),
            make_recommendation(item_id=4, score=0.6, provider="Evolution"),
            make_recommendation(item_id=5, score=0.05, provider="Evolution"),
            make_recommendation(item_id=6, score=0.4, provider="Evolution"),
        ]
        step = ApplyBusinessRulesStep(min_score=0.1, max_per_provider=2)

        result = await step.execute(candidates, context_for(excluded_item_ids=frozenset({6})))

        assert [r.item_id for r in result.value] == [1, 2, 4]
        assert [r.position for r in result.value] == [1, 2, 3]
        assert result.value[0].score == 0.9

    @pytest.mark.asyncio
    async def test_score_equal_to_minimum_is_dropped(self):
        step = ApplyBusinessRulesStep(min_score=0.5)

        result = await step.execute(
            [make_recommendation(item_id=1, score=0.5), make_recommendation(item_id=2, score=0.51)],
            context_for(),
        )

        assert [r.item_id for r in result.value] == [2]

    @pytest.mark.asyncio
    async def test_truncates_to_requested_count(self):
        candidates = [
            make_recommendation(item_id=i, score=0.9 - i / 100, provider=f"P{i}")
            for i in range(1, 9)
        ]

        result = await ApplyBusinessRulesStep().execute(candidates, context_for(count=5))

        assert [r.item_id for r in result.value] == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_requires_request_in_context(self):
        from game_recommender.domain.shared.exceptions import MissingContextError

        with pytest.raises(MissingContextError):
            await ApplyBusinessRulesStep().execute([], PipelineContext())


class TestDiversify:
    """Unit tests for DiversifyStep."""

    @pytest.mark.asyncio
    async def test_caps_and_interleaves_categories(self):
        candidates = [
            make_recommendation(item_id=1, category="slots", score=0.9),
            make_recommendation(item_id=2, category="slots", score=0.85),
            make_recommendation(item_id=3, category="slots", score=0.8),
            make_recommendation(item_id=4, category="table", score=0.7),
            make_recommendation(item_id=5, category="live", score=0.6),
            make_recommendation(item_id=6, category="table", score=0.5),
        ]

        result = await DiversifyStep(max_per_category=2).execute(candidates, PipelineContext())

        assert [r.item_id for r in result.value] == [1, 4, 5, 2, 6]
        assert [r.position for r in result.value] == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_small_result_skips_diversity(
        self, seeded, uow_factory, cache, selector, cache_settings
    ):
        """With too few candidates the category cap does not apply."""
        from game_recommender.application.pipeline.factory import build_recommendation_pipeline
        from game_recommender.config.settings import PipelineSettings

        pipeline = build_recommendation_pipeline(
            uow_factory=uow_factory,
            cache=cache,
            selector=selector,
            pipeline_settings=PipelineSettings(max_per_category=1, diversify_min_candidates=5),
            cache_settings=cache_settings,
        )

        small, _ = await run(pipeline, player_id=42, count=4)
        large, _ = await run(pipeline, player_id=42, count=10)

        assert len(small.value) == 4
        assert max(Counter(r.category for r in large.value).values()) == 1


# =============================================================================
# CacheResult Tests
# =============================================================================


class TestCacheResult:
    """Unit tests for CacheResultStep."""

    @pytest.mark.asyncio
    async def test_stores_copies_under_request_key(self, cache):
        context = context_for(count=2)
        recs = [make_recommendation(item_id=1), make_recommendation(item_id=2, position=2)]

        result = await CacheResultStep(cache=cache, ttl_seconds=60).execute(recs, context)
        recs[0].metadata["changed"] = True

        key = context.get(PipelineContextKeys.CACHE_KEY, str)
        cached = await cache.get(key)
        assert result.value is recs
        assert [r.item_id for r in cached] == [1, 2]
        assert "changed" not in cached[0].metadata

    @pytest.mark.asyncio
    async def test_cache_failure_returns_uncached_list(
        self, seeded, uow_factory, selector, pipeline_settings, cache_settings, cache
    ):
        """A broken cache write must not fail an otherwise good request."""
        from game_recommender.application.pipeline.factory import build_recommendation_pipeline

        class BrokenWrites:
            def __init__(self, inner):
                self._inner = inner
                self.set = AsyncMock(side_effect=ConnectionError("cache down"))

            def __getattr__(self, name):
                return getattr(self._inner, name)

        pipeline = build_recommendation_pipeline(
            uow_factory=uow_factory,
            cache=BrokenWrites(cache),
            selector=selector,
            pipeline_settings=pipeline_settings,
            cache_settings=cache_settings,
        )

        result, _ = await run(pipeline, player_id=42)

        assert result.is_success
        assert_well_formed(result.value, 10)


# =============================================================================
# Cache Transparency Tests
# =============================================================================


class TestCacheTransparency:
    """Responses with caching on must match responses with every TTL at zero."""

    @pytest.fixture
    def handlers(self, uow_factory, clock, selector, pipeline_settings):
        from game_recommender.application.pipeline.factory import build_recommendation_pipeline
        from game_recommender.application.queries.get_recommendations import (
            GetRecommendationsHandler,
        )
        from game_recommender.config.settings import CacheSettings
        from game_recommender.infrastructure.cache.memory_cache import InMemoryTTLCache

        disabled = CacheSettings(
            recommendation_ttl_seconds=0,
            item_catalog_ttl_seconds=0,
            override_ttl_seconds=0,
            ranking_ttl_seconds=0,
        )
        built = []
        for settings in (CacheSettings(), disabled):
            pipeline = build_recommendation_pipeline(
                uow_factory=uow_factory,
                cache=InMemoryTTLCache(clock=clock),
                selector=selector,
                pipeline_settings=pipeline_settings,
                cache_settings=settings,
            )
            built.append(GetRecommendationsHandler(pipeline=pipeline))
        return built

    @staticmethod
    async def responses(handlers, query):
        results = [await handler.handle(query) for handler in handlers]
        shapes = []
        for result in results:
            if result.is_success:
                shapes.append([(r.item_id, r.position) for r in result.value])
            else:
                shapes.append((result.code, result.message))
        return shapes

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("player_id", "context"),
        [
            (1, "lobby"),
            (1, "promotion"),
            (42, "lobby"),
            (7, "game_end"),
            (2, "lobby"),
            (404, "lobby"),
        ],
    )
    async def test_repeated_queries_match(self, seeded, handlers, player_id, context):
        from game_recommender.application.queries.get_recommendations import (
            GetRecommendationsQuery,
        )

        query = GetRecommendationsQuery(player_id=player_id, context=context, count=5)

        for _ in range(2):
            cached, uncached = await self.responses(handlers, query)
            assert cached == uncached

    @pytest.mark.asyncio
    async def test_deactivated_player_matches(self, seeded, handlers, uow_factory):
        from game_recommender.application.queries.get_recommendations import (
            GetRecommendationsQuery,
        )
        from game_recommender.domain.players.repository import PlayerRepository

        query = GetRecommendationsQuery(player_id=1, count=5)
        cached, uncached = await self.responses(handlers, query)
        assert cached == uncached
        assert cached

        async with uow_factory() as uow:
            players = uow.get_repository(PlayerRepository)
            player = await players.get(1)
            await players.update(player.model_copy(update={"is_active": False}))
            await uow.save_changes()

        cached, uncached = await self.responses(handlers, query)

        assert cached == uncached == (ErrorCode.VALIDATION, "Player account is inactive")

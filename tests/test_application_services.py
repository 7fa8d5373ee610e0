"""
Unit Tests for Application Services

Tests for:
- StrategyPerformanceService metric aggregation
- InteractionSignalService co-play neighbourhood scores
- Filtered recommendation reads
- CacheInvalidationSubscriber eviction on domain events
"""

import pytest
import pytest_asyncio
from conftest import make_recommendation

from game_recommender.application.services.cache_invalidation import (
    CacheInvalidationSubscriber,
)
from game_recommender.application.services.interaction_signals import InteractionSignalService
from game_recommender.application.services.strategy_performance import (
    StrategyPerformanceService,
)
from game_recommender.domain.recommendations.entities import (
    InteractionType,
    RecommendationInteraction,
)
from game_recommender.domain.recommendations.repository import (
    InteractionRepository,
    RecommendationRepository,
)
from game_recommender.domain.shared.events import (
    ItemOverrideSettingsUpdated,
    RecommendationClicked,
)
from game_recommender.domain.strategies import PerformanceWindow


async def store(uow_factory, recs, interactions=()):
    async with uow_factory() as uow:
        for rec in recs:
            await uow.get_repository(RecommendationRepository).add(rec)
        for interaction in interactions:
            await uow.get_repository(InteractionRepository).add(interaction)
        await uow.save_changes()


# =============================================================================
# StrategyPerformanceService Tests
# =============================================================================


class TestStrategyPerformanceService:
    """Unit tests for StrategyPerformanceService."""

    @pytest.fixture
    def service(self, uow_factory):
        return StrategyPerformanceService(uow_factory=uow_factory)

    @pytest_asyncio.fixture
    async def served_list(self, seeded, uow_factory):
        """One Hybrid list of four: first item clicked and played, second clicked."""
        recs = [
            make_recommendation(player_id=1, item_id=i, position=i, session_id="s1")
            for i in range(1, 5)
        ]
        recs[0].is_clicked = recs[0].is_played = True
        recs[1].is_clicked = True
        play = RecommendationInteraction(
            recommendation_id=recs[0].id,
            player_id=1,
            item_id=1,
            interaction_type=InteractionType.PLAY,
            value=12.5,
            session_id="s1",
        )
        await store(uow_factory, recs, [play])
        return recs

    @pytest.mark.asyncio
    async def test_rates_and_revenue(self, served_list, service):
        metrics = await service.metrics_for("Hybrid", PerformanceWindow.last(7))

        assert metrics.total_recommendations == 4
        assert metrics.click_through_rate == 0.5
        assert metrics.conversion_rate == 0.25
        assert metrics.total_revenue == 12.5
        assert metrics.revenue_per_recommendation == 3.125

    @pytest.mark.asyncio
    async def test_ranking_quality(self, served_list, service):
        """Both engaged items sit at the top, so NDCG is perfect."""
        metrics = await service.metrics_for("Hybrid", PerformanceWindow.last(7))

        assert metrics.precision == 0.25
        assert metrics.recall == 0.5
        assert metrics.f1_score == pytest.approx(1 / 3)
        assert metrics.ndcg == pytest.approx(1.0)
        assert metrics.coverage == pytest.approx(0.2)
        assert metrics.diversity == 1.0

    @pytest.mark.asyncio
    async def test_no_data_returns_none(self, served_list, service):
        window = PerformanceWindow.last(7)

        assert await service.metrics_for("Bandit", window) is None
        assert await service.metrics_for("Hybrid", window, "game_end") is None


# =============================================================================
# InteractionSignalService Tests
# =============================================================================


class TestInteractionSignalService:
    """Unit tests for InteractionSignalService."""

    @pytest.mark.asyncio
    async def test_neighbour_items_weighted_by_overlap(self, seeded, uow_factory):
        """Player 7 shares two items with player 1, player 42 shares one."""
        engaged = {1: (1, 2), 7: (1, 2, 5), 42: (1, 3, 4)}
        recs = [
            make_recommendation(player_id=player, item_id=item, is_clicked=True)
            for player, items in engaged.items()
            for item in items
        ]
        recs.append(make_recommendation(player_id=42, item_id=9))
        await store(uow_factory, recs)

        scores = await InteractionSignalService(uow_factory=uow_factory).co_play_scores(1)

        assert scores == {5: 1.0, 3: 0.5, 4: 0.5}

    @pytest.mark.asyncio
    async def test_player_without_history(self, seeded, uow_factory):
        await store(uow_factory, [make_recommendation(player_id=42, item_id=3, is_played=True)])

        assert await InteractionSignalService(uow_factory=uow_factory).co_play_scores(1) == {}


# =============================================================================
# Recommendation Read Narrowing Tests
# =============================================================================


class TestRecommendationReadsAreNarrowed:
    """Service reads should only load the rows their filters can match."""

    @pytest.fixture
    def fetched(self, monkeypatch):
        """Record (sql, row count) for every SELECT on the recommendations table."""
        from game_recommender.domain.shared.constants import DatabaseTables
        from game_recommender.infrastructure.persistence.repositories.base import (
            SQLiteRepository,
        )

        calls = []
        original = SQLiteRepository._fetch

        async def recording(self, sql, parameters=()):
            rows = await original(self, sql, parameters)
            if f"FROM {DatabaseTables.RECOMMENDATIONS}" in sql:
                calls.append((sql, len(rows)))
            return rows

        monkeypatch.setattr(SQLiteRepository, "_fetch", recording)
        return calls

    @pytest_asyncio.fixture
    async def busy_table(self, seeded, uow_factory):
        """500 unengaged PopularityBased rows for player 42 next to a small engaged history."""
        bulk = [
            make_recommendation(
                player_id=42, item_id=10 + i % 10, algorithm="PopularityBased", position=i % 10 + 1
            )
            for i in range(500)
        ]
        engaged = [
            make_recommendation(player_id=1, item_id=1, is_clicked=True),
            make_recommendation(player_id=1, item_id=2, is_played=True),
            make_recommendation(player_id=7, item_id=1, is_clicked=True),
            make_recommendation(player_id=7, item_id=5, is_clicked=True),
            make_recommendation(player_id=1, item_id=3, algorithm="Bandit", session_id="b1"),
        ]
        await store(uow_factory, bulk + engaged)

    @pytest.mark.asyncio
    async def test_metrics_read_only_the_strategy_rows(self, busy_table, uow_factory, fetched):
        service = StrategyPerformanceService(uow_factory=uow_factory)

        metrics = await service.metrics_for("bandit", PerformanceWindow.last(7))

        assert metrics.total_recommendations == 1
        assert fetched
        assert all(" WHERE " in sql for sql, _ in fetched)
        assert max(count for _, count in fetched) == 1

    @pytest.mark.asyncio
    async def test_co_play_reads_only_the_neighbourhood(self, busy_table, uow_factory, fetched):
        service = InteractionSignalService(uow_factory=uow_factory)

        scores = await service.co_play_scores(1)

        assert scores == {5: 1.0}
        assert len(fetched) == 3
        assert all(" WHERE " in sql for sql, _ in fetched)
        assert max(count for _, count in fetched) < 10

    @pytest.mark.asyncio
    async def test_history_reads_only_the_player_rows(self, busy_table, uow_factory, fetched):
        from game_recommender.application.queries.get_recommendation_history import (
            GetRecommendationHistoryHandler,
            GetRecommendationHistoryQuery,
        )

        handler = GetRecommendationHistoryHandler(uow_factory=uow_factory)

        page = (await handler.handle(GetRecommendationHistoryQuery(player_id=1))).value

        assert page.total_count == 3
        assert [count for _, count in fetched] == [3, 3]

    @pytest.mark.asyncio
    async def test_window_is_applied_by_the_query(self, seeded, uow_factory, fetched):
        """Rows outside the window should not be loaded, whatever their stored offset."""
        from datetime import UTC, datetime, timedelta

        now = datetime.now(UTC)
        await store(
            uow_factory,
            [
                make_recommendation(item_id=1, created_at=now - timedelta(days=30)),
                make_recommendation(item_id=2, created_at=now - timedelta(days=1)),
            ],
        )
        service = StrategyPerformanceService(uow_factory=uow_factory)

        metrics = await service.metrics_for("Hybrid", PerformanceWindow.last(7))

        assert metrics.total_recommendations == 1
        assert fetched[0][1] == 1


# =============================================================================
# CacheInvalidationSubscriber Tests
# =============================================================================


class TestCacheInvalidationSubscriber:
    """Unit tests for CacheInvalidationSubscriber."""

    @pytest_asyncio.fixture
    async def warm_cache(self, cache):
        for key in (
            "recommendations:1:lobby:abc",
            "recommendations:2:promotion:def",
            "item_overrides:all",
            "item_overrides:3",
            "item_features:all",
            "strategy_ranking:7:all",
        ):
            await cache.set(key, [key], 60)
        return cache

    @pytest.mark.asyncio
    async def test_override_update_drops_lists_and_overrides(self, warm_cache, event_bus):
        subscriber = CacheInvalidationSubscriber(cache=warm_cache, event_bus=event_bus)
        subscriber.start()

        await event_bus.publish(ItemOverrideSettingsUpdated(item_id=3, changed_fields=("notes",)))

        assert await warm_cache.get("recommendations:1:lobby:abc") is None
        assert await warm_cache.get("item_overrides:3") is None
        assert await warm_cache.get("item_features:all") is not None
        assert await warm_cache.get("strategy_ranking:7:all") is not None

    @pytest.mark.asyncio
    async def test_click_drops_rankings_only(self, warm_cache, event_bus):
        subscriber = CacheInvalidationSubscriber(cache=warm_cache, event_bus=event_bus)
        subscriber.start()

        await event_bus.publish(
            RecommendationClicked(
                recommendation_id="r1", player_id=1, item_id=3, algorithm="Hybrid"
            )
        )

        assert await warm_cache.get("strategy_ranking:7:all") is None
        assert await warm_cache.get("recommendations:1:lobby:abc") is not None

    @pytest.mark.asyncio
    async def test_stop_unsubscribes(self, warm_cache, event_bus):
        subscriber = CacheInvalidationSubscriber(cache=warm_cache, event_bus=event_bus)
        subscriber.start()
        subscriber.start()
        subscriber.stop()

        await event_bus.publish(ItemOverrideSettingsUpdated(item_id=3))

        assert await warm_cache.get("item_overrides:3") is not None

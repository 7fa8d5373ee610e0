"""
Unit Tests for the Recommendation, Catalog and Player Domain

Tests for:
- RecommendationRequest validation, fingerprint and cache key
- Recommendation click/play state and events
- ItemOverrideSettings changes and visibility
- PlayerFeatures helpers
- RecommendationDomainService business rules
- EventBus delivery
"""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError as PydanticValidationError

from conftest import make_recommendation
from game_recommender.domain.catalog.entities import ItemOverrideSettings
from game_recommender.domain.players.entities import PlayerFeatures
from game_recommender.domain.recommendations.entities import (
    InteractionType,
    Page,
    RecommendationInteraction,
    RecommendationRequest,
)
from game_recommender.domain.recommendations.services import RecommendationDomainService
from game_recommender.domain.shared.events import (
    EventBus,
    ItemOverrideSettingsUpdated,
    RecommendationClicked,
    RecommendationPlayed,
)
from game_recommender.domain.shared.exceptions import BusinessRuleViolationError

# =============================================================================
# RecommendationRequest Tests
# =============================================================================


class TestRecommendationRequest:
    """Unit tests for RecommendationRequest."""

    def test_defaults(self):
        request = RecommendationRequest(player_id=1)

        assert request.count == 10
        assert request.context == "lobby"
        assert request.excluded_item_ids == frozenset()

    @pytest.mark.parametrize("count", [0, 101])
    def test_count_bounds(self, count):
        """Count must be between 1 and 100."""
        with pytest.raises(PydanticValidationError):
            RecommendationRequest(player_id=1, count=count)

    def test_player_id_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            RecommendationRequest(player_id=0)

    def test_fingerprint_ignores_exclusion_order(self):
        """Equivalent requests should share a cache key."""
        a = RecommendationRequest(player_id=1, excluded_item_ids={3, 1}, algorithm="Hybrid")
        b = RecommendationRequest(player_id=1, excluded_item_ids=[1, 3], algorithm="hybrid")

        assert a.cache_key == b.cache_key

    def test_cache_key_varies_with_shape(self):
        base = RecommendationRequest(player_id=1)

        assert base.cache_key.startswith("recommendations:1:lobby:")
        assert base.cache_key != RecommendationRequest(player_id=1, count=5).cache_key
        assert base.cache_key != RecommendationRequest(player_id=1, context="game_end").cache_key


# =============================================================================
# Recommendation Tests
# =============================================================================


class TestRecommendation:
    """Unit tests for the Recommendation aggregate."""

    @pytest.mark.parametrize(
        "overrides", [{"score": 1.5}, {"score": -0.1}, {"position": 0}, {"item_id": 0}]
    )
    def test_rejects_invalid_values(self, overrides):
        with pytest.raises(PydanticValidationError):
            make_recommendation(**overrides)

    def test_mark_clicked_once(self):
        """Clicking twice should change state and record an event only once."""
        rec = make_recommendation()
        at = datetime(2026, 5, 1, tzinfo=UTC)

        assert rec.mark_clicked(at, session_id="s1") is True
        assert rec.mark_clicked(at) is False

        assert rec.is_clicked
        assert rec.clicked_at == at
        events = rec.pull_events()
        assert len(events) == 1
        assert isinstance(events[0], RecommendationClicked)
        assert events[0].session_id == "s1"

    def test_mark_played(self):
        rec = make_recommendation()

        assert rec.mark_played() is True
        assert rec.is_played
        assert rec.played_at is not None
        assert [type(e) for e in rec.pull_events()] == [RecommendationPlayed]

    def test_with_position_copies(self):
        rec = make_recommendation(position=4)
        moved = rec.with_position(1)

        assert moved.position == 1
        assert rec.position == 4
        assert moved.id == rec.id

    def test_interactions_not_serialized(self):
        assert "interactions" not in make_recommendation().model_dump()

    def test_interaction_dedup_key(self):
        interaction = RecommendationInteraction(
            recommendation_id="r1",
            player_id=1,
            item_id=2,
            interaction_type=InteractionType.CLICK,
            session_id="s1",
        )
        assert interaction.dedup_key == ("r1", "s1", "click")


class TestPage:
    """Unit tests for Page."""

    @pytest.mark.parametrize(
        ("total", "page", "pages", "has_next"),
        [(0, 1, 0, False), (20, 1, 1, False), (21, 1, 2, True), (45, 3, 3, False)],
    )
    def test_total_pages(self, total, page, pages, has_next):
        result = Page(items=[], total_count=total, page=page, page_size=20)

        assert result.total_pages == pages
        assert result.has_next is has_next


# =============================================================================
# ItemOverrideSettings Tests
# =============================================================================


class TestItemOverrideSettings:
    """Unit tests for ItemOverrideSettings."""

    def test_apply_changes_reports_changed_fields(self):
        """Only fields whose value differs should be reported and evented."""
        settings = ItemOverrideSettings(item_id=5, notes="old")

        changed = settings.apply_changes(
            {"notes": "old", "is_featured": True, "unknown": 1}, updated_by="ops"
        )

        assert changed == ("is_featured",)
        assert settings.updated_by == "ops"
        events = settings.pull_events()
        assert isinstance(events[0], ItemOverrideSettingsUpdated)
        assert events[0].changed_fields == ("is_featured",)

    def test_no_change_records_nothing(self):
        settings = ItemOverrideSettings(item_id=5)

        assert settings.apply_changes({"is_featured": False}) == ()
        assert settings.pending_events == ()

    def test_invalid_change_leaves_state_untouched(self):
        """A change producing min_bet > max_bet should be rejected atomically."""
        settings = ItemOverrideSettings(item_id=5, max_bet=10.0)

        with pytest.raises(BusinessRuleViolationError, match="bet"):
            settings.apply_changes({"min_bet": 20.0, "notes": "x"})

        assert settings.min_bet is None
        assert settings.notes is None
        assert settings.pending_events == ()

    @pytest.mark.parametrize(
        ("values", "context", "hidden"),
        [
            ({"is_active": False}, "game_end", True),
            ({"hide_in_lobby": True}, "lobby", True),
            ({"hide_in_lobby": True}, "game_end", False),
            ({"is_active": True}, "lobby", False),
            ({}, "lobby", False),
        ],
    )
    def test_hides(self, values, context, hidden):
        assert ItemOverrideSettings(item_id=1, **values).hides(context, "lobby") is hidden


# =============================================================================
# PlayerFeatures Tests
# =============================================================================


class TestPlayerFeatures:
    """Unit tests for PlayerFeatures."""

    def test_new_player_defaults(self):
        features = PlayerFeatures.new_player(7)

        assert features.is_new_player is True
        assert features.total_games_played == 0
        assert features.play_style == "new"

    def test_affinity_decays_with_rank(self):
        features = PlayerFeatures(player_id=1, preferred_categories=("slots", "live"))

        assert features.category_affinity("slots") == 1.0
        assert features.category_affinity("live") == 0.5
        assert features.category_affinity("table") == 0.0

    def test_as_vector_includes_custom_features(self):
        features = PlayerFeatures(player_id=1, custom_features={"churn_risk": 0.4})
        assert features.as_vector()["churn_risk"] == 0.4


# =============================================================================
# RecommendationDomainService Tests
# =============================================================================


def recs(*specs):
    """Build recommendations from (item_id, score, category, provider) tuples."""
    return [
        make_recommendation(item_id=item_id, position=i, score=score, category=cat, provider=prov)
        for i, (item_id, score, cat, prov) in enumerate(specs, start=1)
    ]


class TestRecommendationDomainService:
    """Unit tests for RecommendationDomainService."""

    svc = RecommendationDomainService

    def test_deduplicate_keeps_first(self):
        candidates = recs((1, 0.9, "a", "p"), (2, 0.8, "a", "p"), (1, 0.7, "a", "p"))

        result = self.svc.deduplicate(candidates)

        assert [(r.item_id, r.score) for r in result] == [(1, 0.9), (2, 0.8)]
        assert self.svc.deduplicate(result) == result

    def test_remove_excluded(self):
        candidates = recs((1, 0.9, "a", "p"), (2, 0.8, "a", "p"))
        assert [r.item_id for r in self.svc.remove_excluded(candidates, {1})] == [2]

    def test_apply_overrides(self):
        """Deactivated items should go everywhere; lobby-hidden only in the lobby."""
        candidates = recs((1, 0.9, "a", "p"), (2, 0.8, "a", "p"), (3, 0.7, "a", "p"))
        overrides = {
            1: ItemOverrideSettings(item_id=1, is_active=False),
            2: ItemOverrideSettings(item_id=2, hide_in_lobby=True),
        }

        assert [r.item_id for r in self.svc.apply_overrides(candidates, overrides, "lobby")] == [3]
        assert [r.item_id for r in self.svc.apply_overrides(candidates, overrides, "game_end")] == [
            2,
            3,
        ]

    def test_min_score_is_strict(self):
        candidates = recs((1, 0.1, "a", "p"), (2, 0.11, "a", "p"))
        assert [r.item_id for r in self.svc.filter_min_score(candidates, 0.1)] == [2]

    def test_cap_per_provider(self):
        candidates = recs(
            (1, 0.9, "a", "NetEnt"),
            (2, 0.8, "a", "NetEnt"),
            (3, 0.7, "a", "NetEnt"),
            (4, 0.6, "a", None),
            (5, 0.5, "a", None),
        )

        result = self.svc.cap_per_key(candidates, lambda r: r.provider, 2)

        assert [r.item_id for r in result] == [1, 2, 4, 5]

    def test_interleave_by_category(self):
        """Categories should alternate while keeping order within each."""
        candidates = recs(
            (1, 0.9, "slots", "p"),
            (2, 0.8, "slots", "p"),
            (3, 0.7, "live", "p"),
            (4, 0.6, "slots", "p"),
            (5, 0.5, "table", "p"),
        )

        result = self.svc.interleave_by_category(candidates)

        assert [r.item_id for r in result] == [1, 3, 5, 2, 4]

    def test_sort_by_score_breaks_ties(self):
        candidates = [
            make_recommendation(item_id=3, position=2, score=0.5),
            make_recommendation(item_id=1, position=2, score=0.5),
            make_recommendation(item_id=2, position=1, score=0.5),
            make_recommendation(item_id=4, position=3, score=0.9),
        ]

        assert [r.item_id for r in self.svc.sort_by_score(candidates)] == [4, 2, 1, 3]

    def test_rerank_renumbers_and_truncates(self):
        candidates = recs((5, 0.9, "a", "p"), (6, 0.8, "a", "p"), (7, 0.7, "a", "p"))
        shuffled = [candidates[2], candidates[0], candidates[1]]

        result = self.svc.rerank(shuffled, limit=2)

        assert [(r.item_id, r.position) for r in result] == [(7, 1), (5, 2)]
        assert candidates[2].position == 3

    def test_operations_do_not_mutate_input(self):
        candidates = recs((1, 0.9, "a", "p"), (1, 0.8, "a", "p"))
        snapshot = list(candidates)

        self.svc.deduplicate(candidates)
        self.svc.rerank(candidates, limit=1)

        assert candidates == snapshot


# =============================================================================
# EventBus Tests
# =============================================================================


class TestEventBus:
    """Unit tests for EventBus."""

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_block_others(self):
        """A raising handler should be logged while other handlers still run."""
        bus = EventBus()
        received = []

        async def broken(event):
            raise RuntimeError("handler bug")

        async def working(event):
            received.append(event)

        bus.subscribe(ItemOverrideSettingsUpdated, broken)
        bus.subscribe(ItemOverrideSettingsUpdated, working)

        await bus.publish(ItemOverrideSettingsUpdated(item_id=1))

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe(ItemOverrideSettingsUpdated, handler)
        bus.unsubscribe(ItemOverrideSettingsUpdated, handler)
        await bus.publish(ItemOverrideSettingsUpdated(item_id=1))

        assert received == []

    @pytest.mark.asyncio
    async def test_dispatch_by_exact_type(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe(RecommendationClicked, handler)
        await bus.publish(ItemOverrideSettingsUpdated(item_id=1))

        assert received == []

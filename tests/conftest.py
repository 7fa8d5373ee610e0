import pytest
import pytest_asyncio

# ============================================================================
# Helpers
# ============================================================================

CATEGORIES = ("slots", "table", "live", "crash")
PROVIDERS = ("NetEnt", "Pragmatic", "Evolution", "Playtech", "Microgaming")


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_item(item_id, **overrides):
    from game_recommender.domain.catalog.entities import ItemFeatures

    values = {
        "item_id": item_id,
        "name": f"Game {item_id}",
        "category": CATEGORIES[item_id % len(CATEGORIES)],
        "provider": PROVIDERS[item_id % len(PROVIDERS)],
        "popularity_score": round(0.3 + 0.03 * item_id, 2),
        "revenue_score": 0.5,
    }
    values.update(overrides)
    return ItemFeatures(**values)


def make_recommendation(player_id=1, item_id=1, position=1, **overrides):
    from game_recommender.domain.recommendations.entities import Recommendation

    values = {
        "player_id": player_id,
        "item_id": item_id,
        "algorithm": "Hybrid",
        "score": 0.8,
        "position": position,
        "category": CATEGORIES[item_id % len(CATEGORIES)],
        "provider": PROVIDERS[item_id % len(PROVIDERS)],
    }
    values.update(overrides)
    return Recommendation(**values)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def database(tmp_path):
    """Create a file-backed SQLite database for testing."""
    from game_recommender.infrastructure.persistence.database import Database

    db = Database(f"sqlite:///{tmp_path}/test.db")
    await db.initialize()
    yield db
    await db.close()


@pytest.fixture
def event_bus():
    from game_recommender.domain.shared.events import EventBus

    return EventBus()


@pytest.fixture
def uow_factory(database, event_bus):
    """Unit of work factory bound to the test database and event bus."""
    from game_recommender.infrastructure.persistence.unit_of_work import sqlite_uow_factory

    return sqlite_uow_factory(database, event_bus)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    from game_recommender.infrastructure.cache.memory_cache import InMemoryTTLCache

    return InMemoryTTLCache(clock=clock)


# ============================================================================
# Seed Data Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def seeded(uow_factory):
    """Seed players, player features and a 20-item catalog.

    Players:
    - 1: established player with a narrow preference profile
    - 2: inactive account
    - 7: account with no feature row yet
    - 42: highly active player
    """
    from game_recommender.domain.catalog.repository import ItemFeatureRepository
    from game_recommender.domain.players.entities import Player, PlayerFeatures
    from game_recommender.domain.players.repository import (
        PlayerFeatureRepository,
        PlayerRepository,
    )

    items = [make_item(i) for i in range(1, 21)]
    features = {
        1: PlayerFeatures(
            player_id=1,
            total_games_played=20,
            session_count=8,
            average_bet_size=2.0,
            preferred_categories=("slots", "live"),
            preferred_providers=("NetEnt",),
        ),
        42: PlayerFeatures(
            player_id=42,
            total_games_played=120,
            session_count=40,
            average_bet_size=5.0,
            preferred_categories=("table",),
        ),
    }

    async with uow_factory() as uow:
        players = uow.get_repository(PlayerRepository)
        await players.add(Player(player_id=1, username="alice"))
        await players.add(Player(player_id=2, username="dormant", is_active=False))
        await players.add(Player(player_id=7, username="newbie"))
        await players.add(Player(player_id=42, username="regular"))

        for row in features.values():
            await uow.get_repository(PlayerFeatureRepository).upsert(row)
        for item in items:
            await uow.get_repository(ItemFeatureRepository).upsert(item)
        await uow.save_changes()

    return {"items": items, "features": features}


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def selection_settings():
    from game_recommender.config.settings import SelectionSettings

    return SelectionSettings()


@pytest.fixture
def pipeline_settings():
    from game_recommender.config.settings import PipelineSettings

    return PipelineSettings()


@pytest.fixture
def cache_settings():
    from game_recommender.config.settings import CacheSettings

    return CacheSettings()


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def experiment_service(database):
    from game_recommender.infrastructure.experiments.sqlite_experiment_service import (
        SQLiteExperimentService,
    )

    return SQLiteExperimentService(database)


@pytest.fixture
def registry(uow_factory):
    from game_recommender.application.services.interaction_signals import InteractionSignalService
    from game_recommender.application.services.strategy_performance import (
        StrategyPerformanceService,
    )
    from game_recommender.domain.strategies.registry import build_default_registry

    return build_default_registry(
        co_play_source=InteractionSignalService(uow_factory=uow_factory),
        metrics_source=StrategyPerformanceService(uow_factory=uow_factory),
    )


@pytest.fixture
def selector(registry, uow_factory, selection_settings, experiment_service):
    from game_recommender.application.services.strategy_selector import StrategySelector

    return StrategySelector(
        registry=registry,
        uow_factory=uow_factory,
        settings=selection_settings,
        experiment_service=experiment_service,
    )


@pytest.fixture
def recommendation_pipeline(uow_factory, cache, selector, pipeline_settings, cache_settings):
    from game_recommender.application.pipeline.factory import build_recommendation_pipeline

    return build_recommendation_pipeline(
        uow_factory=uow_factory,
        cache=cache,
        selector=selector,
        pipeline_settings=pipeline_settings,
        cache_settings=cache_settings,
    )

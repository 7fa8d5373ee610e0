"""Dependency Injection Container

Manages the application's dependency graph, providing lazy initialization
and lifecycle management for the database, cache, strategy registry,
pipeline, handlers and dispatcher. Components are created on-demand and
cached for reuse throughout the application.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..domain.shared.messages import LogTemplates

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from ..application.commands.create_recommendation import CreateRecommendationHandler
    from ..application.commands.record_served_recommendations import (
        RecordServedRecommendationsHandler,
    )
    from ..application.commands.track_interaction import TrackInteractionHandler
    from ..application.commands.update_item_overrides import (
        UpdateItemOverrideSettingsHandler,
    )
    from ..application.cqrs import Dispatcher, HandlerRegistry
    from ..application.interfaces.cache import Cache
    from ..application.interfaces.model_serving import ModelServingClient
    from ..application.interfaces.unit_of_work import UnitOfWorkFactory
    from ..application.pipeline.engine import Pipeline
    from ..application.queries.get_item_override_settings import (
        GetItemOverrideSettingsHandler,
    )
    from ..application.queries.get_recommendation_history import (
        GetRecommendationHistoryHandler,
    )
    from ..application.queries.get_recommendations import GetRecommendationsHandler
    from ..application.queries.get_strategy_ranking import GetStrategyRankingHandler
    from ..application.services.cache_invalidation import CacheInvalidationSubscriber
    from ..application.services.interaction_signals import InteractionSignalService
    from ..application.services.strategy_performance import StrategyPerformanceService
    from ..application.services.strategy_selector import StrategySelector
    from ..domain.shared.events import EventBus
    from ..domain.strategies.registry import StrategyRegistry
    from ..infrastructure.experiments.sqlite_experiment_service import (
        SQLiteExperimentService,
    )
    from ..infrastructure.persistence.database import Database
    from .settings import Settings


@dataclass
class Container:
    """Dependency injection container.

    This container manages all application dependencies and their lifecycle.
    Components are lazily initialized when first accessed.
    """

    settings: Settings

    # Infrastructure
    _database: Database | None = None
    _cache: Cache | None = None
    _event_bus: EventBus | None = None
    _uow_factory: UnitOfWorkFactory | None = None
    _experiment_service: SQLiteExperimentService | None = None
    _model_client: ModelServingClient | None = None

    # Application services
    _performance_service: StrategyPerformanceService | None = None
    _signal_service: InteractionSignalService | None = None
    _strategy_registry: StrategyRegistry | None = None
    _strategy_selector: StrategySelector | None = None
    _recommendation_pipeline: Pipeline | None = None

    # Cross-cutting event subscribers
    _cache_invalidation: CacheInvalidationSubscriber | None = None

    # Command handlers
    _create_recommendation_handler: CreateRecommendationHandler | None = None
    _record_served_handler: RecordServedRecommendationsHandler | None = None
    _track_interaction_handler: TrackInteractionHandler | None = None
    _update_overrides_handler: UpdateItemOverrideSettingsHandler | None = None

    # Query handlers
    _get_recommendations_handler: GetRecommendationsHandler | None = None
    _get_history_handler: GetRecommendationHistoryHandler | None = None
    _get_ranking_handler: GetStrategyRankingHandler | None = None
    _get_overrides_handler: GetItemOverrideSettingsHandler | None = None

    _dispatcher: Dispatcher | None = None

    # === Infrastructure ===

    @property
    def database(self) -> Database:
        """Get the database connection manager."""
        if self._database is None:
            from ..infrastructure.persistence.database import Database

            self._database = Database(self.settings.database.url, settings=self.settings.database)
        return self._database

    @property
    def cache(self) -> Cache:
        if self._cache is None:
            from ..infrastructure.cache.memory_cache import InMemoryTTLCache

            self._cache = InMemoryTTLCache()
        return self._cache

    @property
    def event_bus(self) -> EventBus:
        if self._event_bus is None:
            from ..domain.shared.events import EventBus

            self._event_bus = EventBus()
        return self._event_bus

    @property
    def uow_factory(self) -> UnitOfWorkFactory:
        """Factory creating a SQLite unit of work that publishes to the event bus."""
        if self._uow_factory is None:
            from ..infrastructure.persistence.unit_of_work import sqlite_uow_factory

            self._uow_factory = sqlite_uow_factory(self.database, self.event_bus)
        return self._uow_factory

    @property
    def experiment_service(self) -> SQLiteExperimentService:
        if self._experiment_service is None:
            from ..infrastructure.experiments.sqlite_experiment_service import (
                SQLiteExperimentService,
            )

            self._experiment_service = SQLiteExperimentService(self.database)
        return self._experiment_service

    @property
    def model_client(self) -> ModelServingClient | None:
        """The remote model client, or None when no endpoint is configured."""
        if self._model_client is None and self.settings.model_serving.enabled:
            from ..infrastructure.model_serving.http_client import HttpModelServingClient

            self._model_client = HttpModelServingClient(self.settings.model_serving)
        return self._model_client

    # === Application Services ===

    @property
    def performance_service(self) -> StrategyPerformanceService:
        if self._performance_service is None:
            from ..application.services.strategy_performance import (
                StrategyPerformanceService,
            )

            self._performance_service = StrategyPerformanceService(uow_factory=self.uow_factory)
        return self._performance_service

    @property
    def signal_service(self) -> InteractionSignalService:
        if self._signal_service is None:
            from ..application.services.interaction_signals import InteractionSignalService

            self._signal_service = InteractionSignalService(uow_factory=self.uow_factory)
        return self._signal_service

    @property
    def strategy_registry(self) -> StrategyRegistry:
        """Get the registry of the built-in strategies."""
        if self._strategy_registry is None:
            from ..domain.strategies.registry import build_default_registry

            self._strategy_registry = build_default_registry(
                co_play_source=self.signal_service,
                metrics_source=self.performance_service,
                model_client=self.model_client,
                model_version=self.settings.model_serving.model_version,
                exploration_rate=self.settings.bandit.exploration_rate,
                new_player_exploration_rate=self.settings.bandit.new_player_exploration_rate,
                hybrid_weights=self.settings.selection.hybrid_weights,
            )
        return self._strategy_registry

    @property
    def strategy_selector(self) -> StrategySelector:
        if self._strategy_selector is None:
            from ..application.services.strategy_selector import StrategySelector

            self._strategy_selector = StrategySelector(
                registry=self.strategy_registry,
                uow_factory=self.uow_factory,
                settings=self.settings.selection,
                experiment_service=self.experiment_service,
            )
        return self._strategy_selector

    @property
    def recommendation_pipeline(self) -> Pipeline:
        if self._recommendation_pipeline is None:
            from ..application.pipeline.factory import build_recommendation_pipeline

            self._recommendation_pipeline = build_recommendation_pipeline(
                uow_factory=self.uow_factory,
                cache=self.cache,
                selector=self.strategy_selector,
                pipeline_settings=self.settings.pipeline,
                cache_settings=self.settings.cache,
            )
        return self._recommendation_pipeline

    # === Cross-cutting Subscribers ===

    @property
    def cache_invalidation(self) -> CacheInvalidationSubscriber:
        if self._cache_invalidation is None:
            from ..application.services.cache_invalidation import CacheInvalidationSubscriber

            self._cache_invalidation = CacheInvalidationSubscriber(
                cache=self.cache, event_bus=self.event_bus
            )
        return self._cache_invalidation

    # === Command Handlers ===

    @property
    def create_recommendation_handler(self) -> CreateRecommendationHandler:
        if self._create_recommendation_handler is None:
            from ..application.commands.create_recommendation import (
                CreateRecommendationHandler,
            )

            self._create_recommendation_handler = CreateRecommendationHandler(
                uow_factory=self.uow_factory
            )
        return self._create_recommendation_handler

    @property
    def record_served_handler(self) -> RecordServedRecommendationsHandler:
        if self._record_served_handler is None:
            from ..application.commands.record_served_recommendations import (
                RecordServedRecommendationsHandler,
            )

            self._record_served_handler = RecordServedRecommendationsHandler(
                uow_factory=self.uow_factory
            )
        return self._record_served_handler

    @property
    def track_interaction_handler(self) -> TrackInteractionHandler:
        if self._track_interaction_handler is None:
            from ..application.commands.track_interaction import TrackInteractionHandler

            self._track_interaction_handler = TrackInteractionHandler(
                uow_factory=self.uow_factory
            )
        return self._track_interaction_handler

    @property
    def update_overrides_handler(self) -> UpdateItemOverrideSettingsHandler:
        if self._update_overrides_handler is None:
            from ..application.commands.update_item_overrides import (
                UpdateItemOverrideSettingsHandler,
            )

            self._update_overrides_handler = UpdateItemOverrideSettingsHandler(
                uow_factory=self.uow_factory
            )
        return self._update_overrides_handler

    # === Query Handlers ===

    @property
    def get_recommendations_handler(self) -> GetRecommendationsHandler:
        if self._get_recommendations_handler is None:
            from ..application.queries.get_recommendations import GetRecommendationsHandler

            self._get_recommendations_handler = GetRecommendationsHandler(
                pipeline=self.recommendation_pipeline,
                timeout_seconds=self.settings.pipeline.request_timeout_s,
            )
        return self._get_recommendations_handler

    @property
    def get_history_handler(self) -> GetRecommendationHistoryHandler:
        if self._get_history_handler is None:
            from ..application.queries.get_recommendation_history import (
                GetRecommendationHistoryHandler,
            )

            self._get_history_handler = GetRecommendationHistoryHandler(
                uow_factory=self.uow_factory
            )
        return self._get_history_handler

    @property
    def get_ranking_handler(self) -> GetStrategyRankingHandler:
        if self._get_ranking_handler is None:
            from ..application.queries.get_strategy_ranking import GetStrategyRankingHandler

            self._get_ranking_handler = GetStrategyRankingHandler(
                selector=self.strategy_selector,
                cache=self.cache,
                ttl_seconds=self.settings.cache.ranking_ttl_seconds,
                default_days=self.settings.ranking.default_window_days,
            )
        return self._get_ranking_handler

    @property
    def get_overrides_handler(self) -> GetItemOverrideSettingsHandler:
        if self._get_overrides_handler is None:
            from ..application.queries.get_item_override_settings import (
                GetItemOverrideSettingsHandler,
            )

            self._get_overrides_handler = GetItemOverrideSettingsHandler(
                uow_factory=self.uow_factory,
                cache=self.cache,
                ttl_seconds=self.settings.cache.override_ttl_seconds,
            )
        return self._get_overrides_handler

    # === Dispatcher ===

    def build_handler_registry(self) -> HandlerRegistry:
        """Map every command and query type to its handler."""
        from ..application.commands import (
            CreateRecommendationCommand,
            RecordServedRecommendationsCommand,
            TrackInteractionCommand,
            UpdateItemOverrideSettingsCommand,
        )
        from ..application.cqrs import HandlerRegistry
        from ..application.queries import (
            GetItemOverrideSettingsQuery,
            GetRecommendationHistoryQuery,
            GetRecommendationsQuery,
            GetStrategyRankingQuery,
        )

        return HandlerRegistry(
            {
                CreateRecommendationCommand: self.create_recommendation_handler,
                RecordServedRecommendationsCommand: self.record_served_handler,
                TrackInteractionCommand: self.track_interaction_handler,
                UpdateItemOverrideSettingsCommand: self.update_overrides_handler,
                GetRecommendationsQuery: self.get_recommendations_handler,
                GetRecommendationHistoryQuery: self.get_history_handler,
                GetStrategyRankingQuery: self.get_ranking_handler,
                GetItemOverrideSettingsQuery: self.get_overrides_handler,
            }
        )

    @property
    def dispatcher(self) -> Dispatcher:
        if self._dispatcher is None:
            from ..application.cqrs import Dispatcher

            self._dispatcher = Dispatcher(self.build_handler_registry())
        return self._dispatcher

    # === Lifecycle ===

    async def initialize(self) -> None:
        """Initialize all async resources."""
        await self.database.initialize()
        # Start cross-cutting subscribers.
        self.cache_invalidation.start()

    async def shutdown(self) -> None:
        """Shutdown and cleanup all resources."""
        try:
            if self._cache_invalidation is not None:
                self._cache_invalidation.stop()
        except Exception as exc:
            logger.warning(LogTemplates.CONTAINER_SHUTDOWN_FAILED, "cache invalidation", exc)

        try:
            if self._model_client is not None:
                await self._model_client.close()
        except Exception as exc:
            logger.warning(LogTemplates.CONTAINER_SHUTDOWN_FAILED, "model client", exc)

        if self._database is not None:
            await self._database.close()


def create_container(settings: Settings) -> Container:
    """Create a new dependency injection container."""
    return Container(settings)

"""
Recommendation Pipeline Steps

ValidatePlayer -> LookupCache -> ExtractFeatures -> SelectAlgorithm
-> GenerateRecommendations -> ApplyBusinessRules -> Diversify -> CacheResult.

The request-level steps pass the request through and write their findings
into the pipeline context; from GenerateRecommendations on, steps transform
the candidate list. LookupCache runs after the player has been validated and
returns a cached list on a hit, which ends the run there.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from ...domain.catalog.entities import ItemFeatures, ItemOverrideSettings
from ...domain.catalog.repository import ItemFeatureRepository, ItemOverrideRepository
from ...domain.players.entities import PlayerFeatures
from ...domain.players.repository import PlayerFeatureRepository, PlayerRepository
from ...domain.recommendations.entities import RecommendationRequest
from ...domain.recommendations.services import RecommendationDomainService
from ...domain.shared.constants import CacheKeys, MetadataKeys, PipelineContextKeys
from ...domain.shared.messages import ErrorMessages, LogTemplates
from ...domain.shared.result import ErrorCode, Result
from ...domain.strategies.base import RecommendationStrategy
from ..services.strategy_selector import StrategySelection
from .engine import PipelineContext, PipelineStep

if TYPE_CHECKING:
    from ..interfaces.cache import Cache
    from ..interfaces.unit_of_work import UnitOfWorkFactory
    from ..services.strategy_selector import StrategySelector

logger = logging.getLogger(__name__)

Keys = PipelineContextKeys


class ValidatePlayerStep(PipelineStep):
    """Rejects unknown and inactive players."""

    input_type = RecommendationRequest
    output_type = RecommendationRequest

    def __init__(self, *, uow_factory: UnitOfWorkFactory, order: int = 10) -> None:
        super().__init__("ValidatePlayer", order)
        self._uow_factory = uow_factory

    async def execute(self, data: RecommendationRequest, context: PipelineContext) -> Result[Any]:
        if data.player_id <= 0:
            return Result.fail(ErrorCode.VALIDATION, ErrorMessages.PLAYER_INVALID)

        async with self._uow_factory() as uow:
            player = await uow.get_repository(PlayerRepository).get(data.player_id)

        if player is None:
            return Result.fail(ErrorCode.NOT_FOUND, ErrorMessages.PLAYER_NOT_FOUND)
        if not player.is_active:
            return Result.fail(ErrorCode.VALIDATION, ErrorMessages.PLAYER_INACTIVE)

        context.set(Keys.REQUEST, data)
        context.set(Keys.PLAYER, player)
        return Result.ok(data)


class LookupCachedRecommendationsStep(PipelineStep):
    """Serves a cached list for the request, otherwise passes the request on.

    Skipped when the context carries ``skip_cache_lookup``.
    """

    input_type = RecommendationRequest

    def __init__(self, *, cache: Cache, order: int = 15) -> None:
        super().__init__("LookupCache", order)
        self._cache = cache

    async def execute(self, data: RecommendationRequest, context: PipelineContext) -> Result[Any]:
        if context.get(Keys.SKIP_CACHE_LOOKUP, bool, False):
            return Result.ok(data)

        cached = await self._cache.get(data.cache_key)
        if not isinstance(cached, list):
            return Result.ok(data)

        logger.debug(LogTemplates.RECOMMENDATION_CACHE_HIT, data.player_id)
        context.set(Keys.CACHE_HIT, True)
        return Result.ok([rec.model_copy(deep=True) for rec in cached])


class ExtractFeaturesStep(PipelineStep):
    """Loads player features, the active catalog and item overrides.

    A player without a feature row gets new-player defaults instead of a
    failure.
    """

    input_type = RecommendationRequest
    output_type = RecommendationRequest

    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        cache: Cache,
        catalog_ttl_seconds: float,
        override_ttl_seconds: float,
        order: int = 20,
    ) -> None:
        super().__init__("ExtractFeatures", order)
        self._uow_factory = uow_factory
        self._cache = cache
        self._catalog_ttl = catalog_ttl_seconds
        self._override_ttl = override_ttl_seconds

    async def execute(self, data: RecommendationRequest, context: PipelineContext) -> Result[Any]:
        async with self._uow_factory() as uow:
            features = await uow.get_repository(PlayerFeatureRepository).get(data.player_id)

        if features is None:
            logger.info(LogTemplates.FEATURES_SYNTHESIZED, data.player_id)
            features = PlayerFeatures.new_player(data.player_id)
            context.set(Keys.FEATURES_SYNTHESIZED, True)

        items = await self._cache.get_or_set(
            CacheKeys.ITEM_CATALOG, self._catalog_ttl, self._load_catalog
        )
        overrides = await self._cache.get_or_set(
            CacheKeys.ITEM_OVERRIDES_ALL, self._override_ttl, self._load_overrides
        )

        context.set(Keys.PLAYER_FEATURES, features)
        context.set(Keys.ITEM_FEATURES, list(items))
        context.set(Keys.ITEM_OVERRIDES, dict(overrides))
        return Result.ok(data)

    async def _load_catalog(self) -> list[ItemFeatures]:
        async with self._uow_factory() as uow:
            return await uow.get_repository(ItemFeatureRepository).list_active()

    async def _load_overrides(self) -> dict[int, ItemOverrideSettings]:
        async with self._uow_factory() as uow:
            rows = await uow.get_repository(ItemOverrideRepository).list_all()
        return {row.item_id: row for row in rows}


class SelectAlgorithmStep(PipelineStep):
    """Chooses the strategy. Never fails; selection errors degrade to the fallback."""

    input_type = RecommendationRequest
    output_type = RecommendationRequest

    def __init__(self, *, selector: StrategySelector, order: int = 30) -> None:
        super().__init__("SelectAlgorithm", order)
        self._selector = selector

    async def execute(self, data: RecommendationRequest, context: PipelineContext) -> Result[Any]:
        selection = await self._selector.choose(
            data.player_id,
            data.context,
            override=data.algorithm,
            features=context.get(Keys.PLAYER_FEATURES, PlayerFeatures),
        )
        context.set(Keys.SELECTION, selection)
        context.set(Keys.SELECTED_STRATEGY, selection.strategy)
        return Result.ok(data)


class GenerateRecommendationsStep(PipelineStep):
    """Runs the selected strategy over the catalog.

    Needs the player features, item catalog and selected strategy from earlier
    steps; a missing value is a construction error and fails the run.
    """

    input_type = RecommendationRequest
    output_type = list

    def __init__(self, *, order: int = 40) -> None:
        super().__init__("GenerateRecommendations", order)

    async def execute(self, data: RecommendationRequest, context: PipelineContext) -> Result[Any]:
        features = context.require(Keys.PLAYER_FEATURES, PlayerFeatures, step=self.name)
        items = context.require(Keys.ITEM_FEATURES, list, step=self.name)
        strategy = context.require(Keys.SELECTED_STRATEGY, RecommendationStrategy, step=self.name)
        selection = context.get(Keys.SELECTION, StrategySelection)

        started = time.perf_counter()
        candidates = await strategy.generate_recommendations(data, features, items)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 3)
        context.set(Keys.GENERATION_MS, elapsed_ms)

        for rec in candidates:
            rec.metadata[MetadataKeys.GENERATION_MS] = elapsed_ms
            if selection is not None:
                rec.metadata[MetadataKeys.SELECTION_REASON] = selection.reason.value
                if selection.variant is not None:
                    rec.experiment_variant = selection.variant.variant_name
                    rec.metadata[MetadataKeys.EXPERIMENT] = selection.variant.experiment_name

        logger.debug(
            LogTemplates.RECOMMENDATIONS_GENERATED, strategy.name, len(candidates), data.player_id
        )
        return Result.ok(candidates)


class ApplyBusinessRulesStep(PipelineStep):
    """Removes excluded, hidden and low-scoring items and caps items per provider."""

    input_type = list
    output_type = list

    def __init__(self, *, min_score: float = 0.1, max_per_provider: int = 3, order: int = 50) -> None:
        super().__init__("ApplyBusinessRules", order)
        self.min_score = min_score
        self.max_per_provider = max_per_provider

    async def execute(self, data: list, context: PipelineContext) -> Result[Any]:
        request = context.require(Keys.REQUEST, RecommendationRequest, step=self.name)
        overrides = context.get(Keys.ITEM_OVERRIDES, dict, {})

        service = RecommendationDomainService
        kept = service.deduplicate(data)
        kept = service.remove_excluded(kept, request.excluded_item_ids)
        kept = service.apply_overrides(kept, overrides, request.context)
        kept = service.filter_min_score(kept, self.min_score)
        kept = service.sort_by_score(kept)
        kept = service.cap_per_key(kept, lambda r: r.provider, self.max_per_provider)
        kept = service.rerank(kept, limit=request.count)

        logger.debug(LogTemplates.BUSINESS_RULES_APPLIED, len(kept), len(data))
        return Result.ok(kept)


class DiversifyStep(PipelineStep):
    """Caps items per category and interleaves categories."""

    input_type = list
    output_type = list

    def __init__(self, *, max_per_category: int = 3, order: int = 60) -> None:
        super().__init__("Diversify", order)
        self.max_per_category = max_per_category

    async def execute(self, data: list, context: PipelineContext) -> Result[Any]:
        service = RecommendationDomainService
        kept = service.cap_per_key(data, lambda r: r.category, self.max_per_category)
        kept = service.rerank(service.interleave_by_category(kept))

        logger.debug(LogTemplates.DIVERSIFIED, len(kept), len(data))
        return Result.ok(kept)


class CacheResultStep(PipelineStep):
    """Stores the final list under the request's cache key.

    A cache failure never fails the request: the uncached list is returned.
    """

    input_type = list
    output_type = list

    def __init__(self, *, cache: Cache, ttl_seconds: float, order: int = 70) -> None:
        super().__init__("CacheResult", order)
        self._cache = cache
        self._ttl = ttl_seconds

    async def execute(self, data: list, context: PipelineContext) -> Result[Any]:
        request = context.require(Keys.REQUEST, RecommendationRequest, step=self.name)
        key = request.cache_key
        await self._cache.set(key, [rec.model_copy(deep=True) for rec in data], self._ttl)
        context.set(Keys.CACHE_KEY, key)
        logger.debug(LogTemplates.RESULT_CACHED, len(data), key)
        return Result.ok(data)

    async def handle_failure(
        self, data: Any, context: PipelineContext, error: Exception
    ) -> Result[Any]:
        request = context.get(Keys.REQUEST, RecommendationRequest)
        key = request.cache_key if request is not None else "?"
        logger.warning(LogTemplates.CACHE_WRITE_FAILED, key, error)
        return Result.ok(data)

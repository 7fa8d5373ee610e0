"""Assembly of the recommendation pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .engine import Pipeline, PipelineBuilder, PipelineContext
from .recommendation_steps import (
    ApplyBusinessRulesStep,
    CacheResultStep,
    DiversifyStep,
    ExtractFeaturesStep,
    GenerateRecommendationsStep,
    LookupCachedRecommendationsStep,
    SelectAlgorithmStep,
    ValidatePlayerStep,
)

if TYPE_CHECKING:
    from ...config.settings import CacheSettings, PipelineSettings
    from ..interfaces.cache import Cache
    from ..interfaces.unit_of_work import UnitOfWorkFactory
    from ..services.strategy_selector import StrategySelector

RECOMMENDATION_PIPELINE = "recommendations"


def build_recommendation_pipeline(
    *,
    uow_factory: UnitOfWorkFactory,
    cache: Cache,
    selector: StrategySelector,
    pipeline_settings: PipelineSettings,
    cache_settings: CacheSettings,
) -> Pipeline:
    """Build the recommendation pipeline returning ``list[Recommendation]``.

    A cache hit ends the run right after player validation, so an inactive
    or unknown player is rejected whether or not a cached list exists.

    Diversification only runs when more than
    ``pipeline_settings.diversify_min_candidates`` candidates survive the
    business rules.
    """
    min_candidates = pipeline_settings.diversify_min_candidates

    def enough_candidates(data: Any, context: PipelineContext) -> bool:
        return isinstance(data, list) and len(data) > min_candidates

    return (
        PipelineBuilder(RECOMMENDATION_PIPELINE, list)
        .add_step(ValidatePlayerStep(uow_factory=uow_factory))
        .add_step(LookupCachedRecommendationsStep(cache=cache))
        .add_step(
            ExtractFeaturesStep(
                uow_factory=uow_factory,
                cache=cache,
                catalog_ttl_seconds=cache_settings.item_catalog_ttl_seconds,
                override_ttl_seconds=cache_settings.override_ttl_seconds,
            )
        )
        .add_step(SelectAlgorithmStep(selector=selector))
        .add_step(GenerateRecommendationsStep())
        .add_step(
            ApplyBusinessRulesStep(
                min_score=pipeline_settings.min_score,
                max_per_provider=pipeline_settings.max_per_provider,
            )
        )
        .add_step_if(
            DiversifyStep(max_per_category=pipeline_settings.max_per_category),
            enough_candidates,
        )
        .add_step(
            CacheResultStep(cache=cache, ttl_seconds=cache_settings.recommendation_ttl_seconds)
        )
        .build()
    )

"""Strategy performance metrics computed from served recommendations and their interactions."""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Iterable
from typing import TYPE_CHECKING

from ...domain.catalog.repository import ItemFeatureRepository
from ...domain.recommendations.entities import InteractionType, Recommendation
from ...domain.recommendations.repository import RecommendationRepository
from ...domain.recommendations.specifications import (
    INCLUDE_INTERACTIONS,
    recommendations_by_algorithm,
    recommendations_created_between,
    recommendations_in_context,
)
from ...domain.shared.constants import MetadataKeys
from ...domain.strategies.metrics import PerformanceWindow, StrategyPerformanceMetrics

if TYPE_CHECKING:
    from ..interfaces.unit_of_work import UnitOfWorkFactory


def _ratio(numerator: float, denominator: float) -> float:
    if denominator <= 0:
        return 0.0
    return max(0.0, min(1.0, numerator / denominator))


def _is_relevant(rec: Recommendation) -> bool:
    return rec.is_clicked or rec.is_played


def _result_sets(recs: Iterable[Recommendation]) -> list[list[Recommendation]]:
    """Group recommendations into the result lists they were served in."""
    groups: dict[tuple[int, str, str], list[Recommendation]] = defaultdict(list)
    for rec in recs:
        served = rec.session_id or rec.created_at.strftime("%Y-%m-%dT%H:%M")
        groups[(rec.player_id, rec.context, served)].append(rec)
    return list(groups.values())


def _ndcg(result_set: list[Recommendation]) -> float | None:
    ordered = sorted(result_set, key=lambda r: r.position)
    gains = [1.0 if _is_relevant(r) else 0.0 for r in ordered]
    ideal = sorted(gains, reverse=True)
    idcg = sum(g / math.log2(i + 2) for i, g in enumerate(ideal))
    if idcg == 0:
        return None
    dcg = sum(g / math.log2(r.position + 1) for r, g in zip(ordered, gains, strict=True))
    return min(1.0, dcg / idcg)


class StrategyPerformanceService:
    """Aggregates performance statistics per strategy.

    Precision treats a played recommendation as a hit; recall is the share of
    engaged (clicked or played) recommendations that went on to be played.
    Revenue is the summed value of ``play`` interactions.
    """

    def __init__(self, *, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def metrics_for(
        self,
        strategy_name: str,
        window: PerformanceWindow,
        context: str | None = None,
    ) -> StrategyPerformanceMetrics | None:
        spec = recommendations_by_algorithm(strategy_name) & recommendations_created_between(
            window.start, window.end
        )
        if context:
            spec = spec & recommendations_in_context(context)

        async with self._uow_factory() as uow:
            recs = await uow.get_repository(RecommendationRepository).find(
                spec.include(INCLUDE_INTERACTIONS)
            )
            if not recs:
                return None
            items = await uow.get_repository(ItemFeatureRepository).list_active()

        return self._aggregate(
            strategy_name,
            window,
            context,
            recs,
            items_count=len(items),
            popularity={i.item_id: i.popularity_score for i in items},
        )

    def _aggregate(
        self,
        strategy_name: str,
        window: PerformanceWindow,
        context: str | None,
        recs: list[Recommendation],
        *,
        items_count: int,
        popularity: dict[int, float],
    ) -> StrategyPerformanceMetrics:
        total = len(recs)
        clicked = sum(1 for r in recs if r.is_clicked)
        played = sum(1 for r in recs if r.is_played)
        engaged = sum(1 for r in recs if _is_relevant(r))

        revenue = sum(
            i.value
            for r in recs
            for i in r.interactions
            if i.interaction_type is InteractionType.PLAY
        )

        precision = _ratio(played, total)
        recall = _ratio(played, engaged)
        f1 = 2 * precision * recall / (precision + recall) if precision + recall > 0 else 0.0

        result_sets = _result_sets(recs)
        ndcg_values = [v for v in (_ndcg(s) for s in result_sets) if v is not None]
        diversity_values = [
            len({r.category for r in s}) / len(s) for s in result_sets if len(s) > 1
        ]

        distinct_items = {r.item_id for r in recs}
        novelty = 1.0 - sum(popularity.get(i, 0.0) for i in distinct_items) / len(distinct_items)

        timings = [
            float(r.metadata[MetadataKeys.GENERATION_MS])
            for r in recs
            if isinstance(r.metadata.get(MetadataKeys.GENERATION_MS), (int, float))
        ]

        return StrategyPerformanceMetrics(
            strategy_name=strategy_name,
            window=window,
            context=context,
            total_recommendations=total,
            clicked_recommendations=clicked,
            played_recommendations=played,
            click_through_rate=_ratio(clicked, total),
            conversion_rate=_ratio(played, total),
            average_score=sum(r.score for r in recs) / total,
            total_revenue=revenue,
            revenue_per_recommendation=revenue / total,
            precision=precision,
            recall=recall,
            f1_score=f1,
            ndcg=sum(ndcg_values) / len(ndcg_values) if ndcg_values else 0.0,
            coverage=_ratio(len(distinct_items), items_count),
            diversity=sum(diversity_values) / len(diversity_values) if diversity_values else 0.0,
            novelty=max(0.0, min(1.0, novelty)),
            average_response_ms=sum(timings) / len(timings) if timings else 0.0,
        )

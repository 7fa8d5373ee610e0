"""Strategy performance metrics and ranking math."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Final

from pydantic import BaseModel, ConfigDict, Field, model_validator

from game_recommender.domain.shared.datetime_utils import utcnow
from game_recommender.domain.shared.messages import ErrorMessages
from game_recommender.domain.shared.types import (
    NonEmptyStr,
    NonNegativeFloat,
    NonNegativeInt,
    PositiveInt,
    UnitInterval,
    UtcDatetimeField,
)

CONVERSION_WEIGHT: Final[float] = 0.4
CTR_WEIGHT: Final[float] = 0.3
REVENUE_WEIGHT: Final[float] = 0.2
DIVERSITY_WEIGHT: Final[float] = 0.1

REVENUE_NORMALIZER: Final[float] = 10.0
RESPONSE_TIME_BUDGET_MS: Final[float] = 1000.0


class PerformanceWindow(BaseModel):
    """Half-open time range [start, end) over which metrics are aggregated."""

    model_config = ConfigDict(frozen=True)

    start: UtcDatetimeField
    end: UtcDatetimeField

    @model_validator(mode="after")
    def _check_order(self) -> PerformanceWindow:
        if self.end <= self.start:
            raise ValueError(ErrorMessages.INVALID_WINDOW)
        return self

    @classmethod
    def last(cls, days: int = 7, *, now: datetime | None = None) -> PerformanceWindow:
        end = now or utcnow()
        return cls(start=end - timedelta(days=days), end=end)

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


class StrategyPerformanceMetrics(BaseModel):
    """Aggregated statistics for one strategy over one window."""

    model_config = ConfigDict(frozen=True)

    strategy_name: NonEmptyStr
    window: PerformanceWindow
    context: str | None = None

    total_recommendations: NonNegativeInt = 0
    clicked_recommendations: NonNegativeInt = 0
    played_recommendations: NonNegativeInt = 0

    click_through_rate: UnitInterval = 0.0
    conversion_rate: UnitInterval = 0.0
    average_score: UnitInterval = 0.0
    total_revenue: NonNegativeFloat = 0.0
    revenue_per_recommendation: NonNegativeFloat = 0.0

    precision: UnitInterval = 0.0
    recall: UnitInterval = 0.0
    f1_score: UnitInterval = 0.0
    ndcg: UnitInterval = 0.0

    coverage: UnitInterval = 0.0
    diversity: UnitInterval = 0.0
    novelty: UnitInterval = 0.0
    average_response_ms: NonNegativeFloat = 0.0

    custom_metrics: dict[str, float] = Field(default_factory=dict)
    calculated_at: UtcDatetimeField = Field(default_factory=utcnow)

    @property
    def normalized_revenue(self) -> float:
        return min(self.revenue_per_recommendation / REVENUE_NORMALIZER, 1.0)


class StrategyRanking(BaseModel):
    """Point-in-time position of one strategy in a ranking."""

    model_config = ConfigDict(frozen=True)

    strategy_name: NonEmptyStr
    rank: PositiveInt
    overall_score: NonNegativeFloat
    performance_score: NonNegativeFloat = 0.0
    efficiency_score: NonNegativeFloat = 0.0
    reliability_score: NonNegativeFloat = 0.0
    context: str | None = None
    ranked_at: UtcDatetimeField = Field(default_factory=utcnow)


def overall_score(metrics: StrategyPerformanceMetrics) -> float:
    return (
        metrics.conversion_rate * CONVERSION_WEIGHT
        + metrics.click_through_rate * CTR_WEIGHT
        + metrics.normalized_revenue * REVENUE_WEIGHT
        + metrics.diversity * DIVERSITY_WEIGHT
    )


def performance_score(metrics: StrategyPerformanceMetrics) -> float:
    return (metrics.conversion_rate + metrics.click_through_rate + metrics.f1_score) / 3


def efficiency_score(metrics: StrategyPerformanceMetrics) -> float:
    speed = max(0.0, 1.0 - metrics.average_response_ms / RESPONSE_TIME_BUDGET_MS)
    return (speed + metrics.coverage) / 2


def reliability_score(metrics: StrategyPerformanceMetrics) -> float:
    if metrics.total_recommendations == 0:
        click_share = 0.0
    else:
        click_share = metrics.clicked_recommendations / metrics.total_recommendations
    return (click_share + metrics.precision + metrics.recall) / 3


def rank_strategies(
    metrics: list[StrategyPerformanceMetrics],
    context: str | None = None,
    *,
    now: datetime | None = None,
) -> list[StrategyRanking]:
    """Order strategies by overall score and assign dense ranks from 1.

    Equal scores share a rank; ties are listed alphabetically.
    """
    ranked_at = now or utcnow()
    scored = sorted(
        ((round(overall_score(m), 10), m) for m in metrics),
        key=lambda pair: (-pair[0], pair[1].strategy_name.lower()),
    )

    rankings: list[StrategyRanking] = []
    rank = 0
    previous: float | None = None
    for score, m in scored:
        if score != previous:
            rank += 1
            previous = score
        rankings.append(
            StrategyRanking(
                strategy_name=m.strategy_name,
                rank=rank,
                overall_score=score,
                performance_score=performance_score(m),
                efficiency_score=efficiency_score(m),
                reliability_score=reliability_score(m),
                context=context,
                ranked_at=ranked_at,
            )
        )
    return rankings

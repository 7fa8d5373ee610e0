"""Query for the current strategy ranking."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from ...domain.shared.constants import CacheKeys
from ...domain.shared.result import Result
from ...domain.strategies.metrics import PerformanceWindow, StrategyRanking
from ..cqrs import Query

if TYPE_CHECKING:
    from ..interfaces.cache import Cache
    from ..services.strategy_selector import StrategySelector


class GetStrategyRankingQuery(BaseModel, Query):
    model_config = ConfigDict(frozen=True)

    days: int | None = Field(default=None, ge=1, le=365)
    context: str | None = None


class GetStrategyRankingHandler:
    """Ranks strategies over the last ``days`` days, cached per window and context."""

    def __init__(
        self,
        *,
        selector: StrategySelector,
        cache: Cache,
        ttl_seconds: float,
        default_days: int = 7,
    ) -> None:
        self._selector = selector
        self._cache = cache
        self._ttl = ttl_seconds
        self._default_days = default_days

    async def handle(self, query: GetStrategyRankingQuery) -> Result[list[StrategyRanking]]:
        days = query.days or self._default_days
        key = CacheKeys.STRATEGY_RANKING.format(days=days, context=query.context or "all")

        async def compute() -> list[StrategyRanking]:
            return await self._selector.get_strategy_ranking(
                PerformanceWindow.last(days), query.context
            )

        rankings = await self._cache.get_or_set(key, self._ttl, compute)
        return Result.ok(list(rankings))

"""Query for a ranked recommendation list, served from cache or the pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from ...domain.recommendations.entities import (
    DEFAULT_RECOMMENDATION_COUNT,
    Recommendation,
    RecommendationRequest,
)
from ...domain.shared.constants import ContextTags, PipelineContextKeys
from ...domain.shared.result import Result
from ...domain.shared.types import (
    AlgorithmNameStr,
    ContextTagStr,
    PlayerIdField,
    RecommendationCount,
)
from ..cqrs import Query
from ..pipeline.engine import PipelineContext

if TYPE_CHECKING:
    from ..pipeline.engine import Pipeline


class GetRecommendationsQuery(BaseModel, Query):
    model_config = ConfigDict(frozen=True)

    player_id: PlayerIdField
    count: RecommendationCount = DEFAULT_RECOMMENDATION_COUNT
    context: ContextTagStr = ContextTags.LOBBY
    algorithm: AlgorithmNameStr | None = None
    excluded_item_ids: frozenset[int] = Field(default_factory=frozenset)
    parameters: dict[str, Any] = Field(default_factory=dict)
    session_id: str | None = None
    use_cache: bool = True

    def to_request(self) -> RecommendationRequest:
        return RecommendationRequest(
            player_id=self.player_id,
            count=self.count,
            context=self.context,
            algorithm=self.algorithm,
            excluded_item_ids=self.excluded_item_ids,
            parameters=self.parameters,
            session_id=self.session_id,
        )


class GetRecommendationsHandler:
    """Runs the recommendation pipeline for a query.

    The pipeline serves cached lists itself, after validating the player, and
    its final step populates the cache. ``use_cache=False`` skips the lookup
    but still refreshes the cached entry.
    """

    def __init__(
        self,
        *,
        pipeline: Pipeline,
        timeout_seconds: float | None = None,
    ) -> None:
        self._pipeline = pipeline
        self._timeout = timeout_seconds

    async def handle(self, query: GetRecommendationsQuery) -> Result[list[Recommendation]]:
        request = query.to_request()
        context = PipelineContext(correlation_id=request.session_id)
        if not query.use_cache:
            context.set(PipelineContextKeys.SKIP_CACHE_LOOKUP, True)
        return await self._pipeline.execute(request, context, timeout=self._timeout)

"""Query for a player's paged recommendation history."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from ...domain.recommendations.entities import Page, Recommendation
from ...domain.recommendations.repository import RecommendationRepository
from ...domain.recommendations.specifications import (
    INCLUDE_INTERACTIONS,
    clicked_recommendations,
    newest_first,
    played_recommendations,
    recommendations_by_algorithm,
    recommendations_created_between,
    recommendations_for_player,
    recommendations_in_context,
)
from ...domain.shared.result import Result
from ...domain.shared.specification import Specification
from ...domain.shared.types import PlayerIdField, PositiveInt, UtcDatetimeField
from ..cqrs import Query

if TYPE_CHECKING:
    from ..interfaces.unit_of_work import UnitOfWorkFactory

MAX_PAGE_SIZE = 100


class GetRecommendationHistoryQuery(BaseModel, Query):
    model_config = ConfigDict(frozen=True)

    player_id: PlayerIdField
    page: PositiveInt = 1
    page_size: int = Field(default=20, ge=1, le=MAX_PAGE_SIZE)
    algorithm: str | None = None
    context: str | None = None
    clicked: bool | None = None
    played: bool | None = None
    start: UtcDatetimeField | None = None
    end: UtcDatetimeField | None = None
    include_interactions: bool = False

    def to_specification(self) -> Specification[Recommendation]:
        """Filters only; ordering and paging are added by the handler."""
        spec = recommendations_for_player(self.player_id)
        if self.algorithm:
            spec = spec & recommendations_by_algorithm(self.algorithm)
        if self.context:
            spec = spec & recommendations_in_context(self.context)
        if self.clicked is not None:
            spec = spec & clicked_recommendations(self.clicked)
        if self.played is not None:
            spec = spec & played_recommendations(self.played)
        if self.start is not None or self.end is not None:
            spec = spec & recommendations_created_between(self.start, self.end)
        if self.include_interactions:
            spec = spec.include(INCLUDE_INTERACTIONS)
        return spec


class GetRecommendationHistoryHandler:

    def __init__(self, *, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def handle(self, query: GetRecommendationHistoryQuery) -> Result[Page[Recommendation]]:
        filters = query.to_specification()
        paged = (filters & newest_first()).apply_paging(
            (query.page - 1) * query.page_size, query.page_size
        )

        async with self._uow_factory() as uow:
            repository = uow.get_repository(RecommendationRepository)
            total = await repository.count(filters)
            items = await repository.find(paged)

        return Result.ok(
            Page[Recommendation](
                items=items, total_count=total, page=query.page, page_size=query.page_size
            )
        )

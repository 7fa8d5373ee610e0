"""
Record Served Recommendations Command

Persists a served result list atomically: either every new recommendation is
stored or none is.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ...domain.catalog.repository import ItemFeatureRepository
from ...domain.players.repository import PlayerRepository
from ...domain.recommendations.entities import Recommendation
from ...domain.recommendations.repository import RecommendationRepository
from ...domain.shared.exceptions import EntityNotFoundError
from ...domain.shared.messages import ErrorMessages, LogTemplates
from ...domain.shared.result import Result
from ..cqrs import Command

if TYPE_CHECKING:
    from ..interfaces.unit_of_work import UnitOfWork, UnitOfWorkFactory

logger = logging.getLogger(__name__)


@dataclass
class RecordServedRecommendationsCommand(Command):
    player_id: int
    recommendations: list[Recommendation] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.player_id <= 0:
            raise ValueError(ErrorMessages.INVALID_PLAYER_ID)
        positions = [rec.position for rec in self.recommendations]
        if len(positions) != len(set(positions)):
            raise ValueError(ErrorMessages.DUPLICATE_POSITION)
        for rec in self.recommendations:
            if rec.player_id != self.player_id:
                raise ValueError(
                    ErrorMessages.RECOMMENDATION_PLAYER_MISMATCH.format(
                        recommendation_id=rec.id, player_id=self.player_id
                    )
                )


class RecordServedRecommendationsHandler:
    """Handler for RecordServedRecommendationsCommand.

    Recommendations whose id is already stored are skipped, so replaying a
    cached result list does not duplicate history. Returns the number stored.
    """

    def __init__(self, *, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def handle(self, command: RecordServedRecommendationsCommand) -> Result[int]:
        if not command.recommendations:
            return Result.ok(0)
        async with self._uow_factory() as uow:
            return await uow.execute_in_transaction(lambda u: self._record(u, command))

    async def _record(self, uow: UnitOfWork, command: RecordServedRecommendationsCommand) -> int:
        if await uow.get_repository(PlayerRepository).get(command.player_id) is None:
            raise EntityNotFoundError("Player", command.player_id, ErrorMessages.PLAYER_NOT_FOUND)

        items = uow.get_repository(ItemFeatureRepository)
        for item_id in sorted({rec.item_id for rec in command.recommendations}):
            if await items.get(item_id) is None:
                raise EntityNotFoundError(
                    "Item", item_id, ErrorMessages.ITEM_NOT_FOUND.format(item_id=item_id)
                )

        repository = uow.get_repository(RecommendationRepository)
        existing = await repository.existing_ids(rec.id for rec in command.recommendations)

        stored = 0
        for rec in command.recommendations:
            if rec.id in existing:
                continue
            rec.record_generated()
            await repository.add(rec)
            stored += 1

        await uow.save_changes_and_dispatch_events()
        logger.info(LogTemplates.RECOMMENDATIONS_RECORDED, stored, command.player_id)
        return stored

"""
Create Recommendation Command

Command and handler for persisting a single recommendation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ...domain.catalog.repository import ItemFeatureRepository
from ...domain.players.repository import PlayerRepository
from ...domain.recommendations.entities import Recommendation
from ...domain.recommendations.repository import RecommendationRepository
from ...domain.shared.constants import ContextTags
from ...domain.shared.exceptions import EntityNotFoundError
from ...domain.shared.messages import ErrorMessages, LogTemplates
from ..cqrs import Command

if TYPE_CHECKING:
    from ...domain.shared.result import Result
    from ..interfaces.unit_of_work import UnitOfWork, UnitOfWorkFactory

logger = logging.getLogger(__name__)


@dataclass
class CreateRecommendationCommand(Command):
    """Command to record that ``item_id`` was recommended to ``player_id``."""

    player_id: int
    item_id: int
    algorithm: str
    score: float
    position: int = 1
    context: str = ContextTags.LOBBY
    session_id: str | None = None
    experiment_variant: str | None = None
    model_version: str | None = None
    features: dict[str, float] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.player_id <= 0:
            raise ValueError(ErrorMessages.INVALID_PLAYER_ID)
        if self.item_id <= 0:
            raise ValueError(ErrorMessages.INVALID_ITEM_ID)
        if not self.algorithm:
            raise ValueError(ErrorMessages.EMPTY_ALGORITHM)
        if not 0.0 <= self.score <= 1.0:
            raise ValueError(ErrorMessages.INVALID_SCORE)
        if self.position <= 0:
            raise ValueError(ErrorMessages.INVALID_POSITION)
        if not self.context:
            raise ValueError(ErrorMessages.EMPTY_CONTEXT)


class CreateRecommendationHandler:
    """Handler for CreateRecommendationCommand.

    The player and item must exist at creation time.
    """

    def __init__(self, *, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def handle(self, command: CreateRecommendationCommand) -> Result[Recommendation]:
        async with self._uow_factory() as uow:
            return await uow.execute_in_transaction(lambda u: self._create(u, command))

    async def _create(self, uow: UnitOfWork, command: CreateRecommendationCommand) -> Recommendation:
        if await uow.get_repository(PlayerRepository).get(command.player_id) is None:
            raise EntityNotFoundError("Player", command.player_id, ErrorMessages.PLAYER_NOT_FOUND)

        item = await uow.get_repository(ItemFeatureRepository).get(command.item_id)
        if item is None:
            raise EntityNotFoundError(
                "Item", command.item_id, ErrorMessages.ITEM_NOT_FOUND.format(item_id=command.item_id)
            )

        recommendation = Recommendation(
            player_id=command.player_id,
            item_id=command.item_id,
            algorithm=command.algorithm,
            score=command.score,
            position=command.position,
            context=command.context,
            category=item.category,
            provider=item.provider,
            session_id=command.session_id,
            experiment_variant=command.experiment_variant,
            model_version=command.model_version,
            features=dict(command.features),
            metadata=dict(command.metadata),
        )
        recommendation.record_generated()

        await uow.get_repository(RecommendationRepository).add(recommendation)
        await uow.save_changes_and_dispatch_events()

        logger.info(
            LogTemplates.RECOMMENDATION_CREATED,
            recommendation.id,
            recommendation.player_id,
            recommendation.item_id,
        )
        return recommendation

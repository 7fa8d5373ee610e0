"""
Track Interaction Command

Command and handler for recording a player's interaction with a served
recommendation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from ...domain.recommendations.entities import (
    InteractionType,
    Recommendation,
    RecommendationInteraction,
)
from ...domain.recommendations.repository import (
    InteractionRepository,
    RecommendationRepository,
)
from ...domain.shared.datetime_utils import utcnow
from ...domain.shared.events import InteractionRecorded
from ...domain.shared.exceptions import EntityNotFoundError, ValidationError
from ...domain.shared.messages import ErrorMessages, LogTemplates
from ..cqrs import Command

if TYPE_CHECKING:
    from ...domain.shared.result import Result
    from ..interfaces.unit_of_work import UnitOfWork, UnitOfWorkFactory

logger = logging.getLogger(__name__)


@dataclass
class TrackInteractionCommand(Command):
    """Command to record one interaction.

    ``interaction_type`` accepts an InteractionType or its string value.
    """

    recommendation_id: str
    player_id: int
    interaction_type: InteractionType | str
    value: float = 0.0
    session_id: str | None = None
    platform: str | None = None
    user_agent: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.recommendation_id:
            raise ValueError(ErrorMessages.EMPTY_RECOMMENDATION_ID)
        if self.player_id <= 0:
            raise ValueError(ErrorMessages.INVALID_PLAYER_ID)
        if self.value < 0:
            raise ValueError(ErrorMessages.INVALID_SCORE)
        # Raises ValueError for unknown types.
        self.interaction_type = InteractionType(self.interaction_type)


@dataclass
class InteractionOutcome:
    """Result of a track interaction command."""

    recommendation_id: str
    interaction_type: InteractionType
    recorded: bool
    interaction_id: str | None = None
    is_clicked: bool = False
    is_played: bool = False

    @property
    def is_duplicate(self) -> bool:
        return not self.recorded


class TrackInteractionHandler:
    """Handler for TrackInteractionCommand.

    At most one interaction row exists per (recommendation, session, type);
    a repeat is reported as a duplicate and writes nothing. ``click`` and
    ``play`` also set the matching flag on the recommendation, once.
    """

    def __init__(self, *, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def handle(self, command: TrackInteractionCommand) -> Result[InteractionOutcome]:
        async with self._uow_factory() as uow:
            return await uow.execute_in_transaction(lambda u: self._track(u, command))

    async def _track(self, uow: UnitOfWork, command: TrackInteractionCommand) -> InteractionOutcome:
        kind = InteractionType(command.interaction_type)
        session_id = command.session_id or ""

        recommendations = uow.get_repository(RecommendationRepository)
        interactions = uow.get_repository(InteractionRepository)

        recommendation = await recommendations.get(command.recommendation_id)
        if recommendation is None:
            raise EntityNotFoundError(
                "Recommendation",
                command.recommendation_id,
                ErrorMessages.RECOMMENDATION_NOT_FOUND.format(
                    recommendation_id=command.recommendation_id
                ),
            )
        if recommendation.player_id != command.player_id:
            raise ValidationError(
                ErrorMessages.RECOMMENDATION_PLAYER_MISMATCH.format(
                    recommendation_id=recommendation.id, player_id=command.player_id
                ),
                field="player_id",
            )

        if await interactions.exists(recommendation.id, session_id, kind):
            logger.info(LogTemplates.INTERACTION_DUPLICATE, kind.value, recommendation.id, session_id)
            return self._outcome(recommendation, kind, recorded=False)

        occurred_at = command.occurred_at or utcnow()
        interaction = RecommendationInteraction(
            recommendation_id=recommendation.id,
            player_id=recommendation.player_id,
            item_id=recommendation.item_id,
            interaction_type=kind,
            value=command.value,
            session_id=session_id,
            platform=command.platform,
            user_agent=command.user_agent,
            metadata=dict(command.metadata),
            occurred_at=occurred_at,
        )

        flag_changed = False
        if kind is InteractionType.CLICK:
            flag_changed = recommendation.mark_clicked(occurred_at, session_id)
        elif kind is InteractionType.PLAY:
            flag_changed = recommendation.mark_played(occurred_at, session_id)
        if flag_changed:
            await recommendations.update(recommendation)

        await interactions.add(interaction)
        recommendation.record_event(
            InteractionRecorded(
                recommendation_id=recommendation.id,
                player_id=recommendation.player_id,
                item_id=recommendation.item_id,
                interaction_type=kind.value,
                value=command.value,
            )
        )
        uow.track(recommendation)
        await uow.save_changes_and_dispatch_events()

        logger.info(LogTemplates.INTERACTION_RECORDED, kind.value, recommendation.id, session_id)
        return self._outcome(recommendation, kind, recorded=True, interaction_id=interaction.id)

    @staticmethod
    def _outcome(
        recommendation: Recommendation,
        kind: InteractionType,
        *,
        recorded: bool,
        interaction_id: str | None = None,
    ) -> InteractionOutcome:
        return InteractionOutcome(
            recommendation_id=recommendation.id,
            interaction_type=kind,
            recorded=recorded,
            interaction_id=interaction_id,
            is_clicked=recommendation.is_clicked,
            is_played=recommendation.is_played,
        )

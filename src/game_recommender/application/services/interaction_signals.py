"""Co-play neighbourhood signals for collaborative filtering."""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import TYPE_CHECKING

from ...domain.recommendations.repository import RecommendationRepository
from ...domain.recommendations.specifications import (
    clicked_recommendations,
    played_recommendations,
    recommendations_for_items,
    recommendations_for_player,
    recommendations_for_players,
)

if TYPE_CHECKING:
    from ..interfaces.unit_of_work import UnitOfWorkFactory


class InteractionSignalService:
    """Scores items by how often players with overlapping history engaged with them.

    A neighbour's weight is the number of items it shares with the player.
    Items the player already engaged with are left out. Scores are scaled so
    the strongest item gets 1.0.
    """

    def __init__(self, *, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def co_play_scores(self, player_id: int) -> dict[int, float]:
        engaged = clicked_recommendations() | played_recommendations()
        async with self._uow_factory() as uow:
            repository = uow.get_repository(RecommendationRepository)
            own = {
                rec.item_id
                for rec in await repository.find(recommendations_for_player(player_id) & engaged)
            }
            if not own:
                return {}
            shared = await repository.find(recommendations_for_items(own) & engaged)
            neighbours = {rec.player_id for rec in shared} - {player_id}
            if not neighbours:
                return {}
            recs = await repository.find(recommendations_for_players(neighbours) & engaged)

        history: dict[int, set[int]] = defaultdict(set)
        for rec in recs:
            history[rec.player_id].add(rec.item_id)

        totals: Counter[int] = Counter()
        for items in history.values():
            overlap = len(own & items)
            if overlap == 0:
                continue
            for item_id in items - own:
                totals[item_id] += overlap

        if not totals:
            return {}
        strongest = max(totals.values())
        return {item_id: weight / strongest for item_id, weight in totals.items()}

"""SQLite implementation of the interaction repository."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from game_recommender.domain.recommendations.entities import (
    InteractionType,
    RecommendationInteraction,
)
from game_recommender.domain.recommendations.repository import InteractionRepository
from game_recommender.domain.shared.constants import DatabaseTables
from game_recommender.domain.shared.exceptions import InvalidOperationError

from ..errors import sqlite_errors
from .base import SQLiteRepository


class SQLiteInteractionRepository(
    SQLiteRepository[RecommendationInteraction, str], InteractionRepository
):
    """Interaction rows. A unique index enforces the (recommendation, session, type) key."""

    table = DatabaseTables.INTERACTIONS
    key_column = "id"
    entity_type = RecommendationInteraction
    json_columns = frozenset({"metadata"})

    async def exists(
        self,
        recommendation_id: str,
        session_id: str,
        interaction_type: InteractionType,
    ) -> bool:
        with sqlite_errors():
            cursor = await self._conn.execute(
                f"""
                SELECT 1 FROM {self.table}
                WHERE recommendation_id = ? AND session_id = ? AND interaction_type = ?
                LIMIT 1
                """,
                (recommendation_id, session_id, InteractionType(interaction_type).value),
            )
            row = await cursor.fetchone()
        return row is not None

    async def for_recommendations(
        self, recommendation_ids: Iterable[str]
    ) -> dict[str, list[RecommendationInteraction]]:
        ids = list(dict.fromkeys(recommendation_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        found = await self._fetch(
            f"""
            SELECT * FROM {self.table}
            WHERE recommendation_id IN ({placeholders})
            ORDER BY occurred_at
            """,
            tuple(ids),
        )
        grouped: dict[str, list[RecommendationInteraction]] = defaultdict(list)
        for interaction in found:
            grouped[interaction.recommendation_id].append(interaction)
        return dict(grouped)

    async def update(self, entity: RecommendationInteraction) -> None:
        raise InvalidOperationError("update", "immutable", "Interactions cannot be modified")

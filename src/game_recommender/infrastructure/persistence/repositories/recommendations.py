"""SQLite implementation of the recommendation repository."""

from __future__ import annotations

from collections.abc import Iterable

from game_recommender.domain.recommendations.entities import Recommendation
from game_recommender.domain.recommendations.repository import (
    InteractionRepository,
    RecommendationRepository,
)
from game_recommender.domain.recommendations.specifications import INCLUDE_INTERACTIONS
from game_recommender.domain.shared.constants import DatabaseTables

from ..errors import sqlite_errors
from .base import SQLiteRepository


class SQLiteRecommendationRepository(
    SQLiteRepository[Recommendation, str], RecommendationRepository
):
    table = DatabaseTables.RECOMMENDATIONS
    key_column = "id"
    entity_type = Recommendation
    json_columns = frozenset({"features", "metadata"})
    versioned = True

    async def existing_ids(self, ids: Iterable[str]) -> set[str]:
        wanted = list(dict.fromkeys(ids))
        if not wanted:
            return set()
        placeholders = ", ".join("?" for _ in wanted)
        with sqlite_errors():
            cursor = await self._conn.execute(
                f"SELECT id FROM {self.table} WHERE id IN ({placeholders})", tuple(wanted)
            )
            rows = await cursor.fetchall()
        return {row[0] for row in rows}

    async def _resolve_includes(
        self, entities: list[Recommendation], includes: frozenset[str]
    ) -> None:
        if INCLUDE_INTERACTIONS not in includes or not entities:
            return
        interactions = self._uow.get_repository(InteractionRepository)
        grouped = await interactions.for_recommendations(rec.id for rec in entities)
        for rec in entities:
            rec.interactions = grouped.get(rec.id, [])

"""SQLite implementation of the player feature repository."""

from __future__ import annotations

from game_recommender.domain.players.entities import PlayerFeatures
from game_recommender.domain.players.repository import PlayerFeatureRepository
from game_recommender.domain.shared.constants import DatabaseTables

from .base import SQLiteRepository


class SQLitePlayerFeatureRepository(
    SQLiteRepository[PlayerFeatures, int], PlayerFeatureRepository
):
    table = DatabaseTables.PLAYER_FEATURES
    key_column = "player_id"
    entity_type = PlayerFeatures
    json_columns = frozenset({"preferred_categories", "preferred_providers", "custom_features"})

    async def upsert(self, features: PlayerFeatures) -> None:
        self._stage_insert(features, replace=True)

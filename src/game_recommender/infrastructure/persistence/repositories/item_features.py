"""SQLite implementation of the item feature repository."""

from __future__ import annotations

from game_recommender.domain.catalog.entities import ItemFeatures
from game_recommender.domain.catalog.repository import ItemFeatureRepository
from game_recommender.domain.shared.constants import DatabaseTables

from .base import SQLiteRepository


class SQLiteItemFeatureRepository(SQLiteRepository[ItemFeatures, int], ItemFeatureRepository):
    table = DatabaseTables.ITEM_FEATURES
    key_column = "item_id"
    entity_type = ItemFeatures
    json_columns = frozenset({"features"})

    async def list_active(self) -> list[ItemFeatures]:
        return await self._fetch(
            f"SELECT * FROM {self.table} WHERE is_active = 1 ORDER BY item_id"
        )

    async def upsert(self, features: ItemFeatures) -> None:
        self._stage_insert(features, replace=True)

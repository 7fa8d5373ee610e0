"""SQLite implementation of the item override settings repository."""

from __future__ import annotations

from game_recommender.domain.catalog.entities import ItemOverrideSettings
from game_recommender.domain.catalog.repository import ItemOverrideRepository
from game_recommender.domain.shared.constants import DatabaseTables

from .base import SQLiteRepository


class SQLiteItemOverrideRepository(
    SQLiteRepository[ItemOverrideSettings, int], ItemOverrideRepository
):
    """Override rows; updates fail with ConcurrencyError when the stored version moved."""

    table = DatabaseTables.ITEM_OVERRIDES
    key_column = "item_id"
    entity_type = ItemOverrideSettings
    json_columns = frozenset({"tags", "settings"})
    versioned = True

    async def list_all(self) -> list[ItemOverrideSettings]:
        return await self._fetch(f"SELECT * FROM {self.table} ORDER BY item_id")

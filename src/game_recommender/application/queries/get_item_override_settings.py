"""Query for one item's override settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from ...domain.catalog.entities import ItemOverrideSettings
from ...domain.catalog.repository import ItemOverrideRepository
from ...domain.shared.constants import CacheKeys
from ...domain.shared.result import ErrorCode, Result
from ...domain.shared.types import ItemIdField
from ..cqrs import Query

if TYPE_CHECKING:
    from ..interfaces.cache import Cache
    from ..interfaces.unit_of_work import UnitOfWorkFactory


class GetItemOverrideSettingsQuery(BaseModel, Query):
    model_config = ConfigDict(frozen=True)

    item_id: ItemIdField


class GetItemOverrideSettingsHandler:

    def __init__(self, *, uow_factory: UnitOfWorkFactory, cache: Cache, ttl_seconds: float) -> None:
        self._uow_factory = uow_factory
        self._cache = cache
        self._ttl = ttl_seconds

    async def handle(self, query: GetItemOverrideSettingsQuery) -> Result[ItemOverrideSettings]:
        key = CacheKeys.ITEM_OVERRIDE.format(item_id=query.item_id)

        async def load() -> ItemOverrideSettings | None:
            async with self._uow_factory() as uow:
                return await uow.get_repository(ItemOverrideRepository).get(query.item_id)

        settings = await self._cache.get_or_set(key, self._ttl, load)
        if settings is None:
            return Result.fail(
                ErrorCode.NOT_FOUND, f"No override settings for item {query.item_id}"
            )
        return Result.ok(settings.model_copy(deep=True))

"""SQLite implementation of the unit of work."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

import aiosqlite

from game_recommender.application.interfaces.unit_of_work import UnitOfWork, UnitOfWorkFactory
from game_recommender.domain.catalog.repository import (
    ItemFeatureRepository,
    ItemOverrideRepository,
)
from game_recommender.domain.players.repository import (
    PlayerFeatureRepository,
    PlayerRepository,
)
from game_recommender.domain.recommendations.repository import (
    InteractionRepository,
    RecommendationRepository,
)
from game_recommender.domain.shared.exceptions import InvalidOperationError
from game_recommender.domain.shared.messages import ErrorMessages

from .errors import sqlite_errors
from .repositories.interactions import SQLiteInteractionRepository
from .repositories.item_features import SQLiteItemFeatureRepository
from .repositories.item_overrides import SQLiteItemOverrideRepository
from .repositories.player_features import SQLitePlayerFeatureRepository
from .repositories.players import SQLitePlayerRepository
from .repositories.recommendations import SQLiteRecommendationRepository

if TYPE_CHECKING:
    from game_recommender.domain.shared.events import EventBus

    from .database import Database

logger = logging.getLogger(__name__)

R = TypeVar("R")

_REPOSITORIES: dict[type[Any], type[Any]] = {
    PlayerRepository: SQLitePlayerRepository,
    PlayerFeatureRepository: SQLitePlayerFeatureRepository,
    ItemFeatureRepository: SQLiteItemFeatureRepository,
    ItemOverrideRepository: SQLiteItemOverrideRepository,
    RecommendationRepository: SQLiteRecommendationRepository,
    InteractionRepository: SQLiteInteractionRepository,
}


class SQLiteUnitOfWork(UnitOfWork):
    """Unit of work over one dedicated aiosqlite connection.

    The connection runs in autocommit mode and transactions are opened with
    ``BEGIN IMMEDIATE``, so concurrent writers queue on the database lock
    instead of failing at commit time.
    """

    def __init__(self, database: Database, event_bus: EventBus | None = None) -> None:
        super().__init__(event_bus)
        self._database = database
        self._conn: aiosqlite.Connection | None = None

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise InvalidOperationError(
                "connection", self.state.value, ErrorMessages.UNIT_OF_WORK_NOT_ENTERED
            )
        return self._conn

    async def _open(self) -> None:
        if self._conn is None:
            with sqlite_errors():
                self._conn = await self._database.connect(autocommit=True)

    async def _close(self) -> None:
        if self._conn is not None:
            try:
                await self._conn.close()
            finally:
                self._conn = None

    async def _begin(self) -> None:
        with sqlite_errors():
            await self.connection.execute("BEGIN IMMEDIATE")

    async def _commit(self) -> None:
        with sqlite_errors():
            await self.connection.execute("COMMIT")

    async def _rollback(self) -> None:
        conn = self.connection
        if not conn.in_transaction:
            return
        with sqlite_errors():
            await conn.execute("ROLLBACK")

    async def _flush(self) -> int:
        with sqlite_errors():
            return await super()._flush()

    def _create_repository(self, repository_type: type[R]) -> R:
        implementation = _REPOSITORIES.get(repository_type)
        if implementation is None:
            raise InvalidOperationError(
                "get_repository",
                self.state.value,
                ErrorMessages.UNKNOWN_REPOSITORY.format(repository=repository_type.__name__),
            )
        return implementation(self)


def sqlite_uow_factory(database: Database, event_bus: EventBus | None = None) -> UnitOfWorkFactory:
    """Factory producing a fresh unit of work per call."""

    def create() -> UnitOfWork:
        return SQLiteUnitOfWork(database, event_bus)

    return create

"""SQLite persistence: database, unit of work and repositories."""

from game_recommender.infrastructure.persistence.database import Database
from game_recommender.infrastructure.persistence.unit_of_work import (
    SQLiteUnitOfWork,
    sqlite_uow_factory,
)

__all__ = [
    "Database",
    "SQLiteUnitOfWork",
    "sqlite_uow_factory",
]

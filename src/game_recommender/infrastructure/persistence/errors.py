"""Translation of SQLite driver errors into domain errors."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import aiosqlite

from game_recommender.domain.shared.exceptions import (
    ConcurrencyError,
    DomainError,
    TransientInfrastructureError,
)
from game_recommender.domain.shared.messages import ErrorMessages

_RESOURCE = "database"


def translate_sqlite_error(exc: aiosqlite.Error) -> DomainError | None:
    """Map a driver error to a domain error, or None when it has no mapping."""
    if isinstance(exc, aiosqlite.IntegrityError):
        return ConcurrencyError(_RESOURCE, str(exc))
    if isinstance(exc, aiosqlite.OperationalError):
        text = str(exc).lower()
        if "locked" in text or "busy" in text:
            return ConcurrencyError(_RESOURCE, ErrorMessages.DATABASE_BUSY)
        return TransientInfrastructureError(_RESOURCE, str(exc))
    return None


@contextmanager
def sqlite_errors() -> Iterator[None]:
    """Re-raise integrity and operational errors as domain errors."""
    try:
        yield
    except aiosqlite.Error as exc:
        translated = translate_sqlite_error(exc)
        if translated is None:
            raise
        raise translated from exc

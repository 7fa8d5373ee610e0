"""Shared row mapping and staging for the SQLite repositories."""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel

from game_recommender.domain.shared.events import AggregateRoot
from game_recommender.domain.shared.exceptions import ConcurrencyError
from game_recommender.domain.shared.messages import ErrorMessages
from game_recommender.domain.shared.specification import ColumnHint, HintClause, Specification

from ..errors import sqlite_errors

if TYPE_CHECKING:
    import aiosqlite

    from ..unit_of_work import SQLiteUnitOfWork

T = TypeVar("T", bound=BaseModel)
K = TypeVar("K")

# Timestamps are ISO text; julianday() compares them as instants. The bound is
# widened by one second to absorb float rounding, the predicate is exact.
_SLACK_DAYS = 1 / 86400


def _hint_sql(hint: ColumnHint) -> tuple[str, tuple[Any, ...]]:
    column, value = hint.column, hint.value
    if isinstance(value, bool):
        value = int(value)
    if hint.operator == "=":
        return f"{column} = ?", (value,)
    if hint.operator == "ieq":
        return f"{column} = ? COLLATE NOCASE", (value,)
    if hint.operator == "in":
        if not value:
            return "0", ()
        return f"{column} IN ({', '.join('?' for _ in value)})", tuple(value)
    if hint.operator in (">=", "<"):
        if isinstance(value, datetime):
            slack = "-" if hint.operator == ">=" else "+"
            return (
                f"julianday({column}) {hint.operator} julianday(?) {slack} {_SLACK_DAYS!r}",
                (value.isoformat(),),
            )
        return f"{column} {hint.operator} ?", (value,)
    raise ValueError(f"Unsupported column hint operator: {hint.operator!r}")


def where_clause(clauses: Sequence[HintClause]) -> tuple[str, tuple[Any, ...]]:
    """Render specification hints as a SQL ``WHERE`` clause.

    Returns an empty clause when there is nothing to push down.
    """
    parts: list[str] = []
    parameters: list[Any] = []
    for clause in clauses:
        rendered = [_hint_sql(hint) for hint in clause]
        parts.append("(" + " OR ".join(sql for sql, _ in rendered) + ")")
        for _, values in rendered:
            parameters.extend(values)
    if not parts:
        return "", ()
    return " WHERE " + " AND ".join(parts), tuple(parameters)


class SQLiteRepository(Generic[T, K]):
    """Table-per-entity repository evaluated against a unit of work's connection.

    Subclasses name their table, key column and entity model. Columns listed
    in ``json_columns`` hold JSON text. When ``versioned`` is set, updates
    are guarded by the ``version`` column and bump it on success.

    Specification hints narrow the rows loaded; predicates, includes,
    ordering and paging are then applied in memory.
    """

    table: ClassVar[str]
    key_column: ClassVar[str]
    entity_type: ClassVar[type[BaseModel]]
    json_columns: ClassVar[frozenset[str]] = frozenset()
    versioned: ClassVar[bool] = False

    def __init__(self, uow: SQLiteUnitOfWork) -> None:
        self._uow = uow

    @property
    def _conn(self) -> aiosqlite.Connection:
        return self._uow.connection

    # ---- Row mapping ----

    def _to_row(self, entity: T) -> dict[str, Any]:
        row = entity.model_dump(mode="json")
        for column in self.json_columns:
            row[column] = json.dumps(row[column], sort_keys=True)
        return row

    def _from_row(self, row: aiosqlite.Row | dict[str, Any]) -> T:
        data = dict(row)
        for column in self.json_columns:
            if data.get(column) is not None:
                data[column] = json.loads(data[column])
        return self.entity_type.model_validate(data)  # type: ignore[return-value]

    # ---- Reads ----

    async def _fetch(self, sql: str, parameters: tuple[Any, ...] = ()) -> list[T]:
        with sqlite_errors():
            cursor = await self._conn.execute(sql, parameters)
            rows = await cursor.fetchall()
        return [self._from_row(row) for row in rows]

    async def get(self, key: K) -> T | None:
        found = await self._fetch(
            f"SELECT * FROM {self.table} WHERE {self.key_column} = ?", (key,)
        )
        return found[0] if found else None

    async def _candidates(self, spec: Specification[T]) -> list[T]:
        where, parameters = where_clause(spec.hints)
        return await self._fetch(f"SELECT * FROM {self.table}{where}", parameters)

    async def _resolve_includes(self, entities: list[T], includes: frozenset[str]) -> None:
        return None

    async def find(self, spec: Specification[T]) -> list[T]:
        matched = spec.filter(await self._candidates(spec))
        if spec.includes:
            await self._resolve_includes(matched, spec.includes)
        return spec.page(spec.sort(matched))

    async def count(self, spec: Specification[T] | None = None) -> int:
        if spec is None:
            with sqlite_errors():
                cursor = await self._conn.execute(f"SELECT COUNT(*) FROM {self.table}")
                row = await cursor.fetchone()
            return row[0] if row else 0
        return len(spec.without_paging().filter(await self._candidates(spec)))

    # ---- Staged writes ----

    def _stage(self, sql: str, parameters: Callable[[], tuple[Any, ...]], entity: T) -> None:
        # Parameters are read at flush time so later mutations are written.
        async def write() -> int:
            cursor = await self._conn.execute(sql, parameters())
            return cursor.rowcount

        self._uow.stage(write, entity if isinstance(entity, AggregateRoot) else None)

    def _insert_sql(self, columns: list[str], *, replace: bool = False) -> str:
        verb = "INSERT OR REPLACE" if replace else "INSERT"
        placeholders = ", ".join("?" for _ in columns)
        return f"{verb} INTO {self.table} ({', '.join(columns)}) VALUES ({placeholders})"

    async def add(self, entity: T) -> None:
        self._stage_insert(entity, replace=False)

    async def upsert(self, entity: T) -> None:
        self._stage_insert(entity, replace=True)

    def _stage_insert(self, entity: T, *, replace: bool) -> None:
        columns = list(self._to_row(entity))
        sql = self._insert_sql(columns, replace=replace)

        def parameters() -> tuple[Any, ...]:
            row = self._to_row(entity)
            return tuple(row[c] for c in columns)

        self._stage(sql, parameters, entity)

    async def update(self, entity: T) -> None:
        columns = [c for c in self._to_row(entity) if c not in (self.key_column, "version")]
        assignments = ", ".join(f"{c} = ?" for c in columns)
        key = getattr(entity, self.key_column)

        if not self.versioned:
            sql = f"UPDATE {self.table} SET {assignments} WHERE {self.key_column} = ?"

            def parameters() -> tuple[Any, ...]:
                row = self._to_row(entity)
                return (*(row[c] for c in columns), key)

            self._stage(sql, parameters, entity)
            return

        sql = (
            f"UPDATE {self.table} SET {assignments}, version = version + 1 "
            f"WHERE {self.key_column} = ? AND version = ?"
        )

        async def write() -> int:
            row = self._to_row(entity)
            expected = entity.version  # type: ignore[attr-defined]
            cursor = await self._conn.execute(
                sql, (*(row[c] for c in columns), key, expected)
            )
            if cursor.rowcount == 0:
                raise ConcurrencyError(
                    self.entity_type.__name__,
                    ErrorMessages.STALE_VERSION.format(
                        entity=self.entity_type.__name__, identifier=key
                    ),
                )
            entity.version = expected + 1  # type: ignore[attr-defined]
            return cursor.rowcount

        self._uow.stage(write, entity if isinstance(entity, AggregateRoot) else None)

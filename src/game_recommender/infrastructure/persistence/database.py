"""SQLite database with per-operation connections and WAL mode."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiosqlite

from game_recommender.domain.shared.constants import DatabaseTables, SQLPragmas
from game_recommender.domain.shared.messages import LogTemplates

if TYPE_CHECKING:
    from ...config.settings import DatabaseSettings

logger = logging.getLogger(__name__)

_SHARED_MEMORY_URI = "file:game-recommender?mode=memory&cache=shared"


class Database:
    def __init__(self, url: str, settings: DatabaseSettings | None = None) -> None:
        if url.startswith("sqlite:///"):
            self._db_path = url[10:]  # Remove "sqlite:///"
        else:
            self._db_path = url

        self._initialized = False
        self._keepalive_conn: aiosqlite.Connection | None = None
        self._busy_timeout = settings.busy_timeout_ms if settings else 5000
        self._connection_timeout = settings.connection_timeout_s if settings else 10

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def is_memory(self) -> bool:
        return self._db_path == ":memory:"

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        if self._initialized:
            return

        if not self.is_memory:
            db_dir = Path(self._db_path).parent
            db_dir.mkdir(parents=True, exist_ok=True)

        # Keep one connection alive for in-memory DBs; otherwise the shared
        # in-memory DB is destroyed once the last connection closes.
        if self.is_memory and self._keepalive_conn is None:
            self._keepalive_conn = await self.connect()

        conn = self._keepalive_conn
        if conn is None:
            async with self.transaction() as conn2:
                await self._ensure_schema(conn2)
        else:
            await self._ensure_schema(conn)
            await conn.commit()

        self._initialized = True
        logger.info(LogTemplates.DATABASE_INITIALIZED, self._db_path)

    async def _ensure_schema(self, conn: aiosqlite.Connection) -> None:
        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {DatabaseTables.PLAYERS} (
                player_id INTEGER PRIMARY KEY,
                username TEXT NOT NULL DEFAULT '',
                country TEXT,
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL
            )
            """
        )

        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {DatabaseTables.PLAYER_FEATURES} (
                player_id INTEGER PRIMARY KEY,
                age INTEGER,
                country TEXT,
                risk_level TEXT NOT NULL DEFAULT 'unknown',
                vip_level INTEGER NOT NULL DEFAULT 0,
                total_games_played INTEGER NOT NULL DEFAULT 0,
                session_count INTEGER NOT NULL DEFAULT 0,
                average_session_minutes REAL NOT NULL DEFAULT 0,
                days_since_last_play INTEGER,
                last_play_date TEXT,
                total_deposits REAL NOT NULL DEFAULT 0,
                total_bets REAL NOT NULL DEFAULT 0,
                total_wins REAL NOT NULL DEFAULT 0,
                average_bet_size REAL NOT NULL DEFAULT 0,
                preferred_categories TEXT NOT NULL DEFAULT '[]',
                preferred_providers TEXT NOT NULL DEFAULT '[]',
                preferred_volatility TEXT,
                preferred_rtp REAL,
                play_style TEXT NOT NULL DEFAULT 'casual',
                win_rate REAL NOT NULL DEFAULT 0,
                consecutive_losses INTEGER NOT NULL DEFAULT 0,
                is_new_player INTEGER NOT NULL DEFAULT 0,
                custom_features TEXT NOT NULL DEFAULT '{{}}',
                updated_at TEXT NOT NULL
            )
            """
        )

        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {DatabaseTables.ITEM_FEATURES} (
                item_id INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                category TEXT NOT NULL,
                provider TEXT NOT NULL,
                volatility TEXT NOT NULL DEFAULT 'medium',
                average_rtp REAL NOT NULL DEFAULT 0.96,
                min_bet REAL NOT NULL DEFAULT 0.1,
                max_bet REAL NOT NULL DEFAULT 100,
                popularity_score REAL NOT NULL DEFAULT 0,
                revenue_score REAL NOT NULL DEFAULT 0,
                is_mobile INTEGER NOT NULL DEFAULT 1,
                is_new INTEGER NOT NULL DEFAULT 0,
                is_active INTEGER NOT NULL DEFAULT 1,
                features TEXT NOT NULL DEFAULT '{{}}',
                updated_at TEXT NOT NULL
            )
            """
        )
        await conn.execute(
            f"CREATE INDEX IF NOT EXISTS idx_item_features_active ON {DatabaseTables.ITEM_FEATURES}(is_active)"
        )

        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {DatabaseTables.ITEM_OVERRIDES} (
                item_id INTEGER PRIMARY KEY,
                is_active INTEGER,
                hide_in_lobby INTEGER,
                display_order INTEGER,
                min_bet REAL,
                max_bet REAL,
                is_mobile INTEGER,
                is_desktop INTEGER,
                is_featured INTEGER NOT NULL DEFAULT 0,
                feature_priority INTEGER NOT NULL DEFAULT 0,
                tags TEXT NOT NULL DEFAULT '[]',
                notes TEXT,
                settings TEXT NOT NULL DEFAULT '{{}}',
                updated_by TEXT,
                updated_at TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1
            )
            """
        )

        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {DatabaseTables.RECOMMENDATIONS} (
                id TEXT PRIMARY KEY,
                player_id INTEGER NOT NULL,
                item_id INTEGER NOT NULL,
                algorithm TEXT NOT NULL,
                score REAL NOT NULL,
                position INTEGER NOT NULL,
                context TEXT NOT NULL,
                category TEXT,
                provider TEXT,
                is_clicked INTEGER NOT NULL DEFAULT 0,
                clicked_at TEXT,
                is_played INTEGER NOT NULL DEFAULT 0,
                played_at TEXT,
                session_id TEXT,
                experiment_variant TEXT,
                model_version TEXT,
                features TEXT NOT NULL DEFAULT '{{}}',
                metadata TEXT NOT NULL DEFAULT '{{}}',
                created_at TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1,
                FOREIGN KEY(player_id) REFERENCES {DatabaseTables.PLAYERS}(player_id)
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_recommendations_player_created "
            f"ON {DatabaseTables.RECOMMENDATIONS}(player_id, created_at)"
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_recommendations_algorithm_created "
            f"ON {DatabaseTables.RECOMMENDATIONS}(algorithm COLLATE NOCASE, created_at)"
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_recommendations_item "
            f"ON {DatabaseTables.RECOMMENDATIONS}(item_id)"
        )

        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {DatabaseTables.INTERACTIONS} (
                id TEXT PRIMARY KEY,
                recommendation_id TEXT NOT NULL,
                player_id INTEGER NOT NULL,
                item_id INTEGER NOT NULL,
                interaction_type TEXT NOT NULL,
                value REAL NOT NULL DEFAULT 0,
                session_id TEXT NOT NULL DEFAULT '',
                platform TEXT,
                user_agent TEXT,
                metadata TEXT NOT NULL DEFAULT '{{}}',
                occurred_at TEXT NOT NULL,
                FOREIGN KEY(recommendation_id)
                    REFERENCES {DatabaseTables.RECOMMENDATIONS}(id) ON DELETE CASCADE
            )
            """
        )
        # One interaction of each type per recommendation and session.
        await conn.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_interactions_dedup "
            f"ON {DatabaseTables.INTERACTIONS}(recommendation_id, session_id, interaction_type)"
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_interactions_player "
            f"ON {DatabaseTables.INTERACTIONS}(player_id, occurred_at)"
        )

        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {DatabaseTables.EXPERIMENTS} (
                name TEXT PRIMARY KEY,
                context TEXT NOT NULL,
                variants TEXT NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1,
                start_at TEXT,
                end_at TEXT,
                created_at TEXT NOT NULL
            )
            """
        )
        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {DatabaseTables.EXPERIMENT_ASSIGNMENTS} (
                experiment_name TEXT NOT NULL,
                player_id INTEGER NOT NULL,
                variant_name TEXT NOT NULL,
                assigned_at TEXT NOT NULL,
                PRIMARY KEY (experiment_name, player_id),
                FOREIGN KEY(experiment_name)
                    REFERENCES {DatabaseTables.EXPERIMENTS}(name) ON DELETE CASCADE
            )
            """
        )

        await self._ensure_column(conn, DatabaseTables.RECOMMENDATIONS, "model_version", "TEXT")
        await self._ensure_column(
            conn, DatabaseTables.RECOMMENDATIONS, "version", "INTEGER NOT NULL DEFAULT 1"
        )
        await self._ensure_column(
            conn, DatabaseTables.ITEM_OVERRIDES, "version", "INTEGER NOT NULL DEFAULT 1"
        )

    async def _ensure_column(
        self,
        conn: aiosqlite.Connection,
        table: str,
        column: str,
        column_type_sql: str,
    ) -> None:
        rows = await conn.execute_fetchall(SQLPragmas.TABLE_INFO.format(table=table))
        existing_columns = {r[1] for r in rows}
        if column in existing_columns:
            return

        await conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_type_sql}")
        logger.info(LogTemplates.TABLE_MIGRATED, table, column)

    async def connect(self, *, autocommit: bool = False) -> aiosqlite.Connection:
        """Open a configured connection.

        With ``autocommit`` the sqlite3 driver never opens implicit
        transactions, so the caller issues BEGIN/COMMIT itself.
        """
        # SQLite ":memory:" is per-connection, so use a shared URI to allow
        # multiple connections to see the same in-memory database.
        if self.is_memory:
            db_path = _SHARED_MEMORY_URI
            uri = True
        else:
            db_path = self._db_path
            uri = False

        options: dict[str, Any] = {}
        if autocommit:
            options["isolation_level"] = None

        conn = await aiosqlite.connect(
            db_path,
            # detect_types=0 because our ISO 8601 timestamps use 'T' separator,
            # but SQLite's built-in converter expects space-separated format.
            detect_types=0,
            uri=uri,
            timeout=self._connection_timeout,
            **options,
        )
        conn.row_factory = aiosqlite.Row

        # WAL improves concurrent read behavior and reduces writer blocking.
        await conn.execute(SQLPragmas.JOURNAL_MODE_WAL)
        await conn.execute(SQLPragmas.FOREIGN_KEYS_ON)
        await conn.execute(SQLPragmas.BUSY_TIMEOUT.format(timeout=self._busy_timeout))

        return conn

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[aiosqlite.Connection, None]:
        conn = await self.connect()
        try:
            yield conn
        except Exception:
            try:
                await conn.rollback()
            except aiosqlite.Error as exc:
                logger.debug(LogTemplates.ROLLBACK_FAILED, "connection", exc)
            raise
        finally:
            await conn.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[aiosqlite.Connection, None]:
        """Get a transaction context manager with auto-commit/rollback."""
        async with self.connection() as conn:
            try:
                yield conn
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise

    async def execute(
        self, sql: str, parameters: tuple[Any, ...] | None = None
    ) -> int:
        """Execute a SQL statement in its own transaction and return the affected row count.

        Note:
            If you need multiple statements to commit/rollback together, use
            `transaction()` and the returned connection directly.
        """
        async with self.transaction() as conn:
            if parameters is not None:
                cursor = await conn.execute(sql, parameters)
            else:
                cursor = await conn.execute(sql)
            return cursor.rowcount

    async def fetch_one(
        self, sql: str, parameters: tuple[Any, ...] | None = None
    ) -> dict[str, Any] | None:
        """Fetch a single row."""
        async with self.connection() as conn:
            if parameters is not None:
                cursor = await conn.execute(sql, parameters)
            else:
                cursor = await conn.execute(sql)
            row = await cursor.fetchone()
            return dict(row) if row else None

    async def fetch_all(
        self, sql: str, parameters: tuple[Any, ...] | None = None
    ) -> list[dict[str, Any]]:
        """Fetch all rows."""
        async with self.connection() as conn:
            if parameters is not None:
                cursor = await conn.execute(sql, parameters)
            else:
                cursor = await conn.execute(sql)
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def close(self) -> None:
        """Close the database manager.

        For file-based DBs this is mostly a no-op. For in-memory DBs we also
        close the keepalive connection.
        """
        if self._keepalive_conn is not None:
            try:
                await self._keepalive_conn.close()
            finally:
                self._keepalive_conn = None
        self._initialized = False
        logger.info(LogTemplates.DATABASE_CLOSED)

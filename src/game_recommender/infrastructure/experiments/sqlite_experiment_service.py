"""SQLite-backed experiment definitions and sticky variant assignment."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, model_validator

from game_recommender.application.interfaces.experiments import (
    ExperimentService,
    ExperimentVariant,
)
from game_recommender.domain.shared.constants import DatabaseTables
from game_recommender.domain.shared.datetime_utils import from_iso, to_iso, utcnow
from game_recommender.domain.shared.messages import ErrorMessages, LogTemplates
from game_recommender.domain.shared.types import (
    AlgorithmNameStr,
    ContextTagStr,
    NonEmptyStr,
    NonNegativeFloat,
    UtcDatetimeField,
)

from ..persistence.errors import sqlite_errors
from .hash_ring import ConsistentHashRing

if TYPE_CHECKING:
    from ..persistence.database import Database

logger = logging.getLogger(__name__)


class VariantAllocation(BaseModel):
    """One arm of an experiment and its share of traffic."""

    model_config = ConfigDict(frozen=True)

    name: NonEmptyStr
    weight: NonNegativeFloat = 1.0
    algorithm: AlgorithmNameStr | None = None


class ExperimentDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: NonEmptyStr
    context: ContextTagStr
    variants: tuple[VariantAllocation, ...] = Field(min_length=1)
    is_active: bool = True
    start_at: UtcDatetimeField | None = None
    end_at: UtcDatetimeField | None = None
    created_at: UtcDatetimeField = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_window(self) -> ExperimentDefinition:
        if self.start_at and self.end_at and self.end_at <= self.start_at:
            raise ValueError(ErrorMessages.INVALID_WINDOW)
        return self

    def is_running(self, at: datetime) -> bool:
        if not self.is_active:
            return False
        if self.start_at is not None and at < self.start_at:
            return False
        if self.end_at is not None and at >= self.end_at:
            return False
        return True

    def variant(self, name: str) -> VariantAllocation | None:
        return next((v for v in self.variants if v.name == name), None)

    def ring(self) -> ConsistentHashRing:
        return ConsistentHashRing({v.name: v.weight for v in self.variants})


class SQLiteExperimentService(ExperimentService):
    """Experiments stored next to the recommendation history.

    A player's first lookup routes ``"{experiment}:{player}"`` through the
    experiment's hash ring and persists the result; later lookups return the
    stored assignment even if the weights have since changed.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_experiment(self, definition: ExperimentDefinition) -> None:
        with sqlite_errors():
            await self._db.execute(
                f"""
                INSERT INTO {DatabaseTables.EXPERIMENTS} (
                    name, context, variants, is_active, start_at, end_at, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    context = excluded.context,
                    variants = excluded.variants,
                    is_active = excluded.is_active,
                    start_at = excluded.start_at,
                    end_at = excluded.end_at
                """,
                (
                    definition.name,
                    definition.context,
                    json.dumps([v.model_dump() for v in definition.variants]),
                    int(definition.is_active),
                    to_iso(definition.start_at),
                    to_iso(definition.end_at),
                    to_iso(definition.created_at),
                ),
            )
        logger.info(LogTemplates.EXPERIMENT_CREATED, definition.name, definition.context)

    async def get_experiment(self, name: str) -> ExperimentDefinition | None:
        with sqlite_errors():
            row = await self._db.fetch_one(
                f"SELECT * FROM {DatabaseTables.EXPERIMENTS} WHERE name = ?", (name,)
            )
        return self._row_to_definition(row) if row else None

    async def find_active_experiment(
        self, context: str, *, at: datetime | None = None
    ) -> str | None:
        moment = at or utcnow()
        with sqlite_errors():
            rows = await self._db.fetch_all(
                f"""
                SELECT * FROM {DatabaseTables.EXPERIMENTS}
                WHERE context = ? AND is_active = 1
                ORDER BY created_at, name
                """,
                (context,),
            )
        for row in rows:
            definition = self._row_to_definition(row)
            if definition.is_running(moment):
                return definition.name
        return None

    async def get_player_variant(
        self, player_id: int, experiment_name: str
    ) -> ExperimentVariant | None:
        definition = await self.get_experiment(experiment_name)
        if definition is None or not definition.is_running(utcnow()):
            return None

        variant_name = await self._stored_assignment(experiment_name, player_id)
        if variant_name is None:
            routed = definition.ring().route(f"{experiment_name}:{player_id}")
            if routed is None:
                return None
            with sqlite_errors():
                await self._db.execute(
                    f"""
                    INSERT OR IGNORE INTO {DatabaseTables.EXPERIMENT_ASSIGNMENTS} (
                        experiment_name, player_id, variant_name, assigned_at
                    ) VALUES (?, ?, ?, ?)
                    """,
                    (experiment_name, player_id, routed, to_iso(utcnow())),
                )
            # Re-read so a concurrent first lookup and this one agree.
            variant_name = await self._stored_assignment(experiment_name, player_id) or routed
            logger.debug(LogTemplates.EXPERIMENT_ASSIGNED, player_id, experiment_name, variant_name)

        allocation = definition.variant(variant_name)
        return ExperimentVariant(
            experiment_name=experiment_name,
            variant_name=variant_name,
            algorithm=allocation.algorithm if allocation else None,
        )

    async def _stored_assignment(self, experiment_name: str, player_id: int) -> str | None:
        with sqlite_errors():
            row = await self._db.fetch_one(
                f"""
                SELECT variant_name FROM {DatabaseTables.EXPERIMENT_ASSIGNMENTS}
                WHERE experiment_name = ? AND player_id = ?
                """,
                (experiment_name, player_id),
            )
        return row["variant_name"] if row else None

    @staticmethod
    def _row_to_definition(row: dict[str, object]) -> ExperimentDefinition:
        return ExperimentDefinition(
            name=row["name"],
            context=row["context"],
            variants=tuple(VariantAllocation(**v) for v in json.loads(str(row["variants"]))),
            is_active=bool(row["is_active"]),
            start_at=from_iso(row["start_at"]),  # type: ignore[arg-type]
            end_at=from_iso(row["end_at"]),  # type: ignore[arg-type]
            created_at=from_iso(row["created_at"]),  # type: ignore[arg-type]
        )

"""Domain events, the aggregate event buffer, and the in-process event bus."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from .datetime_utils import utcnow
from .messages import LogTemplates
from .types import (
    AlgorithmNameStr,
    ItemIdField,
    NonEmptyStr,
    NonNegativeFloat,
    PlayerIdField,
    UtcDatetimeField,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="DomainEvent")
EventHandler = Callable[[T], Awaitable[None]]


class DomainEvent(BaseModel):
    """Base class for all domain events."""

    model_config = ConfigDict(frozen=True)

    event_id: NonEmptyStr = Field(default_factory=lambda: str(uuid4()))
    occurred_at: UtcDatetimeField = Field(default_factory=utcnow)


class AggregateRoot(BaseModel):
    """Base for entities that buffer domain events until their unit of work saves."""

    _pending_events: list[DomainEvent] = PrivateAttr(default_factory=list)

    def record_event(self, event: DomainEvent) -> None:
        self._pending_events.append(event)

    @property
    def pending_events(self) -> tuple[DomainEvent, ...]:
        return tuple(self._pending_events)

    def pull_events(self) -> list[DomainEvent]:
        """Return and clear the buffered events."""
        events = list(self._pending_events)
        self._pending_events.clear()
        return events


# === Recommendation Events ===


class RecommendationGenerated(DomainEvent):
    recommendation_id: NonEmptyStr
    player_id: PlayerIdField
    item_id: ItemIdField
    algorithm: AlgorithmNameStr
    context: str = ""
    position: int = 1


class RecommendationClicked(DomainEvent):
    recommendation_id: NonEmptyStr
    player_id: PlayerIdField
    item_id: ItemIdField
    algorithm: AlgorithmNameStr
    session_id: str = ""


class RecommendationPlayed(DomainEvent):
    recommendation_id: NonEmptyStr
    player_id: PlayerIdField
    item_id: ItemIdField
    algorithm: AlgorithmNameStr
    session_id: str = ""


class InteractionRecorded(DomainEvent):
    recommendation_id: NonEmptyStr
    player_id: PlayerIdField
    item_id: ItemIdField
    interaction_type: NonEmptyStr
    value: NonNegativeFloat = 0.0


# === Catalog Events ===


class ItemOverrideSettingsUpdated(DomainEvent):
    item_id: ItemIdField
    changed_fields: tuple[str, ...] = ()
    updated_by: str | None = None


class EventBus:
    """In-memory pub/sub event bus for domain events.

    Handlers are called concurrently. Exceptions in handlers are logged
    but do not prevent other handlers from running.
    """

    def __init__(self) -> None:
        self._handlers: dict[type[DomainEvent], list[EventHandler[Any]]] = defaultdict(list)

    def subscribe(self, event_type: type[T], handler: EventHandler[T]) -> None:
        self._handlers[event_type].append(handler)
        logger.debug(LogTemplates.EVENT_SUBSCRIBED, event_type.__name__)

    def unsubscribe(self, event_type: type[T], handler: EventHandler[T]) -> None:
        handlers = self._handlers[event_type]
        if handler in handlers:
            handlers.remove(handler)
            logger.debug(LogTemplates.EVENT_UNSUBSCRIBED, event_type.__name__)

    async def publish(self, event: DomainEvent) -> None:
        event_type = type(event)
        handlers = list(self._handlers.get(event_type, []))

        if not handlers:
            logger.debug(LogTemplates.EVENT_NO_HANDLERS, event_type.__name__)
            return

        logger.debug(LogTemplates.EVENT_PUBLISHING, event_type.__name__, len(handlers))

        async def safe_call(handler: EventHandler[Any]) -> None:
            try:
                await handler(event)
            except Exception as e:
                logger.exception(LogTemplates.EVENT_HANDLER_ERROR, event_type.__name__, e)

        async with asyncio.TaskGroup() as tg:
            for handler in handlers:
                tg.create_task(safe_call(handler))

    async def publish_all(self, events: list[DomainEvent]) -> None:
        for event in events:
            await self.publish(event)

    def clear(self) -> None:
        """Remove all handlers."""
        self._handlers.clear()
        logger.debug(LogTemplates.EVENT_HANDLERS_CLEARED)

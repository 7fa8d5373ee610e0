"""
Unit of Work Interface

Transaction boundary that owns repository access, stages writes, and
dispatches domain events once the writes are durable.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, TypeVar
from uuid import uuid4

from ...domain.shared.events import AggregateRoot, DomainEvent, EventBus
from ...domain.shared.exceptions import InvalidOperationError
from ...domain.shared.messages import ErrorMessages, LogTemplates
from ...domain.shared.result import Result

logger = logging.getLogger(__name__)

R = TypeVar("R")

StagedWrite = Callable[[], Awaitable[int]]
TransactionalOperation = Callable[["UnitOfWork"], Awaitable[Any]]


class UnitOfWorkState(Enum):
    IDLE = "idle"
    TRANSACTION_OPEN = "transaction_open"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class UnitOfWork(ABC):
    """Base unit of work.

    Lifecycle: idle -> transaction_open -> committed | rolled_back. The last
    two are terminal: the instance can still read, but cannot write again.

    Use as an async context manager; leaving the block with an open
    transaction rolls it back::

        async with uow_factory() as uow:
            result = await uow.execute_in_transaction(operation)
    """

    def __init__(self, event_bus: EventBus | None = None) -> None:
        self.id = uuid4().hex[:8]
        self._event_bus = event_bus
        self._state = UnitOfWorkState.IDLE
        self._staged: list[StagedWrite] = []
        self._tracked: dict[int, AggregateRoot] = {}
        self._deferred_events: list[DomainEvent] = []
        self._repositories: dict[type[Any], Any] = {}

    # ---- Backend hooks ----

    @abstractmethod
    async def _open(self) -> None: ...

    @abstractmethod
    async def _close(self) -> None: ...

    @abstractmethod
    async def _begin(self) -> None: ...

    @abstractmethod
    async def _commit(self) -> None: ...

    @abstractmethod
    async def _rollback(self) -> None: ...

    @abstractmethod
    def _create_repository(self, repository_type: type[R]) -> R: ...

    # ---- Context management ----

    async def __aenter__(self) -> UnitOfWork:
        await self._open()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        try:
            if self.in_transaction:
                await self._safe_rollback()
        finally:
            await self._close()

    # ---- State ----

    @property
    def state(self) -> UnitOfWorkState:
        return self._state

    @property
    def in_transaction(self) -> bool:
        return self._state is UnitOfWorkState.TRANSACTION_OPEN

    @property
    def is_closed(self) -> bool:
        return self._state in (UnitOfWorkState.COMMITTED, UnitOfWorkState.ROLLED_BACK)

    def _ensure_writable(self, operation: str) -> None:
        if self.is_closed:
            raise InvalidOperationError(
                operation,
                self._state.value,
                ErrorMessages.UNIT_OF_WORK_CLOSED.format(state=self._state.value),
            )

    # ---- Repositories and change tracking ----

    def get_repository(self, repository_type: type[R]) -> R:
        """Return the repository bound to this unit of work's transaction scope."""
        repository = self._repositories.get(repository_type)
        if repository is None:
            repository = self._create_repository(repository_type)
            self._repositories[repository_type] = repository
        return repository

    def track(self, aggregate: AggregateRoot) -> None:
        self._tracked[id(aggregate)] = aggregate

    def stage(self, write: StagedWrite, aggregate: AggregateRoot | None = None) -> None:
        self._ensure_writable("stage")
        self._staged.append(write)
        if aggregate is not None:
            self.track(aggregate)

    @property
    def has_pending_changes(self) -> bool:
        return bool(self._staged)

    # ---- Transactions ----

    async def begin_transaction(self) -> None:
        if self.in_transaction:
            raise InvalidOperationError(
                "begin_transaction", self._state.value, ErrorMessages.TRANSACTION_ALREADY_OPEN
            )
        self._ensure_writable("begin_transaction")
        await self._begin()
        self._state = UnitOfWorkState.TRANSACTION_OPEN
        logger.debug(LogTemplates.TRANSACTION_BEGUN, self.id)

    async def commit_transaction(self) -> None:
        if not self.in_transaction:
            return
        if self._staged:
            await self._flush()
        await self._commit()
        self._state = UnitOfWorkState.COMMITTED
        logger.debug(LogTemplates.TRANSACTION_COMMITTED, self.id)

        events, self._deferred_events = self._deferred_events, []
        await self._publish(events)

    async def rollback_transaction(self) -> None:
        if not self.in_transaction:
            return
        try:
            await self._rollback()
        finally:
            self._state = UnitOfWorkState.ROLLED_BACK
            self._staged.clear()
            self._deferred_events.clear()
            for aggregate in self._tracked.values():
                aggregate.pull_events()
            self._tracked.clear()
            logger.debug(LogTemplates.TRANSACTION_ROLLED_BACK, self.id)

    # ---- Saving ----

    async def save_changes(self) -> int:
        """Write staged changes and return the affected row count.

        Outside a transaction the writes run in their own short transaction.
        """
        self._ensure_writable("save_changes")
        if not self._staged:
            return 0
        if self.in_transaction:
            return await self._flush()

        await self._begin()
        try:
            affected = await self._flush()
            await self._commit()
        except BaseException:
            self._staged.clear()
            await self._rollback()
            raise
        return affected

    async def save_changes_and_dispatch_events(self) -> int:
        """Save, then publish the events buffered on tracked aggregates.

        Inside a transaction, publication waits for the commit and is dropped
        on rollback.
        """
        affected = await self.save_changes()

        events: list[DomainEvent] = []
        for aggregate in self._tracked.values():
            events.extend(aggregate.pull_events())
        self._tracked.clear()

        if self.in_transaction:
            self._deferred_events.extend(events)
        else:
            await self._publish(events)
        return affected

    async def execute_in_transaction(self, operation: TransactionalOperation) -> Result[Any]:
        """Run ``operation`` atomically and return its outcome as a Result.

        The operation may return a plain value or a Result; a failed Result
        rolls back like an exception does. Cancellation rolls back and then
        propagates.
        """
        started = not self.in_transaction
        try:
            if started:
                await self.begin_transaction()
            outcome = await operation(self)
        except asyncio.CancelledError:
            logger.warning(LogTemplates.TRANSACTION_CANCELLED, self.id)
            await self._safe_rollback()
            raise
        except Exception as exc:
            logger.warning(LogTemplates.TRANSACTION_FAILED, self.id, exc)
            await self._safe_rollback()
            return Result.from_exception(exc)

        result = outcome if isinstance(outcome, Result) else Result.ok(outcome)
        if result.is_failure:
            await self._safe_rollback()
            return result

        if started:
            try:
                await self.commit_transaction()
            except asyncio.CancelledError:
                await self._safe_rollback()
                raise
            except Exception as exc:
                logger.warning(LogTemplates.TRANSACTION_FAILED, self.id, exc)
                await self._safe_rollback()
                return Result.from_exception(exc)
        return result

    # ---- Internals ----

    async def _flush(self) -> int:
        writes, self._staged = self._staged, []
        affected = 0
        for write in writes:
            affected += await write()
        logger.debug(LogTemplates.CHANGES_SAVED, len(writes), affected, self.id)
        return affected

    async def _safe_rollback(self) -> None:
        try:
            await self.rollback_transaction()
        except Exception as exc:
            logger.error(LogTemplates.ROLLBACK_FAILED, self.id, exc)

    async def _publish(self, events: list[DomainEvent]) -> None:
        if not events or self._event_bus is None:
            return
        await self._event_bus.publish_all(events)
        logger.debug(LogTemplates.EVENTS_DISPATCHED, len(events), self.id)


UnitOfWorkFactory = Callable[[], UnitOfWork]

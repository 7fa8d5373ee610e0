"""
Command/Query Dispatcher

Routes a typed request object to exactly one registered handler and returns
its `Result`. Nothing raised by a handler escapes `Dispatcher.dispatch`.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any, Protocol

from ..domain.shared.messages import ErrorMessages, LogTemplates
from ..domain.shared.result import ErrorCode, Result

logger = logging.getLogger(__name__)


class Command:
    """Marker base for requests that change state."""


class Query:
    """Marker base for read-only requests."""


class RequestHandler(Protocol):
    async def handle(self, request: Any) -> Result[Any]: ...


class HandlerRegistry:
    """Immutable mapping from request type to its handler."""

    def __init__(self, handlers: Mapping[type, RequestHandler] | None = None) -> None:
        self._handlers: Mapping[type, RequestHandler] = MappingProxyType(dict(handlers or {}))

    def with_handler(self, request_type: type, handler: RequestHandler) -> HandlerRegistry:
        if request_type in self._handlers:
            raise ValueError(ErrorMessages.DUPLICATE_HANDLER.format(request_type=request_type.__name__))
        return HandlerRegistry({**self._handlers, request_type: handler})

    def get(self, request_type: type) -> RequestHandler | None:
        return self._handlers.get(request_type)

    def __contains__(self, request_type: object) -> bool:
        return request_type in self._handlers

    def __iter__(self) -> Iterator[type]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)


class Dispatcher:
    """Stateless mediator; safe to share across concurrent callers."""

    def __init__(self, registry: HandlerRegistry) -> None:
        self._registry = registry

    async def dispatch(self, request: Any, *, timeout: float | None = None) -> Result[Any]:
        """Run the handler registered for ``type(request)``.

        Args:
            request: A Command or Query instance.
            timeout: Optional deadline in seconds for the whole handler.

        Returns:
            The handler's Result, or a failure describing why it could not run.
        """
        request_type = type(request).__name__
        started = time.perf_counter()

        if not isinstance(request, (Command, Query)):
            result: Result[Any] = Result.fail(
                ErrorCode.VALIDATION, ErrorMessages.NOT_A_REQUEST.format(request_type=request_type)
            )
            self._log(request_type, result, started)
            return result

        handler = self._registry.get(type(request))
        if handler is None:
            logger.warning(LogTemplates.DISPATCH_NO_HANDLER, request_type)
            result = Result.fail(
                ErrorCode.NO_HANDLER, ErrorMessages.NO_HANDLER.format(request_type=request_type)
            )
            self._log(request_type, result, started)
            return result

        try:
            async with asyncio.timeout(timeout):
                outcome = await handler.handle(request)
        except TimeoutError:
            logger.warning(LogTemplates.DISPATCH_TIMEOUT, request_type, timeout)
            result = Result.fail(
                ErrorCode.TIMEOUT,
                ErrorMessages.DISPATCH_TIMED_OUT.format(request_type=request_type, timeout=timeout),
            )
        except Exception as exc:
            logger.exception(LogTemplates.DISPATCH_HANDLER_ERROR, request_type, exc)
            result = Result.from_exception(exc)
            result = Result.fail(
                result.code or ErrorCode.UNEXPECTED,
                ErrorMessages.DISPATCH_FAILED.format(request_type=request_type, error=result.message),
            )
        else:
            result = outcome if isinstance(outcome, Result) else Result.ok(outcome)

        self._log(request_type, result, started)
        return result

    @staticmethod
    def _log(request_type: str, result: Result[Any], started: float) -> None:
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(LogTemplates.DISPATCH_COMPLETED, request_type, result.is_success, elapsed_ms)

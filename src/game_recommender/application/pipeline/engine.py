"""
Pipeline Engine

Runs an ordered list of steps over one shared execution context. Each step
returns a `Result`; the first failure stops the run.

Chaining rules after a step succeeds with value ``v``:

- if no enabled step remains, ``v`` is the pipeline result when it has the
  declared output type;
- if ``v`` has the output type and the next step cannot accept it, the
  pipeline exits early with ``v``;
- otherwise ``v`` becomes the next step's input.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Any, TypeVar, overload
from uuid import uuid4

from ...domain.shared.datetime_utils import utcnow
from ...domain.shared.exceptions import DomainError, MissingContextError
from ...domain.shared.messages import ErrorMessages, LogTemplates
from ...domain.shared.result import ErrorCode, Result

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING: Any = object()


class PipelineContext:
    """Mutable key/value state shared by the steps of one pipeline run.

    Reads go through typed accessors; a value of the wrong type is treated
    as absent.
    """

    def __init__(self, correlation_id: str | None = None, **initial: Any) -> None:
        self.context_id = uuid4().hex
        self.correlation_id = correlation_id or self.context_id
        self.created_at = utcnow()
        self.step_timings: dict[str, float] = {}
        self._values: dict[str, Any] = {}
        for key, value in initial.items():
            self.set(key, value)

    @overload
    def get(self, key: str, expected_type: type[T]) -> T | None: ...

    @overload
    def get(self, key: str, expected_type: type[T], default: T) -> T: ...

    def get(self, key: str, expected_type: type[T], default: Any = None) -> Any:
        value = self._values.get(key, _MISSING)
        if value is _MISSING or not isinstance(value, expected_type):
            return default
        return value

    def require(self, key: str, expected_type: type[T], *, step: str | None = None) -> T:
        """Return a value written by an earlier step.

        Raises:
            MissingContextError: If the key is absent or has the wrong type.
        """
        value = self._values.get(key, _MISSING)
        if value is _MISSING or not isinstance(value, expected_type):
            raise MissingContextError(key, step)
        return value

    def set(self, key: str, value: Any) -> None:
        if value is None:
            return
        self._values[key] = value

    def has(self, key: str) -> bool:
        return key in self._values

    def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._values)


class PipelineStep(ABC):
    """One stage of a pipeline.

    ``input_type`` and ``output_type`` drive chaining; ``order`` fixes the
    position; disabled steps are skipped.
    """

    input_type: type = object
    output_type: type = object

    def __init__(self, name: str, order: int, *, enabled: bool = True) -> None:
        self.name = name
        self.order = order
        self.enabled = enabled

    def accepts(self, value: Any) -> bool:
        return isinstance(value, self.input_type)

    @abstractmethod
    async def execute(self, data: Any, context: PipelineContext) -> Result[Any]:
        """Transform ``data`` and return the next value."""
        ...

    async def handle_failure(
        self, data: Any, context: PipelineContext, error: Exception
    ) -> Result[Any]:
        """Recovery hook for exceptions raised by `execute`.

        A success whose value has the pipeline's output type ends the run with
        that value. Anything else fails the pipeline.
        """
        code = error.code if isinstance(error, DomainError) else ErrorCode.PIPELINE
        return Result.fail(code, ErrorMessages.STEP_FAILED.format(step=self.name, error=error))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, order={self.order}, enabled={self.enabled})"


StepCondition = Callable[[Any, PipelineContext], bool]


class ConditionalStep(PipelineStep):
    """Runs ``inner`` only when ``condition(data, context)`` holds.

    When skipped, the input passes through unchanged if it already has the
    inner step's output type; otherwise the step fails.
    """

    def __init__(self, inner: PipelineStep, condition: StepCondition) -> None:
        super().__init__(f"Conditional({inner.name})", inner.order, enabled=inner.enabled)
        self.inner = inner
        self.condition = condition
        self.input_type = inner.input_type
        self.output_type = inner.output_type

    async def execute(self, data: Any, context: PipelineContext) -> Result[Any]:
        if self.condition(data, context):
            return await self.inner.execute(data, context)
        logger.debug(LogTemplates.CONDITION_SKIPPED, self.inner.name)
        if isinstance(data, self.inner.output_type):
            return Result.ok(data)
        return Result.fail(
            ErrorCode.PIPELINE,
            ErrorMessages.CONDITIONAL_TYPE_MISMATCH.format(
                step=self.inner.name, value_type=type(data).__name__
            ),
        )

    async def handle_failure(
        self, data: Any, context: PipelineContext, error: Exception
    ) -> Result[Any]:
        return await self.inner.handle_failure(data, context, error)


class Pipeline:
    """Immutable, executable sequence of steps."""

    def __init__(self, name: str, steps: Sequence[PipelineStep], output_type: type) -> None:
        self.name = name
        self.output_type = output_type
        # sorted() is stable, so equal orders keep insertion order.
        self._steps: tuple[PipelineStep, ...] = tuple(sorted(steps, key=lambda s: s.order))

    @property
    def steps(self) -> tuple[PipelineStep, ...]:
        return self._steps

    async def execute(
        self,
        data: Any,
        context: PipelineContext | None = None,
        *,
        timeout: float | None = None,
    ) -> Result[Any]:
        """Run every enabled step in order.

        Args:
            data: Input to the first step.
            context: Shared state; a fresh one is created when omitted.
            timeout: Optional deadline in seconds for the whole run.

        Returns:
            The final value, or the first failure.
        """
        context = context or PipelineContext()
        started = time.perf_counter()
        logger.debug(LogTemplates.PIPELINE_STARTED, self.name, context.context_id)
        try:
            async with asyncio.timeout(timeout):
                result = await self._run(data, context)
        except TimeoutError:
            logger.warning(LogTemplates.PIPELINE_TIMEOUT, self.name, timeout)
            return Result.fail(
                ErrorCode.TIMEOUT,
                ErrorMessages.PIPELINE_TIMED_OUT.format(pipeline=self.name, timeout=timeout),
            )
        logger.debug(
            LogTemplates.PIPELINE_COMPLETED, self.name, (time.perf_counter() - started) * 1000
        )
        return result

    async def _run(self, data: Any, context: PipelineContext) -> Result[Any]:
        enabled = [step for step in self._steps if step.enabled]
        for step in self._steps:
            if not step.enabled:
                logger.debug(LogTemplates.PIPELINE_STEP_SKIPPED, step.name)

        current = data
        for index, step in enumerate(enabled):
            if not step.accepts(current):
                return Result.fail(
                    ErrorCode.PIPELINE,
                    ErrorMessages.PIPELINE_TYPE_MISMATCH.format(
                        step=step.name, value_type=type(current).__name__
                    ),
                )

            step_started = time.perf_counter()
            try:
                result = await step.execute(current, context)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning(LogTemplates.PIPELINE_STEP_RAISED, step.name, exc)
                recovered = await step.handle_failure(current, context, exc)
                if recovered.is_success and isinstance(recovered.value, self.output_type):
                    logger.info(LogTemplates.PIPELINE_STEP_RECOVERED, step.name)
                    return recovered
                if recovered.is_success:
                    return Result.fail(
                        ErrorCode.PIPELINE,
                        ErrorMessages.STEP_FAILED.format(step=step.name, error=exc),
                    )
                return recovered
            finally:
                elapsed_ms = (time.perf_counter() - step_started) * 1000
                context.step_timings[step.name] = elapsed_ms

            logger.debug(
                LogTemplates.PIPELINE_STEP_COMPLETED,
                step.name,
                context.step_timings[step.name],
                result.is_success,
            )
            if result.is_failure:
                logger.info(LogTemplates.PIPELINE_STEP_FAILED, step.name, result.message)
                return result

            current = result.value
            following = enabled[index + 1] if index + 1 < len(enabled) else None
            if following is None:
                break
            if isinstance(current, self.output_type) and not following.accepts(current):
                logger.debug(LogTemplates.PIPELINE_EARLY_EXIT, self.name, step.name)
                return Result.ok(current)

        if isinstance(current, self.output_type):
            return Result.ok(current)
        return Result.fail(ErrorCode.PIPELINE, ErrorMessages.PIPELINE_NO_OUTPUT)


class PipelineBuilder:
    """Declarative assembly of a `Pipeline`::

        pipeline = (
            PipelineBuilder("recommendations", list)
            .add_step(ValidatePlayerStep(...))
            .add_step_if(DiversifyStep(...), lambda data, ctx: len(data) > 5)
            .build()
        )
    """

    def __init__(self, name: str, output_type: type) -> None:
        self._name = name
        self._output_type = output_type
        self._steps: list[PipelineStep] = []

    def add_step(
        self,
        step: PipelineStep,
        configure: Callable[[PipelineStep], None] | None = None,
    ) -> PipelineBuilder:
        if configure is not None:
            configure(step)
        self._steps.append(step)
        return self

    def add_step_if(
        self,
        step: PipelineStep,
        condition: StepCondition,
        configure: Callable[[PipelineStep], None] | None = None,
    ) -> PipelineBuilder:
        if configure is not None:
            configure(step)
        self._steps.append(ConditionalStep(step, condition))
        return self

    def build(self) -> Pipeline:
        if not self._steps:
            raise ValueError(ErrorMessages.EMPTY_PIPELINE.format(pipeline=self._name))
        return Pipeline(self._name, list(self._steps), self._output_type)

"""Success/failure wrapper returned by every operation boundary."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")


class ErrorCode(Enum):
    """Machine-readable failure codes."""

    NOT_FOUND = "not_found"
    NO_HANDLER = "no_handler"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    TRANSIENT = "transient"
    TIMEOUT = "timeout"
    MISSING_CONTEXT = "missing_context"
    PIPELINE = "pipeline"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True, slots=True)
class Failure:
    code: ErrorCode
    message: str


class ResultError(Exception):
    """Raised by `Result.unwrap` on a failed result."""

    def __init__(self, failure: Failure) -> None:
        super().__init__(failure.message)
        self.failure = failure


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    """Tagged outcome of an operation.

    Exactly one of ``value`` (on success) or ``error`` (on failure) is
    meaningful. A successful result may still carry ``None`` as its value.
    """

    value: T | None = None
    error: Failure | None = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    @property
    def code(self) -> ErrorCode | None:
        return self.error.code if self.error else None

    @property
    def message(self) -> str:
        return self.error.message if self.error else ""

    @classmethod
    def ok(cls, value: T | None = None) -> Result[T]:
        return cls(value=value)

    @classmethod
    def fail(cls, code: ErrorCode, message: str) -> Result[T]:
        return cls(error=Failure(code=code, message=message))

    @classmethod
    def from_exception(cls, exc: BaseException, prefix: str | None = None) -> Result[T]:
        """Convert an exception into a failure, choosing a code by type."""
        message = str(exc) or exc.__class__.__name__
        if prefix:
            message = f"{prefix}: {message}"
        return cls.fail(error_code_for(exc), message)

    def unwrap(self) -> T:
        if self.error is not None:
            raise ResultError(self.error)
        return self.value  # type: ignore[return-value]

    def value_or(self, default: T) -> T:
        if self.error is not None or self.value is None:
            return default
        return self.value

    def map(self, fn: Callable[[T], U]) -> Result[U]:
        if self.error is not None:
            return Result(error=self.error)
        return Result.ok(fn(self.value))  # type: ignore[arg-type]

    def __bool__(self) -> bool:
        return self.is_success


def error_code_for(exc: BaseException) -> ErrorCode:
    from .exceptions import DomainError

    if isinstance(exc, DomainError):
        return exc.code
    # pydantic.ValidationError subclasses ValueError.
    if isinstance(exc, ValueError):
        return ErrorCode.VALIDATION
    if isinstance(exc, TimeoutError):
        return ErrorCode.TIMEOUT
    return ErrorCode.UNEXPECTED

"""Domain exceptions. Each carries the ErrorCode it surfaces as in a Result."""

from __future__ import annotations

from .result import ErrorCode


class DomainError(Exception):
    """Root of every error the recommender raises on purpose."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.UNEXPECTED) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class ValidationError(DomainError):
    """Request or entity values out of range."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION)
        self.field = field


class EntityNotFoundError(DomainError):
    """A player, item or recommendation lookup came back empty."""

    def __init__(self, entity_type: str, identifier: str | int, message: str | None = None) -> None:
        super().__init__(
            message or f"{entity_type} '{identifier}' does not exist", code=ErrorCode.NOT_FOUND
        )
        self.entity_type = entity_type
        self.identifier = identifier


class BusinessRuleViolationError(DomainError):
    """A change that is well-formed but breaks a catalog rule, such as an inverted bet range."""

    def __init__(self, rule: str, message: str | None = None) -> None:
        super().__init__(message or f"Rule '{rule}' rejected the change", code=ErrorCode.VALIDATION)
        self.rule = rule


class ConcurrencyError(DomainError):
    """Stale aggregate version or a locked database."""

    def __init__(self, entity_type: str, message: str | None = None) -> None:
        super().__init__(
            message or f"{entity_type} was modified by another writer", code=ErrorCode.CONFLICT
        )
        self.entity_type = entity_type


class TransientInfrastructureError(DomainError):
    """A backing store or model server failed in a way worth retrying."""

    def __init__(self, resource: str, message: str | None = None) -> None:
        super().__init__(
            message or f"{resource} is temporarily unavailable", code=ErrorCode.TRANSIENT
        )
        self.resource = resource


class InvalidOperationError(DomainError):
    """Misuse of a stateful object, e.g. saving through a committed unit of work."""

    def __init__(self, operation: str, current_state: str, message: str | None = None) -> None:
        super().__init__(
            message or f"'{operation}' is not allowed while {current_state}",
            code=ErrorCode.UNEXPECTED,
        )
        self.operation = operation
        self.current_state = current_state


class MissingContextError(DomainError):
    """A pipeline step read a context value no earlier step wrote."""

    def __init__(self, key: str, step: str | None = None) -> None:
        where = f" for step '{step}'" if step else ""
        super().__init__(
            f"Missing required context value '{key}'{where}", code=ErrorCode.MISSING_CONTEXT
        )
        self.key = key
        self.step = step

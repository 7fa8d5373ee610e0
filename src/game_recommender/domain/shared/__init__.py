"""
Shared Domain Kernel

Contains the result type, exceptions, events and specifications shared
across all bounded contexts.
"""

from game_recommender.domain.shared.exceptions import (
    BusinessRuleViolationError,
    ConcurrencyError,
    DomainError,
    EntityNotFoundError,
    InvalidOperationError,
    MissingContextError,
    TransientInfrastructureError,
    ValidationError,
)
from game_recommender.domain.shared.result import ErrorCode, Failure, Result
from game_recommender.domain.shared.specification import Specification

__all__ = [
    "ErrorCode",
    "Failure",
    "Result",
    "Specification",
    "DomainError",
    "ValidationError",
    "EntityNotFoundError",
    "BusinessRuleViolationError",
    "ConcurrencyError",
    "TransientInfrastructureError",
    "InvalidOperationError",
    "MissingContextError",
]

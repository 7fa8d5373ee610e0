"""Generic repository port shared by all bounded contexts."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from .specification import Specification

T = TypeVar("T")
K = TypeVar("K")


class Repository(ABC, Generic[T, K]):
    """CRUD plus query-by-specification for one entity type.

    Writes are staged on the owning unit of work and reach the store when it
    saves. Reads see the unit of work's transaction.
    """

    @abstractmethod
    async def get(self, key: K) -> T | None:
        """Get an entity by its identifier.

        Args:
            key: The entity identifier.

        Returns:
            The entity if found, None otherwise.
        """
        ...

    @abstractmethod
    async def find(self, spec: Specification[T]) -> list[T]:
        """Return entities matching a specification.

        Args:
            spec: Predicate, includes, ordering and paging to apply.

        Returns:
            Matching entities in specification order.
        """
        ...

    @abstractmethod
    async def count(self, spec: Specification[T] | None = None) -> int:
        """Count entities matching a specification, ignoring its paging."""
        ...

    @abstractmethod
    async def add(self, entity: T) -> None:
        """Stage a new entity for insertion."""
        ...

    @abstractmethod
    async def update(self, entity: T) -> None:
        """Stage changes to an existing entity."""
        ...

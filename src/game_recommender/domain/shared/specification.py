"""Composable query specifications.

A specification bundles filter predicates, include hints, ordering and paging
for one entity type. Specifications are immutable; every combinator returns a
new instance::

    spec = (
        recommendations_for_player(42)
        .and_(recommendations_in_context("lobby"))
        .apply_order_by_descending(lambda r: r.created_at)
        .apply_paging(0, 20)
    )

Repositories evaluate a specification in a fixed order: predicate, includes,
ordering, then paging, so that counts taken before paging stay correct.

Named specifications may also carry column hints, which a store can push
down to narrow what it loads. Hints only ever describe a superset of the
matches; the predicates remain the final check.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from typing import Any, Generic, TypeVar

from .exceptions import InvalidOperationError, ValidationError
from .messages import ErrorMessages

T = TypeVar("T")

Predicate = Callable[[T], bool]
SortKey = Callable[[T], Any]


@dataclass(frozen=True)
class ColumnHint:
    """A storage-level condition implied by a predicate.

    ``operator`` is one of ``=``, ``ieq`` (case-insensitive equality), ``in``,
    ``>=`` or ``<``.
    """

    column: str
    operator: str
    value: Any


# Clauses are ANDed; the hints inside one clause are ORed.
HintClause = tuple[ColumnHint, ...]


@dataclass(frozen=True)
class Specification(Generic[T]):
    criteria: tuple[Predicate[T], ...] = ()
    includes: frozenset[str] = field(default_factory=frozenset)
    order_key: SortKey[T] | None = None
    order_descending: bool = False
    skip: int | None = None
    take: int | None = None
    hints: tuple[HintClause, ...] = ()

    # ---- Constructors ----

    @classmethod
    def where(cls, predicate: Predicate[T], *hints: ColumnHint) -> Specification[T]:
        """Build from one predicate; each hint becomes its own clause."""
        return cls(criteria=(predicate,), hints=tuple((hint,) for hint in hints))

    @classmethod
    def all(cls) -> Specification[T]:
        """Match every entity."""
        return cls()

    # ---- Evaluation ----

    def is_satisfied_by(self, entity: T) -> bool:
        # all() of an empty tuple is True, so no criteria matches everything.
        return all(predicate(entity) for predicate in self.criteria)

    def filter(self, entities: Iterable[T]) -> list[T]:
        return [e for e in entities if self.is_satisfied_by(e)]

    def sort(self, entities: Iterable[T]) -> list[T]:
        items = list(entities)
        if self.order_key is None:
            return items
        return sorted(items, key=self.order_key, reverse=self.order_descending)

    def page(self, entities: Iterable[T]) -> list[T]:
        items = list(entities)
        if not self.is_paging_enabled:
            return items
        start = self.skip or 0
        return items[start : start + self.take] if self.take is not None else items[start:]

    def apply(self, entities: Iterable[T]) -> list[T]:
        """Filter, sort and page in memory. Includes are resolved by repositories."""
        return self.page(self.sort(self.filter(entities)))

    @property
    def is_paging_enabled(self) -> bool:
        return self.skip is not None or self.take is not None

    @property
    def is_ordered(self) -> bool:
        return self.order_key is not None

    # ---- Combinators ----

    def and_(self, other: Specification[T]) -> Specification[T]:
        if self.is_ordered and other.is_ordered:
            raise InvalidOperationError("and", "ordered", ErrorMessages.ORDERING_ALREADY_SET)
        ordering = self if self.is_ordered else other
        paging = self if self.is_paging_enabled else other
        return Specification(
            criteria=self.criteria + other.criteria,
            includes=self.includes | other.includes,
            order_key=ordering.order_key,
            order_descending=ordering.order_descending,
            skip=paging.skip,
            take=paging.take,
            hints=self.hints + other.hints,
        )

    def or_(self, other: Specification[T]) -> Specification[T]:
        left, right = self.without_paging(), other.without_paging()
        return replace(
            self,
            criteria=(lambda e: left.is_satisfied_by(e) or right.is_satisfied_by(e),),
            includes=self.includes | other.includes,
            hints=_or_hints(self.hints, other.hints),
        )

    def not_(self) -> Specification[T]:
        inner = self
        return replace(self, criteria=(lambda e: not inner.is_satisfied_by(e),), hints=())

    __and__ = and_
    __or__ = or_
    __invert__ = not_

    def include(self, *names: str) -> Specification[T]:
        return replace(self, includes=self.includes | frozenset(names))

    def apply_order_by(self, key: SortKey[T]) -> Specification[T]:
        return self._with_ordering(key, descending=False)

    def apply_order_by_descending(self, key: SortKey[T]) -> Specification[T]:
        return self._with_ordering(key, descending=True)

    def apply_paging(self, skip: int, take: int) -> Specification[T]:
        if skip < 0 or take <= 0:
            raise ValidationError(ErrorMessages.INVALID_PAGING, field="paging")
        return replace(self, skip=skip, take=take)

    def without_paging(self) -> Specification[T]:
        return replace(self, skip=None, take=None)

    def _with_ordering(self, key: SortKey[T], *, descending: bool) -> Specification[T]:
        if self.is_ordered:
            raise InvalidOperationError("order", "ordered", ErrorMessages.ORDERING_ALREADY_SET)
        return replace(self, order_key=key, order_descending=descending)


def _or_hints(
    left: tuple[HintClause, ...], right: tuple[HintClause, ...]
) -> tuple[HintClause, ...]:
    # (a1 and a2) or (b1 and b2) == (a1 or b1) and (a1 or b2) and (a2 or b1) and (a2 or b2).
    # An unhinted side matches everything, and so does the union.
    if not left or not right:
        return ()
    return tuple(a + b for a in left for b in right)

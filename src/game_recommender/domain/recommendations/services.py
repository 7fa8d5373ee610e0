"""
Recommendations Domain Services

Business rules that filter and reshape a ranked candidate list.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Callable, Iterable, Mapping

from ...domain.catalog.entities import ItemOverrideSettings
from ...domain.shared.constants import ContextTags
from .entities import Recommendation


class RecommendationDomainService:
    """Domain service for candidate-list business rules.

    Every operation returns a new list and leaves its input untouched.
    Positions are only renumbered by `rerank`.
    """

    @classmethod
    def deduplicate(cls, candidates: Iterable[Recommendation]) -> list[Recommendation]:
        """Keep the first occurrence of every item id."""
        seen: set[int] = set()
        unique: list[Recommendation] = []
        for rec in candidates:
            if rec.item_id in seen:
                continue
            seen.add(rec.item_id)
            unique.append(rec)
        return unique

    @classmethod
    def remove_excluded(
        cls, candidates: Iterable[Recommendation], excluded_ids: frozenset[int] | set[int]
    ) -> list[Recommendation]:
        return [rec for rec in candidates if rec.item_id not in excluded_ids]

    @classmethod
    def apply_overrides(
        cls,
        candidates: Iterable[Recommendation],
        overrides: Mapping[int, ItemOverrideSettings],
        context: str,
    ) -> list[Recommendation]:
        """Drop items deactivated by an administrator or hidden from the lobby."""
        kept = []
        for rec in candidates:
            override = overrides.get(rec.item_id)
            if override is not None and override.hides(context, ContextTags.LOBBY):
                continue
            kept.append(rec)
        return kept

    @classmethod
    def filter_min_score(
        cls, candidates: Iterable[Recommendation], min_score: float
    ) -> list[Recommendation]:
        return [rec for rec in candidates if rec.score > min_score]

    @classmethod
    def cap_per_key(
        cls,
        candidates: Iterable[Recommendation],
        key: Callable[[Recommendation], str | None],
        limit: int,
    ) -> list[Recommendation]:
        """Keep at most ``limit`` candidates per key value, in input order.

        Candidates whose key is None are never capped.
        """
        counts: Counter[str] = Counter()
        kept = []
        for rec in candidates:
            value = key(rec)
            if value is not None:
                if counts[value] >= limit:
                    continue
                counts[value] += 1
            kept.append(rec)
        return kept

    @classmethod
    def interleave_by_category(cls, candidates: Iterable[Recommendation]) -> list[Recommendation]:
        """Round-robin across categories, preserving score order within each."""
        buckets: dict[str, list[Recommendation]] = defaultdict(list)
        order: list[str] = []
        for rec in candidates:
            category = rec.category or ""
            if category not in buckets:
                order.append(category)
            buckets[category].append(rec)

        result: list[Recommendation] = []
        while any(buckets[c] for c in order):
            for category in order:
                if buckets[category]:
                    result.append(buckets[category].pop(0))
        return result

    @classmethod
    def sort_by_score(cls, candidates: Iterable[Recommendation]) -> list[Recommendation]:
        return sorted(candidates, key=lambda r: (-r.score, r.position, r.item_id))

    @classmethod
    def rerank(cls, candidates: Iterable[Recommendation], limit: int | None = None) -> list[Recommendation]:
        """Truncate to ``limit`` and renumber positions 1..n in list order."""
        items = list(candidates)
        if limit is not None:
            items = items[:limit]
        return [
            rec if rec.position == index else rec.with_position(index)
            for index, rec in enumerate(items, start=1)
        ]

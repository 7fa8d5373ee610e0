"""Named specifications over recommendations and catalog items."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from game_recommender.domain.catalog.entities import ItemFeatures
from game_recommender.domain.shared.specification import ColumnHint, Specification

from .entities import InteractionType, Recommendation, RecommendationInteraction

INCLUDE_INTERACTIONS = "interactions"


def recommendations_for_player(player_id: int) -> Specification[Recommendation]:
    return Specification.where(
        lambda r: r.player_id == player_id, ColumnHint("player_id", "=", player_id)
    )


def recommendations_for_players(player_ids: Iterable[int]) -> Specification[Recommendation]:
    wanted = frozenset(player_ids)
    return Specification.where(
        lambda r: r.player_id in wanted, ColumnHint("player_id", "in", tuple(sorted(wanted)))
    )


def recommendations_for_items(item_ids: Iterable[int]) -> Specification[Recommendation]:
    wanted = frozenset(item_ids)
    return Specification.where(
        lambda r: r.item_id in wanted, ColumnHint("item_id", "in", tuple(sorted(wanted)))
    )


def recommendations_by_algorithm(algorithm: str) -> Specification[Recommendation]:
    name = algorithm.lower()
    return Specification.where(
        lambda r: r.algorithm.lower() == name, ColumnHint("algorithm", "ieq", name)
    )


def recommendations_in_context(context: str) -> Specification[Recommendation]:
    return Specification.where(lambda r: r.context == context, ColumnHint("context", "=", context))


def recommendations_created_between(
    start: datetime | None = None, end: datetime | None = None
) -> Specification[Recommendation]:
    def _in_range(r: Recommendation) -> bool:
        if start is not None and r.created_at < start:
            return False
        if end is not None and r.created_at >= end:
            return False
        return True

    hints = []
    if start is not None:
        hints.append(ColumnHint("created_at", ">=", start))
    if end is not None:
        hints.append(ColumnHint("created_at", "<", end))
    return Specification.where(_in_range, *hints)


def clicked_recommendations(clicked: bool = True) -> Specification[Recommendation]:
    return Specification.where(
        lambda r: r.is_clicked is clicked, ColumnHint("is_clicked", "=", clicked)
    )


def played_recommendations(played: bool = True) -> Specification[Recommendation]:
    return Specification.where(
        lambda r: r.is_played is played, ColumnHint("is_played", "=", played)
    )


def newest_first() -> Specification[Recommendation]:
    return Specification[Recommendation]().apply_order_by_descending(
        lambda r: (r.created_at, -r.position)
    )


def interactions_of_type(kind: InteractionType) -> Specification[RecommendationInteraction]:
    return Specification.where(lambda i: i.interaction_type == kind)


def items_in_category(category: str) -> Specification[ItemFeatures]:
    return Specification.where(
        lambda i: i.category == category, ColumnHint("category", "=", category)
    )


def items_by_provider(provider: str) -> Specification[ItemFeatures]:
    return Specification.where(
        lambda i: i.provider == provider, ColumnHint("provider", "=", provider)
    )


def items_with_min_popularity(threshold: float) -> Specification[ItemFeatures]:
    return Specification.where(
        lambda i: i.popularity_score >= threshold,
        ColumnHint("popularity_score", ">=", threshold),
    )


def active_items() -> Specification[ItemFeatures]:
    return Specification.where(lambda i: i.is_active, ColumnHint("is_active", "=", True))

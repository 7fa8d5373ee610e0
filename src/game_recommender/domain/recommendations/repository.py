"""Repository ports for recommendations and interactions."""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Iterable

from game_recommender.domain.shared.repository import Repository

from .entities import InteractionType, Recommendation, RecommendationInteraction


class RecommendationRepository(Repository[Recommendation, str]):
    """Append-only recommendation history.

    Supports the ``interactions`` include, which attaches each
    recommendation's interaction records.
    """

    @abstractmethod
    async def existing_ids(self, ids: Iterable[str]) -> set[str]:
        """Return the subset of ids that are already persisted."""
        ...


class InteractionRepository(Repository[RecommendationInteraction, str]):
    """Immutable interaction records. ``update`` is not supported."""

    @abstractmethod
    async def exists(
        self,
        recommendation_id: str,
        session_id: str,
        interaction_type: InteractionType,
    ) -> bool:
        """Check the dedup key (recommendation, session, type).

        Args:
            recommendation_id: The recommendation interacted with.
            session_id: Session the interaction happened in ("" when unknown).
            interaction_type: Kind of interaction.

        Returns:
            True if a matching interaction is already stored.
        """
        ...

    @abstractmethod
    async def for_recommendations(
        self, recommendation_ids: Iterable[str]
    ) -> dict[str, list[RecommendationInteraction]]:
        """Group stored interactions by recommendation id."""
        ...

"""Repository ports for players and player features."""

from __future__ import annotations

from abc import abstractmethod

from game_recommender.domain.shared.repository import Repository

from .entities import Player, PlayerFeatures


class PlayerRepository(Repository[Player, int]):
    """Read access to platform accounts."""


class PlayerFeatureRepository(Repository[PlayerFeatures, int]):
    """Feature-store snapshots keyed by player id."""

    @abstractmethod
    async def upsert(self, features: PlayerFeatures) -> None:
        """Stage an insert-or-replace of a feature snapshot.

        Used by the out-of-band feature refresh, never by request handling.
        """
        ...

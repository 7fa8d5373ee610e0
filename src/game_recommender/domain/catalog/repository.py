"""Repository ports for the item catalog."""

from __future__ import annotations

from abc import abstractmethod

from game_recommender.domain.shared.repository import Repository

from .entities import ItemFeatures, ItemOverrideSettings


class ItemFeatureRepository(Repository[ItemFeatures, int]):
    """Feature-store snapshots keyed by item id."""

    @abstractmethod
    async def list_active(self) -> list[ItemFeatures]:
        """Return every active item."""
        ...

    @abstractmethod
    async def upsert(self, features: ItemFeatures) -> None:
        """Stage an insert-or-replace of an item snapshot."""
        ...


class ItemOverrideRepository(Repository[ItemOverrideSettings, int]):
    """Override settings keyed by item id, versioned for optimistic concurrency."""

    @abstractmethod
    async def list_all(self) -> list[ItemOverrideSettings]:
        """Return every stored override row."""
        ...

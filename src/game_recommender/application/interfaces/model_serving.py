"""
Model Serving Interface

Port for the remote ranking model used by the deep-learning strategy.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any


class ModelServingClient(ABC):
    """Abstract interface for a remote scoring model.

    Implementations raise ``TransientInfrastructureError`` when the model is
    unreachable so callers can fall back to local scoring.
    """

    @abstractmethod
    async def predict(
        self,
        player: Mapping[str, Any],
        items: Sequence[Mapping[str, Any]],
    ) -> list[float]:
        """Score each item for the player.

        Args:
            player: Player feature vector.
            items: One feature vector per candidate item.

        Returns:
            One score in [0, 1] per item, in input order.
        """
        ...

    @abstractmethod
    async def is_available(self) -> bool:
        """Check if the model endpoint is configured and reachable."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release network resources."""
        ...

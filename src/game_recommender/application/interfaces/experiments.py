"""
Experiment Service Interface

Port for A/B experiment lookups.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from ...domain.shared.types import AlgorithmNameStr, NonEmptyStr


class ExperimentVariant(BaseModel):
    """A player's assigned arm of one experiment."""

    model_config = ConfigDict(frozen=True)

    experiment_name: NonEmptyStr
    variant_name: NonEmptyStr
    algorithm: AlgorithmNameStr | None = None


class ExperimentService(ABC):
    """Abstract interface for experiment assignment."""

    @abstractmethod
    async def get_player_variant(
        self, player_id: int, experiment_name: str
    ) -> ExperimentVariant | None:
        """Look up the variant a player is assigned to.

        Args:
            player_id: The player.
            experiment_name: The experiment.

        Returns:
            The variant, or None if the experiment is not running.
        """
        ...

    @abstractmethod
    async def find_active_experiment(
        self, context: str, *, at: datetime | None = None
    ) -> str | None:
        """Name of the running experiment targeting ``context``, if any."""
        ...

"""
Players Bounded Context

Platform accounts and their behavioural feature snapshots.
"""

from game_recommender.domain.players.entities import Player, PlayerFeatures
from game_recommender.domain.players.repository import PlayerFeatureRepository, PlayerRepository

__all__ = [
    "Player",
    "PlayerFeatures",
    "PlayerRepository",
    "PlayerFeatureRepository",
]

"""SQLite implementation of the player repository."""

from __future__ import annotations

from game_recommender.domain.players.entities import Player
from game_recommender.domain.players.repository import PlayerRepository
from game_recommender.domain.shared.constants import DatabaseTables

from .base import SQLiteRepository


class SQLitePlayerRepository(SQLiteRepository[Player, int], PlayerRepository):
    table = DatabaseTables.PLAYERS
    key_column = "player_id"
    entity_type = Player

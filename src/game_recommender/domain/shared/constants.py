"""Shared constants: table names, SQLite pragmas, context tags and cache keys."""

from __future__ import annotations


class DatabaseTables:
    """Database table names.

    Centralizing table names prevents typos in SQL queries and makes
    schema changes easier to track.
    """

    PLAYERS = "players"
    PLAYER_FEATURES = "player_features"
    ITEM_FEATURES = "item_features"
    ITEM_OVERRIDES = "item_override_settings"
    RECOMMENDATIONS = "recommendations"
    INTERACTIONS = "recommendation_interactions"
    EXPERIMENTS = "experiments"
    EXPERIMENT_ASSIGNMENTS = "experiment_assignments"


class SQLPragmas:
    """SQLite PRAGMA statements applied to each connection."""

    JOURNAL_MODE_WAL = "PRAGMA journal_mode=WAL"
    FOREIGN_KEYS_ON = "PRAGMA foreign_keys=ON"
    BUSY_TIMEOUT = "PRAGMA busy_timeout={timeout}"
    TABLE_INFO = "PRAGMA table_info({table})"


class ContextTags:
    """Well-known request context tags."""

    LOBBY = "lobby"
    GAME_END = "game_end"
    PROMOTION = "promotion"
    AB_TEST = "abtest"


class CacheKeys:
    """Cache key templates and invalidation patterns."""

    RECOMMENDATIONS = "recommendations:{player_id}:{context}:{fingerprint}"
    RECOMMENDATIONS_ALL = "recommendations:*"
    ITEM_CATALOG = "item_features:all"
    ITEM_OVERRIDES_ALL = "item_overrides:all"
    ITEM_OVERRIDE = "item_overrides:{item_id}"
    ITEM_OVERRIDES_PATTERN = "item_overrides:*"
    STRATEGY_RANKING = "strategy_ranking:{days}:{context}"
    STRATEGY_RANKING_ALL = "strategy_ranking:*"


class PipelineContextKeys:
    """Keys written into the recommendation pipeline context."""

    REQUEST = "request"
    PLAYER = "player"
    PLAYER_FEATURES = "player_features"
    FEATURES_SYNTHESIZED = "features_synthesized"
    ITEM_FEATURES = "item_features"
    ITEM_OVERRIDES = "item_overrides"
    SELECTED_STRATEGY = "selected_strategy"
    SELECTION = "selection"
    GENERATION_MS = "generation_ms"
    CACHE_KEY = "cache_key"
    SKIP_CACHE_LOOKUP = "skip_cache_lookup"
    CACHE_HIT = "cache_hit"


class MetadataKeys:
    """Keys stored in a recommendation's metadata map."""

    GENERATION_MS = "generation_ms"
    SELECTION_REASON = "selection_reason"
    EXPERIMENT = "experiment"

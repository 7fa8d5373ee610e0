"""Application Settings and Configuration

Pydantic-based settings management using environment variables.
Settings are loaded from environment variables with support for .env files,
type validation, and sensible defaults. All settings are frozen and immutable
after initialization.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..domain.shared.constants import ContextTags
from ..domain.shared.messages import ErrorMessages
from ..domain.shared.types import BusyTimeoutMs, ConnectionTimeoutS, TtlSeconds
from ..domain.strategies.base import StrategyKind
from ..domain.strategies.registry import DEFAULT_HYBRID_WEIGHTS


class DatabaseSettings(BaseModel):
    """Database configuration."""

    model_config = SettingsConfigDict(frozen=True, populate_by_name=True)

    url: str = Field(
        default="sqlite:///data/recommender.db",
        validation_alias=AliasChoices("url", "database_url", "db_url"),
    )
    busy_timeout_ms: BusyTimeoutMs = Field(
        default=5000,
        validation_alias=AliasChoices("busy_timeout_ms", "busy_timeout"),
    )
    connection_timeout_s: ConnectionTimeoutS = Field(
        default=10,
        validation_alias=AliasChoices("connection_timeout_s", "connection_timeout"),
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith("sqlite://"):
            raise ValueError(ErrorMessages.INVALID_DATABASE_URL)
        return v


class CacheSettings(BaseModel):
    """Cache lifetimes. A TTL of 0 disables caching for that read."""

    model_config = SettingsConfigDict(frozen=True)

    recommendation_ttl_seconds: TtlSeconds = 300
    item_catalog_ttl_seconds: TtlSeconds = 600
    override_ttl_seconds: TtlSeconds = 600
    ranking_ttl_seconds: TtlSeconds = 900


class SelectionSettings(BaseModel):
    """Strategy selection heuristics."""

    model_config = SettingsConfigDict(frozen=True)

    cold_start_games_threshold: int = Field(default=5, ge=0)
    high_activity_games_threshold: int = Field(default=50, ge=1)
    high_activity_sessions_threshold: int = Field(default=20, ge=1)
    broad_preference_threshold: int = Field(default=3, ge=1)
    context_defaults: dict[str, str] = Field(
        default_factory=lambda: {
            ContextTags.LOBBY: StrategyKind.HYBRID.value,
            ContextTags.GAME_END: StrategyKind.CONTENT_BASED.value,
            ContextTags.PROMOTION: StrategyKind.POPULARITY_BASED.value,
        }
    )
    fallback_algorithm: str = StrategyKind.COLLABORATIVE_FILTERING.value
    hybrid_weights: dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_HYBRID_WEIGHTS))

    @field_validator("hybrid_weights")
    @classmethod
    def validate_weights(cls, v: dict[str, float]) -> dict[str, float]:
        if any(w < 0 for w in v.values()) or sum(v.values()) <= 0:
            raise ValueError(ErrorMessages.INVALID_WEIGHTS)
        return v


class PipelineSettings(BaseModel):
    """Recommendation pipeline business rules."""

    model_config = SettingsConfigDict(frozen=True)

    min_score: float = Field(default=0.1, ge=0.0, le=1.0)
    max_per_provider: int = Field(default=3, ge=1)
    max_per_category: int = Field(default=3, ge=1)
    diversify_min_candidates: int = Field(default=5, ge=0)
    request_timeout_s: float = Field(default=10.0, gt=0)


class BanditSettings(BaseModel):
    """Exploration rates for the bandit strategy."""

    model_config = SettingsConfigDict(frozen=True)

    exploration_rate: float = Field(default=0.1, ge=0.0, le=1.0)
    new_player_exploration_rate: float = Field(default=0.3, ge=0.0, le=1.0)


class ModelServingSettings(BaseModel):
    """Remote model endpoint used by the deep-learning strategy."""

    model_config = SettingsConfigDict(frozen=True, populate_by_name=True)

    url: str = Field(default="", validation_alias=AliasChoices("url", "endpoint"))
    timeout_s: float = Field(default=2.0, gt=0, le=60)
    model_version: str = "1.0"

    @property
    def enabled(self) -> bool:
        return bool(self.url)


class RankingSettings(BaseModel):
    """Strategy ranking defaults."""

    model_config = SettingsConfigDict(frozen=True)

    default_window_days: int = Field(default=7, ge=1, le=365)


class Settings(BaseSettings):
    """Application settings container.

    Automatically loads configuration from environment variables.

    Environment variable naming:
    - ENVIRONMENT, DEBUG, LOG_LEVEL (top-level)
    - DATABASE__URL, CACHE__RECOMMENDATION_TTL_SECONDS, etc. (nested sections)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    selection: SelectionSettings = Field(default_factory=SelectionSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    bandit: BanditSettings = Field(default_factory=BanditSettings)
    model_serving: ModelServingSettings = Field(default_factory=ModelServingSettings)
    ranking: RankingSettings = Field(default_factory=RankingSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(
                ErrorMessages.INVALID_LOG_LEVEL.format(level=v, valid_levels=sorted(valid_levels))
            )
        return v_upper


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are automatically loaded from:
    1. .env file (if present)
    2. Environment variables
    3. Default values
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()

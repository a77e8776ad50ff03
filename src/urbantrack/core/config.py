"""Application configuration loaded from environment variables."""

from __future__ import annotations

from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings

from urbantrack.core.constants import (
    BADGE_MILESTONES_METERS,
    CHALLENGE_BONUS_PER_KM,
    DEFAULT_CHALLENGES,
    DEFAULT_DATA_FILE,
    MAX_SPEED_KMH,
    POINTS_PER_KM,
    RECENT_HISTORY_CAPACITY,
    SAVE_INTERVAL_SECONDS,
)


class Settings(BaseSettings):
    """UrbanTrack application settings."""

    # App
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 3000
    log_level: str = "INFO"
    log_format: str = "text"  # "text" or "json"
    static_dir: str | None = None  # Built client, served at "/"

    # CORS
    cors_origins: str = "*"  # Comma-separated origins; "*" for dev only

    # Rate Limiting (requests per minute, HTTP API only)
    rate_limit_anonymous: int = 60

    # Engine
    max_speed_kmh: float = MAX_SPEED_KMH
    points_per_km: int = POINTS_PER_KM
    badge_milestones_m: list[int] = Field(
        default_factory=lambda: list(BADGE_MILESTONES_METERS)
    )
    challenge_bonus_per_km: int = CHALLENGE_BONUS_PER_KM
    history_capacity: int = RECENT_HISTORY_CAPACITY
    challenges: list[dict[str, Any]] = Field(
        default_factory=lambda: [dict(c) for c in DEFAULT_CHALLENGES]
    )

    # Persistence
    data_file: str = DEFAULT_DATA_FILE
    save_interval_seconds: float = SAVE_INTERVAL_SECONDS

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_testing(self) -> bool:
        return self.app_env == "testing"

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


def get_settings() -> Settings:
    """Return a fresh settings instance."""
    return Settings()

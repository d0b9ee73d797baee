"""Application settings via pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from bossraid.exceptions import ConfigurationError

ENV_PREFIX = "RAIDSYNC_"


class Settings(BaseSettings):
    """Configuration loaded from environment variables with RAIDSYNC_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        case_sensitive=False,
    )

    # --- Core ---
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"
    database_url: str = ""
    redis_url: str = "redis://localhost:6379/0"
    log_level: str = "INFO"
    log_format: str = "json"

    # --- Delivery log source ---
    delivery_log_path: str = ""

    # --- Sync scheduling ---
    sync_lock_ttl_seconds: int = 1800  # 30 minutes
    sync_cron_hour: int = 18  # 03:00 KST
    sync_cron_minute: int = 0

    # --- Rewards ---
    first_place_reward: str = "1등 보상: 스타벅스 기프티콘 5만원권"
    rank_badge_template: str = "{rank}등 달성 배지"
    participation_badge: str = "레이드 참여 배지"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


def require_sync_settings(settings: Settings) -> None:
    """Fail fast before a sync run when required settings are missing."""
    missing = [
        f"{ENV_PREFIX}{name.upper()}"
        for name in ("database_url", "delivery_log_path")
        if not getattr(settings, name)
    ]
    if missing:
        raise ConfigurationError(
            f"Missing required configuration: {', '.join(missing)}"
        )

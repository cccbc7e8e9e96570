from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Logging
    LOG_LEVEL: str = "INFO"

    # Zone used when a caller does not supply one; host zone when unset
    DEFAULT_TIMEZONE: str | None = None

    # =================================================================
    # SCHEDULING DEFAULTS - applied when user preferences omit them
    # =================================================================
    MINIMUM_GAP_MINUTES: int = 20
    OPTIMAL_GAP_MINUTES: int = 1440  # 24 hours

    MAX_SNOOZE_ATTEMPTS: int = 4

    # Pattern learning
    PATTERN_MIN_CONFIDENCE: float = 0.5
    PATTERN_MAX_AGE_DAYS: int = 30
    PATTERN_ANALYSIS_WINDOW_DAYS: int = 90

    # Redis settings (pattern cache)
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 20
    PATTERN_CACHE_KEY_PREFIX: str = "checkin:scheduling_history"
    PATTERN_CACHE_TTL_SECONDS: int | None = None

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()

# =================================================================
# QUICK CONFIGURATION REFERENCE
# =================================================================
"""
Gap defaults appear with different values across older call sites
(20, 30 and 540 minutes). MINIMUM_GAP_MINUTES is the single source:

STRICT (few reminders, well spread):
    MINIMUM_GAP_MINUTES=30

DEFAULT:
    MINIMUM_GAP_MINUTES=20

ONE CALL PER WORKING DAY:
    MINIMUM_GAP_MINUTES=540
"""

"""
Runtime settings for the scoring backend.

Values come from the environment (a .env file is loaded first). Retry
tunables drive the score recorder's backoff.
"""
import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()


def get_int_env(key: str, default: int) -> int:
    """Get an integer value from environment variable."""
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    return int(value)


def get_list_env(key: str) -> List[str]:
    """Comma-separated environment variable as a list, blanks dropped."""
    return [item.strip() for item in os.getenv(key, "").split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: str = field(
        default_factory=lambda: os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./zgames.db")
    )
    redis_url: str = field(
        default_factory=lambda: os.getenv("REDIS_URL", "redis://localhost:6379/0")
    )
    environment: str = field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    allowed_origins: List[str] = field(default_factory=lambda: get_list_env("ALLOWED_ORIGINS"))

    # Score recorder retry policy
    scoring_max_attempts: int = field(
        default_factory=lambda: get_int_env("SCORING_MAX_ATTEMPTS", 3)
    )
    scoring_backoff_base_ms: int = field(
        default_factory=lambda: get_int_env("SCORING_BACKOFF_BASE_MS", 100)
    )
    scoring_backoff_jitter_ms: int = field(
        default_factory=lambda: get_int_env("SCORING_BACKOFF_JITTER_MS", 100)
    )

    # slowapi limit string for score submissions
    score_rate_limit: str = field(
        default_factory=lambda: os.getenv("SCORE_RATE_LIMIT", "60/minute")
    )


settings = Settings()

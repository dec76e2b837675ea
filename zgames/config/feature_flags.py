"""
Feature Flags Configuration

Centralized feature flag management for the scoring backend.
All feature flags are loaded from environment variables.
"""
import os


def get_bool_env(key: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on', 'enabled')


class FeatureFlags:
    """
    Feature flags for the application.

    To add a new feature flag:
    1. Add it here as a class property
    2. Load it from environment variable
    3. Use it in your code
    """

    # Fan out leaderboard events through Redis pub/sub instead of in-process queues
    FEATURE_REDIS_BROADCAST: bool = get_bool_env('FEATURE_REDIS_BROADCAST', False)

    # Retry every failed scoring attempt, including validation and not-found errors
    FEATURE_SCORING_RETRY_ALL_ERRORS: bool = get_bool_env('FEATURE_SCORING_RETRY_ALL_ERRORS', False)

    @classmethod
    def get_all_flags(cls) -> dict:
        """Get all feature flags as a dictionary."""
        return {
            key: value
            for key, value in cls.__dict__.items()
            if not key.startswith('_') and isinstance(value, bool)
        }


# Singleton instance for easy importing
feature_flags = FeatureFlags()

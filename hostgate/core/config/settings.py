"""Main settings and configuration management.

This module composes the settings from the different modules (app, redis,
rate limiting) into a single `Settings` class and exposes a `settings`
singleton loaded from environment variables and .env files.

Environment Support:
- Development: Uses .env
- Test: Uses .env.test when present
- Staging: Uses .env.staging when present
- Production: Uses .env.production when present
"""

import logging
import os
from pathlib import Path

from pydantic_settings import SettingsConfigDict

from .app import AppSettings
from .rate_limiting import RateLimitingSettings
from .redis import RedisSettings

logger = logging.getLogger(__name__)


class Settings(AppSettings, RedisSettings, RateLimitingSettings):
    """The main settings class that aggregates all configurations.

    Usage:
        - Access settings via the singleton instance `settings`, or build a
          fresh `Settings(...)` when wiring components explicitly (tests).
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )


def create_settings() -> Settings:
    """Create settings instance with environment-specific configuration.

    Returns:
        Settings: Configured settings instance
    """
    env = os.getenv("APP_ENV", "development")

    env_files = {
        "development": ".env",
        "test": ".env.test",
        "staging": ".env.staging",
        "production": ".env.production",
    }

    env_file = env_files.get(env, ".env")

    if env != "development" and Path(env_file).exists():
        logger.info(f"Loading environment configuration from {env_file}")
        return Settings(_env_file=env_file)
    if Path(".env").exists():
        logger.info(f"Loading environment configuration from .env (environment: {env})")
    else:
        logger.debug(f"No .env file found, using environment variables only (environment: {env})")
    return Settings()


# Singleton instance of the settings used across the package.
settings = create_settings()

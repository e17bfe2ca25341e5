"""Process initialization and wiring.

Loads environment variables, configures logging, and builds a Getter whose
admission controller carries the configured rules and, when rate limiting is
enabled, a Redis-backed counter store.
"""

from typing import Optional

import structlog
from dotenv import load_dotenv
from redis.asyncio import Redis

from hostgate.adapters.http.getter import Getter
from hostgate.core.config.settings import Settings, create_settings
from hostgate.core.logging import configure_logging
from hostgate.domain.rate_limiting.services import AdmissionController, RuleRegistry
from hostgate.infrastructure.redis import create_counter_store

logger = structlog.get_logger(__name__)


def initialize_application() -> Settings:
    """Load .env into the environment, configure logging and return fresh settings."""
    load_dotenv(override=True)
    settings = create_settings()
    configure_logging(log_level=settings.LOG_LEVEL, json_logs=settings.LOG_JSON)
    return settings


def create_getter(settings: Optional[Settings] = None, redis: Optional[Redis] = None) -> Getter:
    """
    Build a Getter from configuration.

    The rule registry is complete when this returns; add further rules before
    sharing the getter between tasks.

    Args:
        settings: Configuration to use, defaults to freshly loaded settings
        redis: Existing Redis client to share, defaults to one built from settings
    """
    settings = settings or create_settings()
    registry = RuleRegistry.from_entries(settings.rate_limit_rules)
    controller = AdmissionController(registry=registry)
    if settings.RATE_LIMIT_ENABLED:
        controller.set_store(create_counter_store(settings, redis))
    else:
        logger.warning("rate_limit_disabled", rules=len(registry))
    return Getter(
        controller=controller,
        timeout=settings.HTTP_TIMEOUT,
        user_agent=settings.HTTP_USER_AGENT,
    )

"""
Redis Connection Module

Builds the asynchronous Redis client holding the shared rate limit counters,
and the counter store wrapping it.

**Security Note**: Ensure that the Redis connection URL (REDIS_URL) uses
rediss:// when connecting over an untrusted network. Avoid logging connection
details, which may contain the password.

Functions:
    create_redis: Returns a Redis client built from settings.
    create_counter_store: Returns a RedisCounterStore built from settings.
    get_redis: Async generator yielding a client and closing it afterwards.
"""

from typing import AsyncIterator, Optional

import structlog
from redis.asyncio import Redis

from hostgate.core.config.settings import Settings, settings as default_settings
from hostgate.domain.rate_limiting.repositories import RedisCounterStore

logger = structlog.get_logger(__name__)


def create_redis(settings: Optional[Settings] = None) -> Redis:
    """
    Creates an asynchronous Redis client.

    Socket timeouts follow RATE_LIMIT_CACHE_TIMEOUT so a partitioned Redis
    fails fast instead of hanging the caller.
    """
    settings = settings or default_settings
    redis = Redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.RATE_LIMIT_CACHE_TIMEOUT,
        socket_connect_timeout=settings.RATE_LIMIT_CACHE_TIMEOUT,
    )
    logger.debug("redis_client_created")
    return redis


def create_counter_store(
    settings: Optional[Settings] = None, redis: Optional[Redis] = None
) -> RedisCounterStore:
    settings = settings or default_settings
    client = redis if redis is not None else create_redis(settings)
    return RedisCounterStore(client, timeout=settings.RATE_LIMIT_CACHE_TIMEOUT)


async def get_redis(settings: Optional[Settings] = None) -> AsyncIterator[Redis]:
    """
    Provides an asynchronous Redis client and closes it after use.

    Yields:
        Redis: An asynchronous Redis client instance.
    """
    redis = create_redis(settings)
    try:
        yield redis
    finally:
        await redis.aclose()
        logger.debug("redis_client_closed")

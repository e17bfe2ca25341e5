"""
Rate Limiting Domain Repositories

The contract for the shared counter store consulted by the coordinator, and
its Redis implementation.

Repositories:
- CounterStore: get / atomic increment / expire over string keys
- RedisCounterStore: CounterStore backed by `redis.asyncio`
- UnconfiguredCounterStore: Explicit "no cache wired" variant

Design Principles:
- Dependency Inversion: The coordinator depends on the CounterStore contract
- Bounded calls: every round-trip is limited by a timeout
- Error translation: backend failures surface as CounterStoreError subclasses
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Optional, TypeVar

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

T = TypeVar("T")


class CounterStoreError(Exception):
    """Base exception for counter store operations"""
    pass


class CounterStoreConnectionError(CounterStoreError):
    """Exception raised when the store cannot be reached"""
    pass


class CounterStoreTimeoutError(CounterStoreError):
    """Exception raised when a store operation exceeds its timeout"""
    pass


class CounterStore(ABC):
    """
    Repository interface for shared window counters.

    Implementations must make `incr` a true atomic read-modify-write across
    every process sharing the store; it is the only serialization point.
    """

    @property
    def configured(self) -> bool:
        """False for the variant standing in for "no store wired"."""
        return True

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Read a counter.

        Returns:
            The raw stored value, or None when the key is absent.

        Raises:
            CounterStoreError: When the operation fails
        """
        pass

    @abstractmethod
    async def incr(self, key: str) -> int:
        """
        Atomically increment a counter, creating it at 1 when absent.

        Raises:
            CounterStoreError: When the operation fails
        """
        pass

    @abstractmethod
    async def expire(self, key: str, seconds: int) -> bool:
        """
        Set or refresh a counter's time-to-live.

        Returns:
            True if the key existed and its TTL was set.

        Raises:
            CounterStoreError: When the operation fails
        """
        pass


class UnconfiguredCounterStore(CounterStore):
    """Placeholder store used until a real one is wired.

    The coordinator checks `configured` and admits without calling it.
    """

    @property
    def configured(self) -> bool:
        return False

    async def get(self, key: str) -> Optional[str]:
        raise CounterStoreConnectionError("counter store is not configured")

    async def incr(self, key: str) -> int:
        raise CounterStoreConnectionError("counter store is not configured")

    async def expire(self, key: str, seconds: int) -> bool:
        raise CounterStoreConnectionError("counter store is not configured")


class RedisCounterStore(CounterStore):
    """
    A concrete CounterStore using Redis GET, INCR and EXPIRE.

    Each command is a single round-trip issued with `asyncio.wait_for`, so a
    slow or partitioned Redis raises CounterStoreTimeoutError instead of
    blocking the caller. Cancelling the awaiting task cancels the command.
    """

    def __init__(self, redis_client: redis.Redis, timeout: Optional[float] = 1.0):
        """
        Initialize the Redis-based counter store.

        Args:
            redis_client (redis.Redis): The async Redis client instance.
            timeout (Optional[float]): Seconds allowed per command, None for no bound.
        """
        self.redis = redis_client
        self.timeout = timeout

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, self.timeout)
        except (asyncio.TimeoutError, RedisTimeoutError) as e:
            raise CounterStoreTimeoutError(f"redis {operation} timed out") from e
        except (RedisConnectionError, OSError) as e:
            raise CounterStoreConnectionError(f"redis {operation} failed: {e}") from e
        except RedisError as e:
            raise CounterStoreError(f"redis {operation} failed: {e}") from e

    async def get(self, key: str) -> Optional[str]:
        value: Any = await self._call("GET", self.redis.get(key))
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return value

    async def incr(self, key: str) -> int:
        return int(await self._call("INCR", self.redis.incr(key)))

    async def expire(self, key: str, seconds: int) -> bool:
        return bool(await self._call("EXPIRE", self.redis.expire(key, seconds)))

"""
Rate Limiting Domain Services

Services that turn registered rules and a shared counter store into
admission decisions for outbound requests.

Services:
- RuleRegistry: Ordered, append-only rule collection; first match wins
- CounterCoordinator: The get / increment / expire protocol on the shared store
- AdmissionController: "Is this destination currently rate limited?"

Concurrency:
- No in-process locks guard counters; the store's atomic increment is the
  only serialization point, so any number of tasks or processes may share it.
- A RuleRegistry must be fully built before it is read concurrently.
"""

from __future__ import annotations

import asyncio
import re
import time
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

import structlog

from hostgate.core.exceptions import (
    InvalidHostPatternError,
    RateLimitingDownError,
    RateLimitingInvalidError,
)

from .entities import AdmissionReason, AdmissionResult
from .repositories import CounterStore, CounterStoreError, UnconfiguredCounterStore
from .value_objects import Rule

logger = structlog.get_logger(__name__)

_COUNTER = re.compile(r"[+-]?[0-9]+")


class RuleRegistry:
    """
    Ordered collection of admission rules.

    Rules are appended during start-up and never removed or reordered.
    Precedence is insertion order, not specificity.
    """

    def __init__(self, rules: Iterable[Rule] = ()):
        self._rules: List[Rule] = list(rules)

    @classmethod
    def from_entries(cls, entries: Iterable[Tuple[str, str, int]]) -> RuleRegistry:
        """Build a registry from ``(host_pattern, window_spec, limit)`` entries."""
        registry = cls()
        for host_pattern, window_spec, limit in entries:
            registry.add_rule(host_pattern, window_spec, limit)
        return registry

    @property
    def rules(self) -> Tuple[Rule, ...]:
        return tuple(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def add_rule(self, host_pattern: str, window_spec: str, limit: int) -> Rule:
        """
        Register a rule for destinations whose host contains `host_pattern`.

        Args:
            host_pattern: Non-empty host substring
            window_spec: Window duration, e.g. "1s" or "1h"
            limit: Maximum admitted requests per window, at least 1

        Returns:
            The registered Rule

        Raises:
            InvalidHostPatternError: If the pattern is empty
            InvalidWindowSpecError: If the window spec is empty or malformed
            InvalidLimitError: If the limit is not a positive integer
        """
        if not host_pattern:
            raise InvalidHostPatternError()
        rule = Rule.from_spec(host_pattern, window_spec, limit)
        self._rules.append(rule)
        logger.info(
            "rate_limit_added",
            host=host_pattern,
            bucket=window_spec,
            count=limit,
        )
        return rule

    def resolve(self, destination_url: str) -> Optional[Rule]:
        """
        Return the first rule matching the destination, or None.

        Raises:
            MalformedDestinationError: If the destination is not an absolute URL
        """
        for rule in self._rules:
            if rule.match(destination_url):
                return rule
        logger.debug("rate_limit_not_configured_for_host", destination=destination_url)
        return None


class CounterCoordinator:
    """
    Runs the check-increment-expire protocol against a shared store.

    The request that pushes a counter past its limit is denied but its
    increment is kept, so under concurrent load a counter may overshoot the
    limit by the number of callers that passed the read at the same time.
    """

    async def evaluate(
        self, rule: Rule, store: CounterStore, now: Optional[float] = None
    ) -> bool:
        """Return True if a request governed by `rule` must be denied."""
        return (await self.check(rule, store, now)).limited

    async def check(
        self, rule: Rule, store: CounterStore, now: Optional[float] = None
    ) -> AdmissionResult:
        """
        Evaluate `rule` against the shared store.

        Raises:
            RateLimitingDownError: When the store fails or times out
            RateLimitingInvalidError: When the stored counter is not an integer
        """
        if not store.configured:
            logger.error(
                "rate_limit_cache_not_configured",
                host=rule.host_pattern,
                hint="Use Getter.set_cache to link redis to the getter",
            )
            return AdmissionResult(reason=AdmissionReason.CACHE_NOT_CONFIGURED, rule=rule)

        key = rule.bucket_key(now)

        try:
            value = await store.get(key)
        except CounterStoreError as e:
            logger.error("rate_limit_cache_error", operation="get", key=key, error=str(e))
            raise RateLimitingDownError() from e

        count = 0
        if value:
            if not _COUNTER.fullmatch(value):
                logger.error("rate_limit_invalid_counter", key=key, value=value)
                raise RateLimitingInvalidError()
            count = int(value)

        if count > rule.limit:
            logger.warning("rate_limit_exceeded", key=key, count=count, limit=rule.limit)
            return AdmissionResult(
                reason=AdmissionReason.SATURATED, rule=rule, key=key, count=count
            )

        try:
            count = await store.incr(key)
        except CounterStoreError as e:
            logger.error("rate_limit_cache_error", operation="incr", key=key, error=str(e))
            raise RateLimitingDownError() from e

        if count > rule.limit:
            logger.warning("rate_limit_exceeded", key=key, count=count, limit=rule.limit)
            return AdmissionResult(
                reason=AdmissionReason.OVER_LIMIT, rule=rule, key=key, count=count
            )

        try:
            await store.expire(key, rule.expiry_seconds)
        except CounterStoreError as e:
            logger.error("rate_limit_cache_error", operation="expire", key=key, error=str(e))
            raise RateLimitingDownError() from e

        return AdmissionResult(reason=AdmissionReason.ADMITTED, rule=rule, key=key, count=count)


class AdmissionController:
    """
    Entry point consulted immediately before each outbound request.

    Rate limiting is opt-in per host: destinations without a rule are always
    admitted. Without a configured store every destination is admitted.
    """

    def __init__(
        self,
        registry: Optional[RuleRegistry] = None,
        store: Optional[CounterStore] = None,
        timeout: Optional[float] = None,
        coordinator: Optional[CounterCoordinator] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            registry: Rules to enforce; an empty registry admits everything
            store: Shared counter store; defaults to the unconfigured variant
            timeout: Deadline in seconds for a whole evaluation, None for none
            coordinator: Protocol implementation, mainly for tests
            clock: Source of epoch seconds used to pick the window
        """
        self.registry = registry if registry is not None else RuleRegistry()
        self.store = store if store is not None else UnconfiguredCounterStore()
        self.timeout = timeout
        self.coordinator = coordinator or CounterCoordinator()
        self.clock = clock

    def set_store(self, store: Optional[CounterStore]) -> None:
        self.store = store if store is not None else UnconfiguredCounterStore()

    def add_rate_limit(self, host_pattern: str, window_spec: str, limit: int) -> Rule:
        return self.registry.add_rule(host_pattern, window_spec, limit)

    async def is_limited(self, destination_url: str, timeout: Optional[float] = None) -> bool:
        """
        Return True if the destination must not be contacted right now.

        Raises:
            MalformedDestinationError: If the destination is not an absolute URL
            RateLimitingDownError: When the store fails or the deadline passes
            RateLimitingInvalidError: When the stored counter is corrupted
        """
        return (await self.check(destination_url, timeout)).limited

    async def check(
        self, destination_url: str, timeout: Optional[float] = None
    ) -> AdmissionResult:
        """Like `is_limited`, but returns the full AdmissionResult."""
        rule = self.registry.resolve(destination_url)
        if rule is None:
            return AdmissionResult.unlimited()

        evaluation = self.coordinator.check(rule, self.store, self.clock())
        deadline = timeout if timeout is not None else self.timeout
        if deadline is None:
            return await evaluation
        try:
            return await asyncio.wait_for(evaluation, deadline)
        except asyncio.TimeoutError as e:
            logger.error(
                "rate_limit_cache_error",
                operation="check",
                host=rule.host_pattern,
                error="deadline exceeded",
            )
            raise RateLimitingDownError() from e

"""hostgate: per-host rate limits for outbound HTTP requests, shared through Redis."""

from hostgate.adapters.http.getter import FetchRequest, FetchResponse, Getter
from hostgate.core.exceptions import (
    ErrorKind,
    HostgateError,
    MalformedDestinationError,
    RateLimitedError,
    RateLimitingDownError,
    RateLimitingInvalidError,
)
from hostgate.domain.rate_limiting import (
    AdmissionController,
    CounterCoordinator,
    RedisCounterStore,
    Rule,
    RuleRegistry,
)

__version__ = "0.1.0"

__all__ = [
    "AdmissionController",
    "CounterCoordinator",
    "ErrorKind",
    "FetchRequest",
    "FetchResponse",
    "Getter",
    "HostgateError",
    "MalformedDestinationError",
    "RateLimitedError",
    "RateLimitingDownError",
    "RateLimitingInvalidError",
    "RedisCounterStore",
    "Rule",
    "RuleRegistry",
]

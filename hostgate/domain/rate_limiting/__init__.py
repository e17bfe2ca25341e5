"""Host Admission Domain

Per-host fixed-window rate limiting for outbound requests, coordinated through
a shared counter store:

- Value Objects: Rule, WindowSpec
- Entities: AdmissionResult, AdmissionReason
- Repositories: CounterStore contract and its Redis implementation
- Services: RuleRegistry, CounterCoordinator, AdmissionController
"""

from .entities import AdmissionReason, AdmissionResult
from .repositories import (
    CounterStore,
    CounterStoreConnectionError,
    CounterStoreError,
    CounterStoreTimeoutError,
    RedisCounterStore,
    UnconfiguredCounterStore,
)
from .services import AdmissionController, CounterCoordinator, RuleRegistry
from .value_objects import Rule, WindowSpec

__all__ = [
    "Rule",
    "WindowSpec",
    "AdmissionReason",
    "AdmissionResult",
    "CounterStore",
    "CounterStoreError",
    "CounterStoreConnectionError",
    "CounterStoreTimeoutError",
    "RedisCounterStore",
    "UnconfiguredCounterStore",
    "RuleRegistry",
    "CounterCoordinator",
    "AdmissionController",
]

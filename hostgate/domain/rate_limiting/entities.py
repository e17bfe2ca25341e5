"""
Rate Limiting Entities

Result objects describing an admission decision and how it was reached.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .value_objects import Rule


class AdmissionReason(Enum):
    """Why a destination was admitted or denied."""
    NO_RULE = "no_rule"
    CACHE_NOT_CONFIGURED = "cache_not_configured"
    SATURATED = "saturated"
    OVER_LIMIT = "over_limit"
    ADMITTED = "admitted"

    @property
    def limited(self) -> bool:
        return self in (AdmissionReason.SATURATED, AdmissionReason.OVER_LIMIT)


@dataclass(frozen=True)
class AdmissionResult:
    """
    Outcome of one admission check.

    Attributes:
        reason: How the decision was reached
        rule: The governing rule, if any
        key: The bucket key consulted, if the shared counter was read
        count: The counter value observed (read value when saturated,
            post-increment value otherwise)
    """
    reason: AdmissionReason
    rule: Optional[Rule] = None
    key: Optional[str] = None
    count: Optional[int] = None

    @property
    def limited(self) -> bool:
        return self.reason.limited

    @property
    def remaining(self) -> Optional[int]:
        """Requests still admissible in the current window, when known."""
        if self.rule is None or self.count is None:
            return None
        return max(0, self.rule.limit - self.count)

    @classmethod
    def unlimited(cls) -> AdmissionResult:
        return cls(reason=AdmissionReason.NO_RULE)

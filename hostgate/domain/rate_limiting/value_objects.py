"""
Rate Limiting Value Objects

Immutable value objects representing the core concepts of host admission
control.

Value Objects:
- WindowSpec: A parsed, human-readable window duration ("1s", "1h30m")
- Rule: A host pattern, a fixed window and a per-window limit

Design Principles:
- Immutability: All value objects are immutable after creation
- Validation: Invariants enforced at construction time
- Equality: Value-based equality
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from fractions import Fraction
from typing import ClassVar, Optional
from urllib.parse import urlsplit

from hostgate.core.exceptions import (
    InvalidHostPatternError,
    InvalidLimitError,
    InvalidWindowSpecError,
    MalformedDestinationError,
)

KEY_NAMESPACE = "rate"
KEY_SEPARATOR = "."

_NANOSECONDS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

_COMPONENT = re.compile(r"(\d*(?:\.\d*)?)([a-zµμ]+)")


@dataclass(frozen=True, slots=True)
class WindowSpec:
    """
    A window duration parsed from a duration string.

    Accepts sequences of decimal numbers with unit suffixes, such as "1s",
    "2000ms", "1.5h" or "1h30m". Valid units are "ns", "us" (or "µs"), "ms",
    "s", "m" and "h". The total must be a positive whole number of seconds,
    so "1500ms" is rejected.
    """
    text: str
    seconds: int

    @classmethod
    def parse(cls, text: str) -> WindowSpec:
        if not text or not text.strip():
            raise InvalidWindowSpecError("bucket should not be empty")
        spec = text.strip()
        body = spec
        negative = False
        if body[0] in "+-":
            negative = body[0] == "-"
            body = body[1:]

        if body == "0":
            raise InvalidWindowSpecError(f"window must be positive: {text!r}")

        total = Fraction(0)
        position = 0
        while position < len(body):
            component = _COMPONENT.match(body, position)
            if component is None or component.group(1) in ("", "."):
                raise InvalidWindowSpecError(f"invalid duration {text!r}")
            number, unit = component.groups()
            if unit not in _NANOSECONDS:
                raise InvalidWindowSpecError(f"unknown unit {unit!r} in duration {text!r}")
            total += Fraction(number) * _NANOSECONDS[unit]
            position = component.end()

        if negative or total <= 0:
            raise InvalidWindowSpecError(f"window must be positive: {text!r}")
        seconds = total / _NANOSECONDS["s"]
        if seconds.denominator != 1:
            raise InvalidWindowSpecError(f"window must be a whole number of seconds: {text!r}")
        return cls(text=spec, seconds=int(seconds))


@dataclass(frozen=True, slots=True)
class Rule:
    """
    Immutable admission policy for destinations whose host contains
    `host_pattern`.

    At most `limit` requests are admitted per aligned window of
    `window_seconds`. Matching is substring containment, so "nseindia.com"
    governs "www1.nseindia.com" as well; choose distinguishing patterns when
    hosts must be isolated.

    Attributes:
        host_pattern: Substring matched against the destination host
        window_seconds: Fixed window size in whole seconds
        limit: Maximum admitted requests per window
    """
    host_pattern: str
    window_seconds: int
    limit: int

    EXPIRY_MULTIPLIER: ClassVar[int] = 4

    def __post_init__(self):
        if not self.host_pattern:
            raise InvalidHostPatternError()
        if isinstance(self.window_seconds, bool) or not isinstance(self.window_seconds, int):
            raise InvalidWindowSpecError("window must be a whole number of seconds")
        if self.window_seconds <= 0:
            raise InvalidWindowSpecError("window must be positive")
        if isinstance(self.limit, bool) or not isinstance(self.limit, int):
            raise InvalidLimitError("count should be an integer")
        if self.limit <= 0:
            raise InvalidLimitError("count should not be empty")

    @classmethod
    def from_spec(cls, host_pattern: str, window_spec: str, limit: int) -> Rule:
        """Create a rule from a window duration string such as "1s" or "1h"."""
        if not host_pattern:
            raise InvalidHostPatternError()
        window = WindowSpec.parse(window_spec)
        return cls(host_pattern=host_pattern, window_seconds=window.seconds, limit=limit)

    @property
    def expiry_seconds(self) -> int:
        """Lifetime given to a bucket counter after each admitted increment."""
        return self.EXPIRY_MULTIPLIER * self.window_seconds

    @staticmethod
    def host_from_url(destination_url: str) -> str:
        """
        Extract the host (with port, without credentials) from an absolute URL.

        Raises:
            MalformedDestinationError: If the URL has no scheme or host.
        """
        try:
            parts = urlsplit(destination_url)
            # Accessing port validates it
            parts.port
        except (ValueError, TypeError, AttributeError) as e:
            raise MalformedDestinationError(f"invalid destination {destination_url!r}: {e}")
        host = parts.netloc.rpartition("@")[2]
        if not parts.scheme or not host:
            raise MalformedDestinationError(
                f"destination is not an absolute URL: {destination_url!r}"
            )
        return host

    def match(self, destination_url: str) -> bool:
        """Return True if the destination host contains the host pattern."""
        return self.host_pattern in self.host_from_url(destination_url)

    def window_start(self, now: Optional[float] = None) -> int:
        """Floor `now` (epoch seconds, defaults to the current time) to the window."""
        seconds = int(time.time() if now is None else now)
        return seconds - (seconds % self.window_seconds)

    def bucket_key(self, now: Optional[float] = None) -> str:
        """Cache key of this rule's counter for the window containing `now`."""
        return KEY_SEPARATOR.join(
            (KEY_NAMESPACE, self.host_pattern, str(self.window_start(now)))
        )

"""
Rate limiting settings.

Rules can be declared in configuration as comma-separated entries of the form
``<host pattern>=<window>/<limit>``, for example::

    RATE_LIMIT_RULES="amfiindia.com=1s/2,nseindia.com=1h/100"

Entries are registered in the order they are written; the first matching rule
governs a destination.
"""
from typing import List, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


def parse_rule_entries(value: str) -> List[Tuple[str, str, int]]:
    """Split a RATE_LIMIT_RULES string into ``(pattern, window, limit)`` tuples.

    Only the entry shape is checked here. Pattern, window and limit are
    validated when the rule is registered.

    Raises:
        ValueError: If an entry is not ``pattern=window/limit``.
    """
    entries = []
    for raw in value.split(","):
        item = raw.strip()
        if not item:
            continue
        pattern, sep, quota = item.rpartition("=")
        window, slash, limit = quota.partition("/")
        if not sep or not slash or not pattern.strip():
            raise ValueError(f"Invalid rate limit rule: {item!r}. Must be 'pattern=window/limit'.")
        try:
            count = int(limit.strip())
        except ValueError as e:
            raise ValueError(f"Invalid rate limit count in rule: {item!r}") from e
        entries.append((pattern.strip(), window.strip(), count))
    return entries


class RateLimitingSettings(BaseSettings):
    """Configuration for the admission controller."""

    # Disabled means no cache is wired: every request is admitted.
    RATE_LIMIT_ENABLED: bool = True
    # Upper bound, in seconds, for each get/incr/expire round-trip.
    RATE_LIMIT_CACHE_TIMEOUT: float = Field(default=1.0, gt=0)
    RATE_LIMIT_RULES: str = ""

    @field_validator("RATE_LIMIT_RULES")
    @classmethod
    def validate_rule_entries(cls, value: str) -> str:
        parse_rule_entries(value)
        return value

    @property
    def rate_limit_rules(self) -> List[Tuple[str, str, int]]:
        return parse_rule_entries(self.RATE_LIMIT_RULES)

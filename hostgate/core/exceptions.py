"""Centralized, structured exception hierarchy for hostgate.

Every error raised by the admission path is a subclass of `HostgateError`.
Each carries a machine-readable `code`, a human-readable `message` and an
`ErrorKind` so callers can branch on the kind of failure without comparing
exception instances by identity.

Errors of kind `BACKEND_DOWN` and `INVALID_STATE` are denials: the request
must not be sent. They are surfaced separately from `RATE_LIMITED` so a caller
can tell "denied by policy" from "denied because the control plane is broken".
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Final, Optional

if TYPE_CHECKING:
    import httpx

__all__: Final = [
    "ErrorKind",
    "HostgateError",
    "RateLimitedError",
    "RateLimitingError",
    "RateLimitingDownError",
    "RateLimitingInvalidError",
    "MalformedDestinationError",
    "InvalidConfigError",
    "InvalidHostPatternError",
    "InvalidWindowSpecError",
    "InvalidLimitError",
    "FetchError",
    "FetchStatusError",
]


class ErrorKind(Enum):
    """Closed set of failure kinds surfaced by hostgate."""

    RATE_LIMITED = "rate_limited"
    BACKEND_DOWN = "backend_down"
    INVALID_STATE = "invalid_state"
    MALFORMED_DESTINATION = "malformed_destination"
    INVALID_CONFIG = "invalid_config"
    FETCH_FAILED = "fetch_failed"


class HostgateError(Exception):
    """Base exception class for all custom errors in hostgate.

    Attributes:
        message (str): A human-readable error message, suitable for logging.
        code (str): A unique, machine-readable error code.
        kind (ErrorKind): The failure category.
        limited (bool): True when the error implies the request was denied.
    """

    message: str
    code: str = "generic_error"
    kind: ErrorKind = ErrorKind.INVALID_CONFIG
    limited: bool = False

    def __init__(self, message: str, code: str = "generic_error"):
        self.message = message
        self.code = code
        Exception.__init__(self, self.message)

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Admission errors
# ---------------------------------------------------------------------------


class RateLimitedError(HostgateError):
    """Raised by the getter when the destination is currently rate limited."""

    kind = ErrorKind.RATE_LIMITED
    limited = True

    def __init__(self, message: str = "rate limited", code: str = "rate_limited"):
        super().__init__(message, code)


class RateLimitingError(HostgateError):
    """Base class for coordination failures.

    The shared counter could not be consulted or trusted, so the request is
    denied (fail closed).
    """

    limited = True


class RateLimitingDownError(RateLimitingError):
    """Raised when the shared cache is unreachable, erroring or timing out."""

    kind = ErrorKind.BACKEND_DOWN

    def __init__(
        self, message: str = "rate limiting is down", code: str = "rate_limiting_down"
    ):
        super().__init__(message, code)


class RateLimitingInvalidError(RateLimitingError):
    """Raised when the stored counter value is not an integer."""

    kind = ErrorKind.INVALID_STATE

    def __init__(
        self,
        message: str = "invalid internal data in rate limiting",
        code: str = "rate_limiting_invalid",
    ):
        super().__init__(message, code)


class MalformedDestinationError(HostgateError):
    """Raised when a destination cannot be parsed as an absolute URL."""

    kind = ErrorKind.MALFORMED_DESTINATION

    def __init__(self, message: str, code: str = "malformed_destination"):
        super().__init__(message, code)


# ---------------------------------------------------------------------------
# Configuration errors (raised at registration time, never retried)
# ---------------------------------------------------------------------------


class InvalidConfigError(HostgateError):
    """Base class for rule registration failures."""

    kind = ErrorKind.INVALID_CONFIG

    def __init__(self, message: str, code: str = "invalid_config"):
        super().__init__(message, code)


class InvalidHostPatternError(InvalidConfigError):
    def __init__(
        self, message: str = "host should not be empty", code: str = "invalid_host_pattern"
    ):
        super().__init__(message, code)


class InvalidWindowSpecError(InvalidConfigError):
    def __init__(self, message: str, code: str = "invalid_window_spec"):
        super().__init__(message, code)


class InvalidLimitError(InvalidConfigError):
    def __init__(self, message: str, code: str = "invalid_limit"):
        super().__init__(message, code)


# ---------------------------------------------------------------------------
# Fetch errors
# ---------------------------------------------------------------------------


class FetchError(HostgateError):
    """Raised when the outbound request could not be completed."""

    kind = ErrorKind.FETCH_FAILED

    def __init__(self, message: str, code: str = "fetch_failed"):
        super().__init__(message, code)


class FetchStatusError(FetchError):
    """Raised when the destination answers with a non-success status code.

    The received response is kept on the exception so callers can still read
    the status code and body.
    """

    def __init__(
        self,
        status_code: int,
        body: bytes = b"",
        response: Optional["httpx.Response"] = None,
        code: str = "fetch_status_error",
    ):
        self.status_code = status_code
        self.body = body
        self.response = response
        super().__init__(f"received {status_code} error: {body[:200]!r}", code)

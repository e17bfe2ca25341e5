"""Outbound HTTP getter guarded by host admission control.

Every fetch asks the AdmissionController whether the destination may be
contacted before the request is built. A limited destination raises
RateLimitedError; coordination failures (RateLimitingDownError,
RateLimitingInvalidError) propagate unchanged. Nothing is retried here.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
import structlog

from hostgate.core.config.app import DEFAULT_USER_AGENT
from hostgate.core.exceptions import FetchError, FetchStatusError, RateLimitedError
from hostgate.domain.rate_limiting.repositories import CounterStore
from hostgate.domain.rate_limiting.services import AdmissionController
from hostgate.domain.rate_limiting.value_objects import Rule

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 10.0

# Content types always written to disk instead of held in memory.
DISK_CONTENT_TYPES = frozenset({"zip", "gzip", "pdf", "rar"})

_CONTENT_TYPE_NAMES = {
    "application/zip": "zip",
    "application/x-zip-compressed": "zip",
    "application/gzip": "gzip",
    "application/x-gzip": "gzip",
    "application/pdf": "pdf",
    "application/vnd.rar": "rar",
    "application/x-rar-compressed": "rar",
    "text/html": "html",
    "text/plain": "text",
    "text/csv": "csv",
    "application/json": "json",
    "application/xml": "xml",
    "text/xml": "xml",
    "application/rss+xml": "xml",
    "application/atom+xml": "xml",
}

_MAGIC_NUMBERS = (
    (b"PK\x03\x04", "zip"),
    (b"\x1f\x8b", "gzip"),
    (b"%PDF", "pdf"),
    (b"Rar!", "rar"),
)


def content_type_name(header: Optional[str]) -> str:
    """Reduce a Content-Type header to a short name such as "zip" or "html"."""
    if not header:
        return ""
    mime = header.split(";", 1)[0].strip().lower()
    if mime in _CONTENT_TYPE_NAMES:
        return _CONTENT_TYPE_NAMES[mime]
    subtype = mime.rpartition("/")[2]
    return subtype.removeprefix("x-").split("+", 1)[0]


def sniff_content_type(prefix: bytes) -> Optional[str]:
    """Detect archive and document types from their leading bytes."""
    for magic, name in _MAGIC_NUMBERS:
        if prefix.startswith(magic):
            return name
    return None


@dataclass
class FetchRequest:
    """Description of one outbound request.

    `json_data` is encoded as JSON, unless it is already bytes or str, in which
    case it is sent as the body unchanged.
    """
    path: str
    method: str = "GET"
    query: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None
    form_data: Dict[str, str] = field(default_factory=dict)
    send_form_data: bool = False
    json_data: Any = None
    send_json_data: bool = False
    save_to_disk: bool = False

    @property
    def url(self) -> str:
        """The destination including the encoded query string."""
        if not self.query:
            return self.path
        separator = "&" if "?" in self.path else "?"
        return f"{self.path}{separator}{urlencode(self.query)}"


@dataclass
class FetchResponse:
    """
    Result of a successful fetch.

    Exactly one of `data` (body held in memory) and `data_path` (body written
    to a temporary file the caller owns) is set.
    """
    code: int
    content_type: str = ""
    data: bytes = b""
    data_path: Optional[str] = None


class Getter:
    """HTTP client that consults host rate limits before every request."""

    def __init__(
        self,
        controller: Optional[AdmissionController] = None,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            controller: Admission controller; a fresh one admits everything
            timeout: Default request timeout in seconds
            user_agent: Default User-Agent header
            transport: httpx transport override, mainly for tests
        """
        self.controller = controller or AdmissionController()
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport

    def set_default_timeout(self, timeout: float) -> None:
        self.timeout = timeout

    def set_user_agent(self, user_agent: str) -> None:
        self.user_agent = user_agent

    def set_cache(self, store: Optional[CounterStore]) -> None:
        """Link the shared counter store; without one rate limits are not enforced."""
        self.controller.set_store(store)

    def add_rate_limit(self, host_pattern: str, window_spec: str, limit: int) -> Rule:
        return self.controller.add_rate_limit(host_pattern, window_spec, limit)

    async def fetch(self, request: FetchRequest) -> FetchResponse:
        """
        Issue `request` unless its destination is currently rate limited.

        Raises:
            RateLimitedError: The destination's rule denied the request
            RateLimitingDownError: The shared counter store is unavailable
            RateLimitingInvalidError: The shared counter is corrupted
            MalformedDestinationError: The path is not an absolute URL
            FetchStatusError: The destination answered outside 200..300
            FetchError: The request could not be completed
        """
        timeout = request.timeout if request.timeout and request.timeout > 0 else self.timeout
        # Zero or negative means no timeout, for the request and the admission check.
        if timeout is not None and timeout <= 0:
            timeout = None
        method = (request.method or "GET").upper()
        url = request.url

        if await self.controller.is_limited(url, timeout=timeout):
            raise RateLimitedError()

        headers = {"User-Agent": self.user_agent}
        body: Dict[str, Any] = {}
        if request.send_form_data:
            body["data"] = dict(request.form_data)
        elif request.send_json_data:
            if isinstance(request.json_data, (bytes, str)):
                body["content"] = request.json_data
            else:
                body["json"] = request.json_data
            headers["Content-Type"] = "application/json"
        headers.update(request.headers)

        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                async with client.stream(method, url, headers=headers, **body) as response:
                    return await self._read_response(request, url, response)
        except httpx.HTTPError as e:
            raise FetchError(f"could not fetch {url}: {e}") from e

    async def _read_response(
        self, request: FetchRequest, url: str, response: httpx.Response
    ) -> FetchResponse:
        if not 200 <= response.status_code <= 300:
            body = await response.aread()
            raise FetchStatusError(response.status_code, body, response)

        content_type = content_type_name(response.headers.get("Content-Type"))

        if request.save_to_disk or content_type in DISK_CONTENT_TYPES:
            prefix = b""
            with tempfile.NamedTemporaryFile(prefix="hostgate-", delete=False) as file:
                try:
                    async for chunk in response.aiter_bytes():
                        if len(prefix) < 8:
                            prefix += chunk[:8]
                        file.write(chunk)
                except BaseException:
                    file.close()
                    os.unlink(file.name)
                    raise
            content_type = sniff_content_type(prefix) or content_type
            logger.info("fetch_saved_to_disk", url=url, path=file.name, content_type=content_type)
            return FetchResponse(
                code=response.status_code, content_type=content_type, data_path=file.name
            )

        body = await response.aread()
        logger.info("fetch_completed", url=url, status=response.status_code)
        return FetchResponse(code=response.status_code, content_type=content_type, data=body)

# imgsource/sources/base.py
"""
Image source abstraction layer.

Defines the protocol and shared types for image sources. A source only
resolves an inbound request to raw image bytes; decoding and transformation
happen further down the pipeline.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional, Protocol, Sequence

from multidict import CIMultiDict

from imgsource.sources.origins import origin_hosts


# Only cache-control headers are passed back, not validators (ETag etc.).
# See https://developer.mozilla.org/en-US/docs/Web/HTTP/Caching
CACHE_HEADERS: tuple[str, ...] = (
    "Cache-Control",
    "Expires",
    "Last-Modified",
    "Pragma",
    "Vary",
)

_CACHE_HEADERS_LOWER = {name.lower(): name for name in CACHE_HEADERS}


def cache_header_name(header_name: str) -> Optional[str]:
    """Return the canonical cache header name, or None if not allow-listed."""
    return _CACHE_HEADERS_LOWER.get(header_name.lower())


# ============================================================================
# Errors
# ============================================================================

class ImageSourceError(Exception):
    """
    Base error for image source failures.

    Attributes:
        status_code: HTTP status the transport layer should answer with.
    """

    status_code: int = 500
    kind: str = "error"


class InvalidImageURLError(ImageSourceError):
    status_code = 400
    kind = "invalid_url"

    def __init__(self, raw_url: str = ""):
        self.raw_url = raw_url
        super().__init__("Invalid image URL")


class OriginNotAllowedError(ImageSourceError):
    status_code = 403
    kind = "origin_not_allowed"

    def __init__(self, host: str):
        self.host = host
        super().__init__(f"Not allowed remote URL origin: {host}")


class UpstreamFetchError(ImageSourceError):
    """Transport failure or non-success status from the upstream server.

    ``phase`` is ``"headers"`` for the HEAD size check and ``"download"``
    for the GET. ``status`` is None when no response was received.
    """

    status_code = 502
    kind = "upstream_error"

    def __init__(self, url: str, phase: str, status: Optional[int] = None, reason: str = ""):
        self.url = url
        self.phase = phase
        self.status = status

        action = "fetching image http headers" if phase == "headers" else "downloading image"
        if status is not None:
            message = f"Error {action}: (status={status}) (url={url})"
        else:
            message = f"Error {action}: {reason}"
        super().__init__(message)


class PayloadTooLargeError(ImageSourceError):
    status_code = 413
    kind = "payload_too_large"

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Content-Length {size} exceeds maximum allowed {limit} bytes")


class BodyReadError(ImageSourceError):
    status_code = 502
    kind = "body_read_error"

    def __init__(self, url: str, reason: str):
        self.url = url
        super().__init__(f"Unable to create image from response body: {reason} (url={url})")


# ============================================================================
# Types
# ============================================================================

@dataclass(frozen=True)
class SourceConfig:
    """Read-only configuration shared by all image sources.

    ``allowed_hosts`` is derived from ``allowed_origins`` once, at
    construction.
    """

    allowed_origins: tuple[str, ...] = ()
    max_allowed_size: int = 0
    authorization: str = ""
    auth_forwarding: bool = False
    user_agent: str = "imgsource"

    # Upstream session (see infra.http_client)
    timeout_seconds: float = 60.0
    connect_timeout_seconds: float = 15.0
    pool_limit: int = 10

    allowed_hosts: frozenset[str] = field(init=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, "allowed_hosts", origin_hosts(self.allowed_origins))


@dataclass
class FetchResult:
    """Result of an image fetch: raw bytes plus the allow-listed cache headers."""

    data: bytes
    headers: CIMultiDict = field(default_factory=CIMultiDict)
    url: str = ""


class QueryParams(Protocol):
    """Multi-valued query mapping (``starlette.datastructures.QueryParams``)."""

    def getlist(self, key: str) -> Sequence[str]: ...


class InboundRequest(Protocol):
    """The parts of an inbound HTTP request a source looks at.

    ``starlette.requests.Request`` satisfies this.
    """

    method: str

    @property
    def query_params(self) -> QueryParams: ...

    @property
    def headers(self) -> Mapping[str, str]: ...


class ImageSource(Protocol):
    """Protocol for image sources."""

    def matches(self, request: InboundRequest) -> bool:
        """Routing predicate. Must not do I/O."""
        ...

    async def get_image(self, request: InboundRequest) -> bytes:
        ...

    async def get_image_with_cache_headers(self, request: InboundRequest) -> FetchResult:
        """
        Resolve the request to image bytes.

        Raises:
            ImageSourceError: classified failure (see subclasses).
        """
        ...

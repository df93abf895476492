# imgsource/sources/http_source.py
"""
Remote HTTP image source.

Fetches the image named by the ``url`` query parameter:

1. origin allow-list check (exact host match, empty list = any host)
2. optional HEAD request to enforce ``max_allowed_size`` via Content-Length
3. GET, keeping only the cache-control response headers

No retries. Timeouts come from the shared fetcher session.
"""
from __future__ import annotations

import asyncio
import re
from urllib.parse import SplitResult, urlsplit

import aiohttp
from multidict import CIMultiDict

from imgsource.infra.http_client import get_fetcher_session
from imgsource.infra.logging_config import LogContext, get_logger, mask_url
from imgsource.infra.metrics import SourceMetrics
from imgsource.sources.base import (
    BodyReadError,
    FetchResult,
    ImageSourceError,
    InboundRequest,
    InvalidImageURLError,
    OriginNotAllowedError,
    PayloadTooLargeError,
    SourceConfig,
    UpstreamFetchError,
    cache_header_name,
)
from imgsource.sources.origins import origin_host, should_restrict_origin

logger = get_logger(__name__)

SOURCE_TYPE_HTTP = "http"

# UnicodeError: the resolver IDNA-encodes the host while connecting
# (e.g. an empty label in "a..b").
_TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, UnicodeError)

_CONTENT_LENGTH_RE = re.compile(r"[+-]?[0-9]+")


def query_url(request: InboundRequest) -> str:
    """First ``url`` query value; later repeats are ignored."""
    values = request.query_params.getlist("url")
    return values[0] if values else ""


def parse_url(request: InboundRequest) -> SplitResult:
    """Parse the ``url`` query parameter as an absolute URL."""
    raw = query_url(request)
    try:
        url = urlsplit(raw)
        url.port  # raises ValueError on a malformed port
    except ValueError as e:
        raise InvalidImageURLError(raw) from e
    if not url.scheme or not origin_host(url):
        raise InvalidImageURLError(raw)
    return url


def filter_cache_headers(headers) -> CIMultiDict:
    """Copy every value of the allow-listed cache headers, in order."""
    result: CIMultiDict = CIMultiDict()
    for name, value in headers.items():
        canonical = cache_header_name(name)
        if canonical is not None:
            result.add(canonical, value)
    return result


def _parse_content_length(value: str | None) -> int:
    """Plain optionally-signed decimal, else 0 (no spaces, no underscores)."""
    if value is None or not _CONTENT_LENGTH_RE.fullmatch(value):
        return 0
    return int(value)


class HttpImageSource:
    """
    Image source for ``GET /?url=<remote image>`` requests.

    The configuration is read-only, so one instance can serve concurrent
    requests.
    """

    source_type = SOURCE_TYPE_HTTP

    def __init__(self, config: SourceConfig):
        self.config = config

    def matches(self, request: InboundRequest) -> bool:
        return request.method == "GET" and bool(query_url(request))

    async def get_image(self, request: InboundRequest) -> bytes:
        result = await self.get_image_with_cache_headers(request)
        return result.data

    async def get_image_with_cache_headers(self, request: InboundRequest) -> FetchResult:
        try:
            url = parse_url(request)
            if should_restrict_origin(url, self.config.allowed_hosts):
                raise OriginNotAllowedError(origin_host(url))
        except ImageSourceError as e:
            SourceMetrics.fetch_failed(self.source_type, e.kind)
            raise

        log = LogContext(
            logger,
            request_id=_request_id(request),
            source_type=self.source_type,
            upstream_host=origin_host(url),
        )
        try:
            with SourceMetrics.track_fetch_time(self.source_type):
                result = await self._fetch_image(url, request, log)
        except ImageSourceError as e:
            SourceMetrics.fetch_failed(self.source_type, e.kind)
            log.warning("Image fetch failed: %s", e)
            raise

        SourceMetrics.fetch_succeeded(self.source_type, len(result.data))
        return result

    async def _fetch_image(
        self,
        url: SplitResult,
        inbound: InboundRequest,
        log: LogContext,
    ) -> FetchResult:
        target = url.geturl()
        headers = self._build_headers(inbound)
        session = get_fetcher_session(
            total=self.config.timeout_seconds,
            connect=self.config.connect_timeout_seconds,
            limit=self.config.pool_limit,
        )

        # Check remote image size by fetching HTTP headers
        if self.config.max_allowed_size > 0:
            SourceMetrics.size_check_sent(self.source_type)
            try:
                async with session.head(target, headers=headers, allow_redirects=True) as response:
                    status = response.status
                    content_length = _parse_content_length(response.headers.get("Content-Length"))
            except _TRANSPORT_ERRORS as e:
                raise UpstreamFetchError(target, "headers", reason=str(e) or e.__class__.__name__) from e

            # Never true; a non-2xx HEAD is not rejected on status alone.
            # Kept as-is since callers rely on the permissive behavior.
            if status < 200 and status > 206:
                raise UpstreamFetchError(target, "headers", status=status)

            if content_length > self.config.max_allowed_size:
                raise PayloadTooLargeError(content_length, self.config.max_allowed_size)

        log.debug("Downloading image from %s", mask_url(target))
        try:
            async with session.get(target, headers=headers, allow_redirects=True) as response:
                if response.status != 200:
                    raise UpstreamFetchError(target, "download", status=response.status)

                cache_headers = filter_cache_headers(response.headers)

                try:
                    data = await response.read()
                except _TRANSPORT_ERRORS as e:
                    raise BodyReadError(target, str(e) or e.__class__.__name__) from e
        except _TRANSPORT_ERRORS as e:
            raise UpstreamFetchError(target, "download", reason=str(e) or e.__class__.__name__) from e

        log.info("Image downloaded: %d bytes from %s", len(data), mask_url(target))
        return FetchResult(data=data, headers=cache_headers, url=target)

    def _build_headers(self, inbound: InboundRequest) -> dict[str, str]:
        headers = {"User-Agent": self.config.user_agent}

        # Forward auth header to the target server, if necessary
        if self.config.auth_forwarding or self.config.authorization:
            auth = self._resolve_authorization(inbound)
            if auth:
                headers["Authorization"] = auth
        return headers

    def _resolve_authorization(self, inbound: InboundRequest) -> str:
        return (
            self.config.authorization
            or inbound.headers.get("X-Forward-Authorization")
            or inbound.headers.get("Authorization")
            or ""
        )


def _request_id(request: InboundRequest) -> str | None:
    state = getattr(request, "state", None)
    return getattr(state, "request_id", None)

# imgsource/sources/__init__.py
"""
Image sources.

Each source decides whether it can serve an inbound request (``matches``)
and resolves it to raw image bytes. Sources are registered explicitly in a
``SourceRegistry`` at startup.
"""
from imgsource.sources.base import (
    CACHE_HEADERS,
    BodyReadError,
    FetchResult,
    ImageSource,
    ImageSourceError,
    InvalidImageURLError,
    OriginNotAllowedError,
    PayloadTooLargeError,
    SourceConfig,
    UpstreamFetchError,
)
from imgsource.sources.http_source import HttpImageSource
from imgsource.sources.registry import (
    SourceRegistry,
    build_source_config,
    register_default_sources,
)

__all__ = [
    "CACHE_HEADERS",
    "BodyReadError",
    "FetchResult",
    "ImageSource",
    "ImageSourceError",
    "InvalidImageURLError",
    "OriginNotAllowedError",
    "PayloadTooLargeError",
    "SourceConfig",
    "UpstreamFetchError",
    "HttpImageSource",
    "SourceRegistry",
    "build_source_config",
    "register_default_sources",
]

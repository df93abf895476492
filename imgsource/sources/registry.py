# imgsource/sources/registry.py
"""
Explicit image source registration.

Sources are registered once during process setup instead of through
import side effects::

    from imgsource.sources.registry import SourceRegistry, register_default_sources

    registry = SourceRegistry()
    register_default_sources(registry)
    registry.build(build_source_config(settings))
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Optional

from imgsource.sources.base import ImageSource, InboundRequest, SourceConfig
from imgsource.sources.origins import parse_origins

if TYPE_CHECKING:
    from imgsource.config import Settings

logger = logging.getLogger(__name__)

SourceFactory = Callable[[SourceConfig], ImageSource]


class SourceRegistry:
    """
    Maps source type names to factories, and holds the built sources.
    Registration order is dispatch order.
    """

    def __init__(self):
        self._factories: dict[str, SourceFactory] = {}
        self._sources: dict[str, ImageSource] = {}

    def register(self, source_type: str, factory: SourceFactory) -> None:
        """Register a source factory"""
        if source_type in self._factories:
            raise ValueError(f"Image source type already registered: {source_type}")
        self._factories[source_type] = factory

    def types(self) -> list[str]:
        """List all registered source types"""
        return list(self._factories.keys())

    def build(self, config: SourceConfig) -> list[ImageSource]:
        """Instantiate every registered source with the shared configuration."""
        self._sources = {
            source_type: factory(config)
            for source_type, factory in self._factories.items()
        }
        logger.info("Image sources ready: %s", ", ".join(self._sources) or "(none)")
        return list(self._sources.values())

    def get(self, source_type: str) -> Optional[ImageSource]:
        """Get a built source by type"""
        return self._sources.get(source_type)

    def match(self, request: InboundRequest) -> Optional[ImageSource]:
        """First built source whose ``matches`` accepts the request."""
        for source in self._sources.values():
            if source.matches(request):
                return source
        return None


def register_default_sources(registry: SourceRegistry) -> list[str]:
    """Register the built-in sources. Call once at startup."""
    from imgsource.sources.http_source import SOURCE_TYPE_HTTP, HttpImageSource

    registry.register(SOURCE_TYPE_HTTP, HttpImageSource)
    return registry.types()


def build_source_config(settings: "Settings") -> SourceConfig:
    """SourceConfig from application settings."""
    return SourceConfig(
        allowed_origins=parse_origins(settings.allowed_origins),
        max_allowed_size=settings.max_allowed_size,
        authorization=settings.authorization,
        auth_forwarding=settings.auth_forwarding,
        user_agent=settings.user_agent,
        timeout_seconds=settings.fetch_timeout_seconds,
        connect_timeout_seconds=settings.fetch_connect_timeout_seconds,
        pool_limit=settings.fetch_pool_limit,
    )

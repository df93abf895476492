# tests/test_registry.py
"""Tests for explicit image source registration and dispatch."""
from __future__ import annotations

import pytest

from conftest import make_request
from imgsource.config import Settings
from imgsource.sources.base import SourceConfig
from imgsource.sources.http_source import HttpImageSource
from imgsource.sources.registry import (
    SourceRegistry,
    build_source_config,
    register_default_sources,
)


class _NeverMatches:
    def __init__(self, config):
        self.config = config

    def matches(self, request):
        return False


class TestSourceRegistry:
    def test_default_sources(self):
        registry = SourceRegistry()
        assert register_default_sources(registry) == ["http"]

    def test_duplicate_type_rejected(self):
        registry = SourceRegistry()
        register_default_sources(registry)
        with pytest.raises(ValueError):
            registry.register("http", HttpImageSource)

    def test_build_passes_shared_config(self):
        registry = SourceRegistry()
        register_default_sources(registry)
        config = SourceConfig(max_allowed_size=10)
        registry.build(config)

        source = registry.get("http")
        assert isinstance(source, HttpImageSource)
        assert source.config is config

    def test_get_before_build(self):
        registry = SourceRegistry()
        register_default_sources(registry)
        assert registry.get("http") is None

    def test_match_http_request(self):
        registry = SourceRegistry()
        register_default_sources(registry)
        registry.build(SourceConfig())
        assert registry.match(make_request("https://cdn.example.com/a.jpg")) is registry.get("http")

    def test_match_none(self):
        registry = SourceRegistry()
        register_default_sources(registry)
        registry.build(SourceConfig())
        assert registry.match(make_request(None)) is None
        assert registry.match(make_request("https://cdn.example.com/a.jpg", method="POST")) is None

    def test_registration_order_is_dispatch_order(self):
        registry = SourceRegistry()
        registry.register("fs", _NeverMatches)
        register_default_sources(registry)
        registry.build(SourceConfig())

        assert registry.types() == ["fs", "http"]
        assert isinstance(registry.match(make_request("https://x.example/a.jpg")), HttpImageSource)


class TestBuildSourceConfig:
    def test_from_settings(self):
        s = Settings(
            allowed_origins="https://cdn.example.com, img.example.org",
            max_allowed_size=1000,
            authorization="Bearer abc",
            auth_forwarding=True,
            _env_file=None,
        )
        config = build_source_config(s)

        assert config.allowed_origins == ("https://cdn.example.com", "http://img.example.org")
        assert config.max_allowed_size == 1000
        assert config.authorization == "Bearer abc"
        assert config.auth_forwarding is True
        assert config.user_agent == "imgsource/1.0.0"

    def test_fetch_session_settings(self):
        s = Settings(
            fetch_timeout_seconds=7.5,
            fetch_connect_timeout_seconds=2.0,
            fetch_pool_limit=4,
            _env_file=None,
        )
        config = build_source_config(s)

        assert config.timeout_seconds == 7.5
        assert config.connect_timeout_seconds == 2.0
        assert config.pool_limit == 4
        assert config.allowed_hosts == frozenset()

    def test_defaults_are_unrestricted(self):
        config = build_source_config(Settings(_env_file=None))
        assert config.allowed_origins == ()
        assert config.max_allowed_size == 0
        assert config.authorization == ""
        assert config.auth_forwarding is False

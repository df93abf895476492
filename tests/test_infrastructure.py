# tests/test_infrastructure.py
"""Tests for infrastructure components"""
import json
import logging

import pytest


class TestMetrics:
    def test_metrics_counter_increment(self):
        from imgsource.infra.metrics import MetricsCollector

        collector = MetricsCollector()
        collector.inc_counter("test_counter", 1)
        collector.inc_counter("test_counter", 2)

        metrics = collector.get_metrics()
        assert metrics["counters"]["test_counter"] == 3

    def test_metrics_histogram_observe(self):
        from imgsource.infra.metrics import MetricsCollector

        collector = MetricsCollector()
        for value in (0.1, 0.2, 0.3):
            collector.observe_histogram("fetch_seconds", value)

        stats = collector.get_metrics()["histograms"]["fetch_seconds"]
        assert stats["count"] == 3
        assert stats["min"] == 0.1
        assert stats["max"] == 0.3

    def test_histogram_sample_window_is_bounded(self):
        from imgsource.infra.metrics import HISTOGRAM_SAMPLE_SIZE, Histogram

        hist = Histogram()
        total = HISTOGRAM_SAMPLE_SIZE + 500
        for i in range(total):
            hist.observe(float(i))

        assert len(hist.samples) == HISTOGRAM_SAMPLE_SIZE
        stats = hist.get_stats()
        assert stats["count"] == total
        assert stats["min"] == 0.0
        assert stats["max"] == float(total - 1)
        assert stats["avg"] == (total - 1) / 2
        # percentiles only see the recent window
        assert stats["p95"] >= 500.0

    def test_metrics_with_labels(self):
        from imgsource.infra.metrics import MetricsCollector

        collector = MetricsCollector()
        collector.inc_counter("image_fetch_total", labels={"source": "http", "outcome": "ok"})

        assert collector.get_metrics()["counters"] == {"image_fetch_total{outcome=ok,source=http}": 1}

    def test_fetch_timer_records_duration(self):
        from imgsource.infra.metrics import SourceMetrics, get_metrics_collector

        with SourceMetrics.track_fetch_time("http"):
            pass

        stats = get_metrics_collector().get_metrics()["histograms"]["image_fetch_seconds{source=http}"]
        assert stats["count"] == 1


class TestSettings:
    def test_defaults(self):
        from imgsource.config import Settings
        s = Settings(_env_file=None)
        assert s.app_env == "dev"
        assert s.allowed_origins == ""
        assert s.max_allowed_size == 0
        assert s.auth_forwarding is False
        assert s.user_agent == "imgsource/1.0.0"

    def test_env_overrides(self, monkeypatch):
        from imgsource.config import Settings
        monkeypatch.setenv("MAX_ALLOWED_SIZE", "5000")
        monkeypatch.setenv("AUTH_FORWARDING", "true")
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://cdn.example.com")
        s = Settings(_env_file=None)
        assert s.max_allowed_size == 5000
        assert s.auth_forwarding is True
        assert s.allowed_origins == "https://cdn.example.com"

    def test_invalid_app_env_rejected(self):
        from imgsource.config import Settings
        from pydantic import ValidationError
        with pytest.raises(ValidationError):
            Settings(app_env="banana", _env_file=None)

    def test_prod_forces_json_logs(self):
        from imgsource.config import Settings
        assert Settings(app_env="prod", _env_file=None).use_json_logs is True
        assert Settings(_env_file=None).use_json_logs is False


class TestConfigWarnings:
    def test_open_allow_list_in_prod(self):
        from imgsource.config import Settings, warn_on_risky_config
        warnings = warn_on_risky_config(Settings(app_env="prod", max_allowed_size=10, _env_file=None))
        assert any("allowed_origins is empty" in w for w in warnings)

    def test_credentials_without_allow_list(self):
        from imgsource.config import Settings, warn_on_risky_config
        warnings = warn_on_risky_config(Settings(auth_forwarding=True, max_allowed_size=10, _env_file=None))
        assert any("forwarded to any host" in w for w in warnings)

    def test_locked_down_config_is_quiet(self):
        from imgsource.config import Settings, validate_or_warn
        s = Settings(
            app_env="prod",
            allowed_origins="https://cdn.example.com",
            max_allowed_size=10_000_000,
            authorization="Bearer abc",
            _env_file=None,
        )
        assert validate_or_warn(s) == []

    def test_warnings_are_logged(self, caplog):
        from imgsource.config import Settings, validate_or_warn
        with caplog.at_level(logging.WARNING, logger="imgsource.config"):
            validate_or_warn(Settings(_env_file=None))
        assert any("max_allowed_size" in r.getMessage() for r in caplog.records)


class TestLogging:
    def _record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord("imgsource.test", logging.INFO, __file__, 10, "hello %s", ("world",), None)
        for k, v in extra.items():
            setattr(record, k, v)
        return record

    def test_json_formatter_includes_context(self):
        from imgsource.infra.logging_config import JSONFormatter
        line = JSONFormatter().format(self._record(request_id="r1", upstream_host="cdn.example.com"))
        data = json.loads(line)
        assert data["message"] == "hello world"
        assert data["request_id"] == "r1"
        assert data["upstream_host"] == "cdn.example.com"
        assert "source_type" not in data

    def test_console_formatter_context(self):
        from imgsource.infra.logging_config import ConsoleFormatter
        line = ConsoleFormatter().format(self._record(source_type="http"))
        assert "[source=http]" in line
        assert "hello world" in line

    def test_log_context_adds_extra(self, caplog):
        from imgsource.infra.logging_config import LogContext, get_logger
        log = LogContext(get_logger("imgsource.test"), request_id="r2", source_type="http")
        with caplog.at_level(logging.INFO, logger="imgsource.test"):
            log.info("fetched %d bytes", 10)
        record = caplog.records[-1]
        assert record.getMessage() == "fetched 10 bytes"
        assert record.request_id == "r2"
        assert record.source_type == "http"

    @pytest.mark.parametrize("url,expected", [
        ("https://cdn.example.com/a.jpg", "https://cdn.example.com/a.jpg"),
        ("https://u:p@cdn.example.com/a.jpg?sig=abc", "https://cdn.example.com/a.jpg?..."),
        ("http://cdn.example.com:8080/", "http://cdn.example.com:8080/"),
    ])
    def test_mask_url(self, url, expected):
        from imgsource.infra.logging_config import mask_url
        assert mask_url(url) == expected


class TestContentTypeDetection:
    @pytest.mark.parametrize("data,expected", [
        (b"\xff\xd8\xff\xe0" + b"\x00" * 8, "image/jpeg"),
        (b"\x89PNG\r\n\x1a\n" + b"\x00" * 8, "image/png"),
        (b"GIF89a" + b"\x00" * 8, "image/gif"),
        (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp"),
        (b"\x00\x00\x00\x1cftypavif\x00\x00", "image/avif"),
        (b"\x00\x00\x00\x18ftypheic\x00\x00", "image/heic"),
        (b"  <svg xmlns='http://www.w3.org/2000/svg'></svg>", "image/svg+xml"),
        (b"<?xml version='1.0'?><svg></svg>", "image/svg+xml"),
        (b"hello", "application/octet-stream"),
        (b"", "application/octet-stream"),
    ])
    def test_detect(self, data, expected):
        from imgsource.infra.image_types import detect_content_type
        assert detect_content_type(data) == expected


class TestHttpClient:
    @pytest.mark.asyncio
    async def test_fetcher_session_reused_and_closed(self):
        from imgsource.infra.http_client import close_all_sessions, get_fetcher_session

        session = get_fetcher_session()
        assert get_fetcher_session() is session
        assert session.timeout.total == 60.0
        assert session.timeout.connect == 15.0

        await close_all_sessions()
        assert session.closed
        assert get_fetcher_session() is not session
        await close_all_sessions()

    @pytest.mark.asyncio
    async def test_fetcher_session_per_timeouts(self):
        from imgsource.infra.http_client import close_all_sessions, get_fetcher_session

        session = get_fetcher_session(total=5.0, connect=1.0, limit=3)
        try:
            assert session.timeout.total == 5.0
            assert session.timeout.connect == 1.0
            assert session.connector.limit == 3
            assert get_fetcher_session(total=5.0, connect=1.0, limit=3) is session
            assert get_fetcher_session() is not session
        finally:
            await close_all_sessions()

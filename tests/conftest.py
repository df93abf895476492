"""Pytest configuration and fixtures"""
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import urlencode

import pytest
from multidict import CIMultiDict
from starlette.requests import Request

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


def make_request(
    url: str | None = "https://cdn.example.com/photo.jpg",
    method: str = "GET",
    headers: dict | None = None,
    query: str | None = None,
) -> Request:
    """Build a starlette Request carrying the ``url`` query parameter.

    ``query`` is a raw query string and replaces ``url`` when given.
    """
    if query is None:
        query = urlencode({"url": url}) if url is not None else ""
    raw_headers = [
        (k.lower().encode("latin-1"), v.encode("latin-1"))
        for k, v in (headers or {}).items()
    ]
    return Request({
        "type": "http",
        "method": method,
        "path": "/",
        "query_string": query.encode("latin-1"),
        "headers": raw_headers,
    })


def make_response(status: int = 200, headers=None, body: bytes = b"", read_error: Exception | None = None):
    """Create a mock aiohttp response."""
    resp = MagicMock()
    resp.status = status
    resp.headers = CIMultiDict(headers or {})
    resp.read = AsyncMock(return_value=body, side_effect=read_error)
    return resp


def make_ctx(response=None, error: Exception | None = None):
    """Async context manager yielding ``response`` (or raising ``error`` on enter)."""
    ctx = AsyncMock()
    if error is not None:
        ctx.__aenter__ = AsyncMock(side_effect=error)
    else:
        ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return ctx


def make_session(get_ctx=None, head_ctx=None):
    """Mock session whose .get()/.head() return the given context managers."""
    session = MagicMock()
    session.get = MagicMock(return_value=get_ctx)
    session.head = MagicMock(return_value=head_ctx)
    return session


@pytest.fixture
def image_bytes():
    """A few bytes that start like a PNG"""
    return b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture(autouse=True)
def reset_metrics():
    from imgsource.infra.metrics import get_metrics_collector
    get_metrics_collector().reset()
    yield

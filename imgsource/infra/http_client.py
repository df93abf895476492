# imgsource/infra/http_client.py
"""
Shared HTTP client session for upstream image fetches.

Provides a named, lazy-initialized aiohttp.ClientSession singleton
to avoid per-request session creation overhead and TCP connection churn.

Session profile
~~~~~~~~~~~~~~~
- **fetcher** – remote image downloads (timeouts and pool limit per
  ``SourceConfig``, defaulting to settings:
  ``FETCH_TIMEOUT_SECONDS``, ``FETCH_CONNECT_TIMEOUT_SECONDS``,
  ``FETCH_POOL_LIMIT``)

The fetcher itself defines no timeout policy; whatever deadline the session
carries applies to both the HEAD size check and the GET.

Shutdown
~~~~~~~~
Call ``close_all_sessions()`` once during application shutdown.
"""
from __future__ import annotations

import aiohttp

from imgsource.infra.logging_config import get_logger

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Internal state
# ---------------------------------------------------------------------------

_sessions: dict[str, aiohttp.ClientSession] = {}


def _get_or_create(
    name: str,
    timeout: aiohttp.ClientTimeout,
    limit: int = 10,
) -> aiohttp.ClientSession:
    """Return an existing session or create a new one."""
    session = _sessions.get(name)
    if session is None or session.closed:
        session = aiohttp.ClientSession(
            timeout=timeout,
            connector=aiohttp.TCPConnector(
                keepalive_timeout=30,
                limit=limit,
                enable_cleanup_closed=True,
            ),
        )
        _sessions[name] = session
        logger.debug("HTTP session '%s' created (limit=%d)", name, limit)
    return session


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def get_fetcher_session(
    total: float | None = None,
    connect: float | None = None,
    limit: int | None = None,
) -> aiohttp.ClientSession:
    """
    Session for remote image downloads (HEAD size check + GET).

    Arguments left as None fall back to the global settings. Each distinct
    (total, connect, limit) combination gets its own pooled session.
    """
    from imgsource.config import settings

    if total is None:
        total = settings.fetch_timeout_seconds
    if connect is None:
        connect = settings.fetch_connect_timeout_seconds
    if limit is None:
        limit = settings.fetch_pool_limit

    return _get_or_create(
        f"fetcher:{total}:{connect}:{limit}",
        aiohttp.ClientTimeout(total=total, connect=connect),
        limit=limit,
    )


async def close_all_sessions() -> None:
    """Gracefully close every managed session.  Call during app shutdown."""
    for name in list(_sessions):
        session = _sessions.pop(name, None)
        if session is not None and not session.closed:
            await session.close()
            logger.debug("HTTP session '%s' closed", name)

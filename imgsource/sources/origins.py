# imgsource/sources/origins.py
"""Origin allow-list parsing and matching (exact host[:port], no wildcards)."""
from __future__ import annotations

from typing import Collection, Iterable
from urllib.parse import SplitResult, urlsplit


def origin_host(url: SplitResult) -> str:
    """Authority of a parsed URL (host plus port when present), userinfo removed."""
    return url.netloc.rpartition("@")[2]


def parse_origins(raw: str | Iterable[str]) -> tuple[str, ...]:
    """
    Normalize a configured origin list.

    Accepts a comma-separated string or an iterable of strings.
    Blank entries are dropped; entries without a scheme get ``http://``.

    Raises:
        ValueError: if an entry has no host.
    """
    if isinstance(raw, str):
        raw = raw.split(",")

    origins: list[str] = []
    for part in raw:
        part = part.strip()
        if not part:
            continue
        if "://" not in part:
            part = "http://" + part
        if not origin_host(urlsplit(part)):
            raise ValueError(f"Invalid allowed origin: {part!r}")
        origins.append(part)
    return tuple(origins)


def origin_hosts(origins: Iterable[str]) -> frozenset[str]:
    """Hosts of the given origin URLs, for ``should_restrict_origin``."""
    return frozenset(origin_host(urlsplit(origin)) for origin in origins)


def should_restrict_origin(url: SplitResult, allowed_hosts: Collection[str]) -> bool:
    """
    True if ``url`` must be rejected by the allow-list.

    ``allowed_hosts`` comes from ``origin_hosts``. An empty collection
    never restricts.
    """
    if not allowed_hosts:
        return False
    return origin_host(url) not in allowed_hosts

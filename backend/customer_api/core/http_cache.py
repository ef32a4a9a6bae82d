"""
Entity-tag and Cache-Control helpers for list responses.

The list endpoint fingerprints the identifiers it returns together with a
modification marker, publishes the fingerprint as a strong ETag and answers
conditional requests whose If-None-Match already holds that tag with 304.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Sequence

from customer_api.core.hashing import sha256_json

__all__ = [
    "list_etag",
    "modification_marker",
    "parse_if_none_match",
    "if_none_match",
    "cache_control_header",
]


def modification_marker(timestamps: Iterable[Optional[datetime]], total_count: int) -> str:
    """
    Build the version marker for a page: the newest modification timestamp
    among the returned rows plus the total row count.
    """
    latest = max((t for t in timestamps if t is not None), default=None)
    stamp = latest.isoformat() if latest is not None else "-"
    return f"{stamp}|{int(total_count)}"


def list_etag(ids: Sequence[str], marker: str) -> str:
    """
    Strong entity tag for an ordered identifier list and a version marker.
    Same ids in the same order with the same marker always give the same tag.
    """
    digest = sha256_json({"ids": [str(i) for i in ids], "marker": marker})
    return f'"{digest}"'


def _opaque(tag: str) -> str:
    tag = tag.strip()
    if tag.startswith("W/"):
        tag = tag[2:]
    return tag


def parse_if_none_match(header: Optional[str]) -> list[str]:
    """Split an If-None-Match header into its entity tags (weak prefixes kept)."""
    if not header:
        return []
    return [part.strip() for part in header.split(",") if part.strip()]


def if_none_match(header: Optional[str], etag: str) -> bool:
    """
    True when the conditional header matches the current tag.

    Uses the weak comparison required for If-None-Match: a W/ prefix on either
    side is ignored. "*" matches any current representation.
    """
    tags = parse_if_none_match(header)
    if not tags:
        return False
    if "*" in tags:
        return True
    current = _opaque(etag)
    return any(_opaque(t) == current for t in tags)


def cache_control_header(max_age: int) -> str:
    """Shared cache lifetime for successful list responses."""
    return f"public, max-age={max(0, int(max_age))}"

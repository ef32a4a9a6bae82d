"""
Deterministic SHA-256 hashing utilities.

- sha256_text: Hashes a UTF-8 encoded text string.
- sha256_json: Hashes a JSON-serializable value with sorted keys and UTF-8 encoding.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

__all__ = ["sha256_text", "sha256_json", "canonical_json"]


def sha256_text(text: str) -> str:
    """
    Compute the SHA-256 hex digest of a text string using UTF-8 encoding.
    """
    if not isinstance(text, str):
        raise TypeError("text must be a str")
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def canonical_json(obj: Any) -> str:
    """
    Serialize to canonical JSON: sorted keys, compact separators, no ASCII escaping.
    Datetimes and other non-JSON values are rendered with str().
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def sha256_json(obj: Any) -> str:
    """
    Compute the SHA-256 hex digest of a JSON-serializable value.

    Key order inside mappings does not affect the digest; list order does.
    """
    if not isinstance(obj, (dict, list, tuple)):
        raise TypeError("obj must be a dict, list or tuple")
    return sha256_text(canonical_json(obj))

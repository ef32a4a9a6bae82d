import os
import sys
import hashlib
import json

import pytest

# Ensure the 'backend' directory is on sys.path so we can import app modules when running tests from repo root
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from customer_api.core.hashing import sha256_text, sha256_json


def test_sha256_text_deterministic_and_known_value():
    # Deterministic: same input yields same output
    text = "hello"
    h1 = sha256_text(text)
    h2 = sha256_text(text)
    assert h1 == h2

    # Known SHA-256 for "hello"
    assert h1 == "2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824"


def test_sha256_text_unicode_utf8():
    text = "Contoso Ltd éè 日本"
    expected = hashlib.sha256(text.encode("utf-8")).hexdigest()
    assert sha256_text(text) == expected


def test_sha256_json_key_order_independent():
    obj1 = {"ids": ["b", "a"], "marker": "2024-01-01T00:00:00|2", "nested": {"x": 1, "y": 2}}
    obj2 = {"nested": {"y": 2, "x": 1}, "marker": "2024-01-01T00:00:00|2", "ids": ["b", "a"]}

    h1 = sha256_json(obj1)
    assert h1 == sha256_json(obj2)

    canonical = json.dumps(obj1, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    assert h1 == hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def test_sha256_json_list_order_matters():
    assert sha256_json(["a", "b"]) != sha256_json(["b", "a"])


def test_sha256_json_rejects_scalars():
    with pytest.raises(TypeError):
        sha256_json("not a container")

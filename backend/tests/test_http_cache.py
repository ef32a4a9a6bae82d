import os
import sys
from datetime import datetime, timezone

# Ensure the 'backend' directory is on sys.path so imports work from repo root
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from customer_api.core.http_cache import (  # noqa: E402
    cache_control_header,
    if_none_match,
    list_etag,
    modification_marker,
    parse_if_none_match,
)


def test_list_etag_is_quoted_and_deterministic():
    tag = list_etag(["a", "b"], "m|2")

    assert tag.startswith('"') and tag.endswith('"')
    assert len(tag) == 66
    assert tag == list_etag(["a", "b"], "m|2")


def test_list_etag_changes_with_order_ids_or_marker():
    base = list_etag(["a", "b"], "m|2")

    assert list_etag(["b", "a"], "m|2") != base
    assert list_etag(["a", "c"], "m|2") != base
    assert list_etag(["a", "b"], "m|3") != base


def test_modification_marker_uses_latest_timestamp_and_count():
    older = datetime(2024, 1, 1, tzinfo=timezone.utc)
    newer = datetime(2024, 2, 1, tzinfo=timezone.utc)

    assert modification_marker([older, None, newer], 7) == f"{newer.isoformat()}|7"
    assert modification_marker([], 0) == "-|0"


def test_if_none_match_weak_comparison_and_lists():
    tag = list_etag(["a"], "m|1")

    assert if_none_match(tag, tag)
    assert if_none_match(f"W/{tag}", tag)
    assert if_none_match(f'"other", {tag}', tag)
    assert if_none_match("*", tag)
    assert not if_none_match('"other"', tag)
    assert not if_none_match(None, tag)
    assert not if_none_match("", tag)


def test_parse_if_none_match_splits_tags():
    assert parse_if_none_match('"a", W/"b" ,') == ['"a"', 'W/"b"']
    assert parse_if_none_match(None) == []


def test_cache_control_header():
    assert cache_control_header(60) == "public, max-age=60"
    assert cache_control_header(-5) == "public, max-age=0"

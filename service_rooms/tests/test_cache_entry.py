"""
Tests for the cache envelope and key namespace.
"""

import json

import pytest

from service_rooms.app.caching.entry import CacheEntry
from service_rooms.app.caching.keys import CacheExpiry, CacheKey, composite_key


def test_composite_key_with_scope():
    assert composite_key(CacheKey.USER_ROOMS, "user123") == "eiga_user_rooms_user123"


def test_composite_key_without_scope():
    assert composite_key(CacheKey.TRENDING_MOVIES) == "eiga_trending_movies"
    assert composite_key("custom") == "custom"


def test_qualified_key():
    assert CacheKey.MOVIE_DETAILS.qualified("providers", 550) == "eiga_movie_details_providers_550"
    assert CacheKey.TRENDING_MOVIES.qualified("day") == "eiga_trending_movies_day"


def test_expiry_classes():
    assert CacheExpiry.SHORT < CacheExpiry.DEFAULT < CacheExpiry.LONG
    assert CacheExpiry.DEFAULT == 900


def test_entry_validity_window():
    entry = CacheEntry(payload=["r1"], stored_at=1000.0, ttl=60)

    assert entry.is_valid(1059.0)
    assert not entry.is_valid(1060.0)
    assert entry.age(1030.0) == 30.0


def test_entry_envelope_format():
    entry = CacheEntry(payload={"id": "r1"}, stored_at=1000.0, ttl=900)

    assert json.loads(entry.dumps()) == {"data": {"id": "r1"}, "timestamp": 1000.0, "expiry": 900}


def test_loads_defaults_missing_expiry():
    entry = CacheEntry.loads(json.dumps({"data": [1], "timestamp": 5}), default_ttl=300)

    assert entry.payload == [1]
    assert entry.stored_at == 5.0
    assert entry.ttl == 300


@pytest.mark.parametrize("blob", [
    "not json",
    "[1, 2, 3]",
    json.dumps({"data": [1]}),
    json.dumps({"data": [1], "timestamp": "yesterday"}),
])
def test_loads_rejects_malformed_envelopes(blob):
    with pytest.raises(ValueError):
        CacheEntry.loads(blob, default_ttl=300)

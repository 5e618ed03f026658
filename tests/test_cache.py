"""Tests for cache module."""

import sys
import os
import time
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from casino_offers import cache
from casino_offers.models import UserInfo, UserOffers
from tests.mock_data import USER1_OFFERS


@pytest.fixture(autouse=True)
def tmp_cache(tmp_path, monkeypatch):
    """Redirect the cache DB to a temp directory for each test."""
    monkeypatch.setattr(cache, "CACHE_DIR", tmp_path)
    monkeypatch.setattr(cache, "CACHE_FILE", tmp_path / "cache.db")


def test_set_get():
    """Test basic set and get."""
    cache.set("test_key_1", {"offers": [1, 2]}, ttl=60)
    assert cache.get("test_key_1") == {"offers": [1, 2]}


def test_get_missing():
    """Test get with missing key."""
    assert cache.get("nonexistent_key_xyz") is None


def test_expired():
    """Test that expired entries return None."""
    cache.set("test_expire", {"data": True}, ttl=-1)
    assert cache.get("test_expire") is None


def test_overwrite():
    cache.set("k", 1, ttl=60)
    cache.set("k", 2, ttl=60)
    assert cache.get("k") == 2


def test_clear_expired_and_list_entries():
    cache.set("old", 1, ttl=-1)
    cache.set("new", 2, ttl=60)
    assert [key for key, _, _ in cache.list_entries()] == ["new"]
    assert cache.clear_expired() == 1
    assert cache.get("new") == 2


def test_clear_all():
    cache.set("a", 1, ttl=60)
    cache.clear_all()
    assert cache.get("a") is None
    assert cache.list_entries() == []


def test_unserializable_value_is_not_stored():
    cache.set("bad", {"when": time}, ttl=60)
    assert cache.get("bad") is None


def test_make_key():
    """Test cache key generation."""
    assert cache.make_key(" Guest@Example.com ") == "offers_R_guest@example.com"
    assert cache.make_key("guest@example.com", "c") == "offers_C_guest@example.com"


def test_user_offers_round_trip():
    user_offers = UserOffers(
        label="USER1",
        user_info=UserInfo(consumer_id="C-1", loyalty_id="L-1", account_id="A-1"),
        offers_with_details=USER1_OFFERS,
    )
    cache.set(cache.make_key("guest"), user_offers.to_dict())
    restored = UserOffers.from_dict(cache.get(cache.make_key("guest")))
    assert restored == user_offers


def test_list_entries_reports_store_time(monkeypatch):
    monkeypatch.setattr(cache.time, "time", lambda: 1_000.0)
    cache.set("first", 1, ttl=60)
    monkeypatch.setattr(cache.time, "time", lambda: 1_010.0)
    cache.set("second", 2, ttl=120)
    cache.set("gone", 3, ttl=-1)

    assert cache.list_entries() == [("first", 1_000.0, 1_060.0), ("second", 1_010.0, 1_130.0)]


def test_overwrite_refreshes_store_time(monkeypatch):
    monkeypatch.setattr(cache.time, "time", lambda: 1_000.0)
    cache.set("k", 1, ttl=600)
    monkeypatch.setattr(cache.time, "time", lambda: 1_300.0)
    cache.set("k", 2, ttl=600)
    assert cache.list_entries() == [("k", 1_300.0, 1_900.0)]


def test_cached_entry_takes_the_requested_label():
    user_offers = UserOffers(
        label="USER1",
        user_info=UserInfo(consumer_id="C-9", loyalty_id="L-9"),
        offers_with_details=USER1_OFFERS,
    )
    cache.set(cache.make_key("alice"), user_offers.to_dict())
    restored = UserOffers.from_dict(cache.get(cache.make_key("alice")), label="USER2")
    assert restored.label == "USER2"
    assert restored.user_info.consumer_id == "C-9"
    assert UserOffers.from_dict(user_offers.to_dict()).label == "USER1"

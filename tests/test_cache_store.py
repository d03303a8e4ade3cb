"""
Unit tests for the in-memory cache entry store.
"""
from cryptotracker.cache.core import CacheEntry
from cryptotracker.cache.store import CacheStore


def _entry(data, fetched_at=100.0, source="coingecko"):
    return CacheEntry(data=data, fetched_at=fetched_at, source=source)


def test_lookup_missing_key_returns_none():
    assert CacheStore().lookup("coin_detail:id=bitcoin") is None


def test_store_replaces_entry():
    store = CacheStore()
    store.store("k", _entry("old"))
    store.store("k", _entry("new", fetched_at=200.0, source="binance"))

    entry = store.lookup("k")
    assert entry.data == "new"
    assert entry.source == "binance"
    assert len(store) == 1


def test_remove():
    store = CacheStore()
    store.store("k", _entry(1))
    assert store.remove("k") is True
    assert store.remove("k") is False
    assert "k" not in store


def test_remove_matching():
    store = CacheStore()
    store.store("coin_detail:id=bitcoin", _entry(1))
    store.store("coin_detail:id=ethereum", _entry(2))
    store.store("trending", _entry(3))

    removed = store.remove_matching(lambda key: key.startswith("coin_detail"))

    assert removed == 2
    assert store.lookup("trending") is not None


def test_sweep_removes_entries_at_or_past_max_age():
    store = CacheStore()
    store.store("old", _entry(1, fetched_at=0.0))
    store.store("edge", _entry(2, fetched_at=100.0))
    store.store("young", _entry(3, fetched_at=150.0))

    removed = store.sweep(now=200.0, max_age=100.0)

    assert removed == 2
    assert "young" in store
    assert "edge" not in store


def test_ages_and_clear():
    store = CacheStore()
    store.store("a", _entry(1, fetched_at=90.0))
    assert store.ages(100.0) == [("a", 10.0, "coingecko")]
    assert store.clear() == 1
    assert len(store) == 0

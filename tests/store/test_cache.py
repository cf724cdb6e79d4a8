from __future__ import annotations

import json
from datetime import timedelta

from calendar_crawler.store import TTLCache


def test_set_then_get_within_ttl(memory_store, fake_clock) -> None:
    cache = TTLCache(memory_store, clock=fake_clock)
    assert cache.set("scraped_events", [{"id": "a"}], ttl=timedelta(minutes=30))
    fake_clock.advance(29 * 60)
    assert cache.get("scraped_events") == [{"id": "a"}]


def test_entry_layout_uses_milliseconds(memory_store, fake_clock) -> None:
    cache = TTLCache(memory_store, clock=fake_clock)
    cache.set("k", {"v": 1}, ttl=1.5)
    entry = json.loads(memory_store.get_item("cache_k"))
    assert entry["data"] == {"v": 1}
    assert entry["ttl"] == 1500
    assert entry["storedAt"] == int(fake_clock.now * 1000)
    assert entry["expires"] == entry["storedAt"] + 1500


def test_expired_entry_is_a_miss_and_evicted(memory_store, fake_clock) -> None:
    cache = TTLCache(memory_store, clock=fake_clock)
    cache.set("k", "value", ttl=0.01)
    fake_clock.advance(0.02)
    assert cache.get("k") is None
    assert memory_store.get_item("cache_k") is None


def test_corrupt_entries_are_misses(memory_store) -> None:
    cache = TTLCache(memory_store)
    memory_store.set_item("cache_bad_json", "{not json")
    memory_store.set_item("cache_bad_shape", json.dumps({"data": 1}))
    assert cache.get("bad_json", "fallback") == "fallback"
    assert cache.get("bad_shape") is None
    assert len(memory_store) == 0


def test_overwrite_is_unconditional(memory_store) -> None:
    cache = TTLCache(memory_store)
    cache.set("k", 1)
    cache.set("k", 2)
    assert cache.get("k") == 2
    assert cache.contains("k")
    assert not cache.contains("missing")


def test_sweep_removes_only_expired_and_corrupt(memory_store, fake_clock) -> None:
    cache = TTLCache(memory_store, clock=fake_clock)
    cache.set("fresh", 1, ttl=60)
    cache.set("stale", 2, ttl=1)
    memory_store.set_item("cache_junk", "???")
    memory_store.set_item("history_events", "untouched")
    fake_clock.advance(5)

    assert cache.sweep() == 2
    assert cache.get("fresh") == 1
    assert memory_store.get_item("history_events") == "untouched"


def test_clear_and_info_are_prefix_scoped(memory_store) -> None:
    cache = TTLCache(memory_store)
    cache.set("a", "x" * 10)
    memory_store.set_item("history_events", "keep")
    info = cache.info()
    assert info["supported"] is True
    assert info["keys"] == 1
    assert info["total_size"] > 10
    assert cache.clear()
    assert memory_store.get_item("history_events") == "keep"
    assert cache.info()["keys"] == 0


def test_unavailable_storage_degrades_to_miss(broken_store) -> None:
    cache = TTLCache(broken_store)
    assert cache.set("k", 1) is False
    assert cache.get("k", "default") == "default"
    assert cache.sweep() == 0
    assert cache.clear() is False
    assert cache.info()["supported"] is False

import pytest

from conftest import FakeClock
from dreamscape.core.errors import CacheQuotaExceeded
from dreamscape.core.timers import ManualScheduler
from dreamscape.reasoning.cache_store import JsonFileCacheStore
from dreamscape.reasoning.response_cache import CacheConfig, ResponseCache


def test_entry_expires_after_ttl(clock):
    cache = ResponseCache(clock=clock)
    cache.set("prompt", {"answer": 42}, ttl=0.1)

    clock.advance(0.05)
    assert cache.get("prompt") == {"answer": 42}

    clock.advance(0.1)
    assert cache.get("prompt") is None
    assert "prompt" not in cache

    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["size"] == 0
    assert stats["hit_rate"] == pytest.approx(0.5)


def test_default_ttl_applies_without_per_entry_ttl(clock):
    cache = ResponseCache(default_ttl=10.0, clock=clock)
    cache.set("k", "v")
    clock.advance(9.0)
    assert cache.get("k") == "v"
    clock.advance(2.0)
    assert cache.get("k") is None


def test_full_cache_evicts_oldest_insert(clock):
    cache = ResponseCache(max_size=2, clock=clock)
    cache.set("a", 1)
    clock.advance(1)
    cache.set("b", 2)
    clock.advance(1)
    cache.set("c", 3)

    assert len(cache) == 2
    assert sorted(cache.keys()) == ["b", "c"]


def test_replacing_existing_key_does_not_evict(clock):
    cache = ResponseCache(max_size=2, clock=clock)
    cache.set("a", 1)
    clock.advance(1)
    cache.set("b", 2)
    cache.set("a", 10)

    assert sorted(cache.keys()) == ["a", "b"]
    assert cache.get("a") == 10


def test_clear_resets_entries_and_counters(clock):
    cache = ResponseCache(clock=clock)
    cache.get("missing")
    cache.set("k", "v")
    cache.get("k")
    cache.clear()

    assert cache.stats() == {"size": 0, "max_size": 50, "hits": 0, "misses": 0, "hit_rate": 0.0}


def test_sweep_removes_only_expired(clock):
    cache = ResponseCache(clock=clock)
    cache.set("short", 1, ttl=1.0)
    cache.set("long", 2, ttl=100.0)
    clock.advance(10.0)

    assert cache.sweep() == 1
    assert cache.keys() == ["long"]


def test_periodic_sweeper_runs_on_scheduler():
    scheduler = ManualScheduler()
    cache = ResponseCache(clock=scheduler.now)
    cache.set("k", "v", ttl=10.0)
    cache.start_sweeper(scheduler, interval=300.0)

    scheduler.advance(300.0)
    assert len(cache) == 0

    cache.stop_sweeper()
    assert scheduler.pending() == []


def test_persisted_entries_survive_reload(tmp_path, clock):
    path = tmp_path / "cache.json"
    first = ResponseCache(store=JsonFileCacheStore(path), clock=clock)
    first.set("prompt", {"choices": []})
    first.get("prompt")

    second = ResponseCache(store=JsonFileCacheStore(path), clock=clock)
    assert second.get("prompt") == {"choices": []}
    assert second.stats()["hits"] == 1


def test_expired_entries_are_dropped_on_reload(tmp_path, clock):
    path = tmp_path / "cache.json"
    first = ResponseCache(store=JsonFileCacheStore(path), clock=clock)
    first.set("old", 1, ttl=5.0)
    clock.advance(10.0)

    second = ResponseCache(store=JsonFileCacheStore(path), clock=clock)
    assert len(second) == 0


def test_corrupt_store_starts_empty(tmp_path, clock):
    path = tmp_path / "cache.json"
    path.write_text("{not valid json")

    cache = ResponseCache(store=JsonFileCacheStore(path), clock=clock)
    assert len(cache) == 0

    cache.set("k", "v")
    assert cache.get("k") == "v"


def test_store_quota_is_enforced(tmp_path):
    store = JsonFileCacheStore(tmp_path / "cache.json", max_bytes=10)
    with pytest.raises(CacheQuotaExceeded):
        store.save({"entries": {"k": {"value": "x" * 100}}})


def test_quota_failure_does_not_raise_from_set(tmp_path, clock):
    store = JsonFileCacheStore(tmp_path / "cache.json", max_bytes=10)
    cache = ResponseCache(store=store, clock=clock)

    cache.set("k", "x" * 100)
    cache.set("j", "y" * 100)


def test_from_config_builds_persistent_cache(tmp_path):
    config = CacheConfig(max_size=5, default_ttl=60.0, persist_path=str(tmp_path / "c.json"))
    cache = ResponseCache.from_config(config, clock=FakeClock())
    cache.set("k", "v")

    assert cache.max_size == 5
    assert (tmp_path / "c.json").exists()

"""Tests for the response cache, its expiry and eviction policy, and storage backends."""

import json
import sys
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cruxfetch.cache import CACHE_EXPIRY_SECONDS, CACHE_PREFIX, FileStorage, MemoryStorage, ResponseCache
from cruxfetch.errors import StorageQuotaExceededError


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FullStorage(MemoryStorage):
    """Storage that rejects every write while ``full`` is set; removals free space."""

    def __init__(self, frees_on_remove: bool = True) -> None:
        super().__init__()
        self.full = False
        self._frees_on_remove = frees_on_remove

    def set_item(self, key, value):
        if self.full:
            raise StorageQuotaExceededError("storage is full")
        super().set_item(key, value)

    def remove_item(self, key):
        super().remove_item(key)
        if self._frees_on_remove:
            self.full = False


def test_get_after_set_returns_value():
    """Verify a value written to the cache is returned unchanged before it expires."""
    cache = ResponseCache(MemoryStorage(), clock=FakeClock())
    value = {"record": {"metrics": {}}, "nested": [1, 2, 3]}

    assert cache.set("current_https://example.com_ALL", value) is True
    assert cache.get("current_https://example.com_ALL") == value


def test_get_missing_key_returns_none():
    """Verify a missing key reads as None."""
    cache = ResponseCache(MemoryStorage(), clock=FakeClock())

    assert cache.get("missing") is None


def test_get_after_expiry_returns_none_and_removes_entry():
    """Verify expired entries read as None and are deleted when observed."""
    clock = FakeClock()
    storage = MemoryStorage()
    cache = ResponseCache(storage, clock=clock)
    cache.set("key", {"record": None})

    clock.now += CACHE_EXPIRY_SECONDS
    assert cache.get("key") == {"record": None}

    clock.now += 1
    assert cache.get("key") is None
    assert storage.get_item(CACHE_PREFIX + "key") is None


def test_entry_expiry_is_stored_in_epoch_milliseconds():
    """Verify entries use the documented JSON layout with a 24-hour expiry."""
    clock = FakeClock(now=1000.0)
    storage = MemoryStorage()
    ResponseCache(storage, clock=clock).set("key", {"a": 1})

    item = json.loads(storage.get_item(CACHE_PREFIX + "key"))

    assert item == {"value": {"a": 1}, "expiry": 1_000_000 + CACHE_EXPIRY_SECONDS * 1000}


@pytest.mark.parametrize("raw", ["not json", "null", '{"value": 1}', '{"value": 1, "expiry": "soon"}'])
def test_corrupted_entry_is_removed(raw):
    """Verify unparseable or malformed entries read as None and are deleted."""
    storage = MemoryStorage()
    storage.set_item(CACHE_PREFIX + "key", raw)
    cache = ResponseCache(storage, clock=FakeClock())

    assert cache.get("key") is None
    assert storage.get_item(CACHE_PREFIX + "key") is None


def test_clear_removes_only_namespaced_entries_and_returns_count():
    """Verify clear removes every prefixed entry, leaves others and reports the exact count."""
    storage = MemoryStorage()
    storage.set_item("other_app_setting", "keep me")
    storage.set_item("cruxfetch_v0_old", "older format")
    cache = ResponseCache(storage, clock=FakeClock())
    for index in range(3):
        cache.set(f"key-{index}", {"index": index})

    assert cache.clear() == 3
    assert storage.keys() == ["other_app_setting", "cruxfetch_v0_old"]
    assert cache.clear() == 0


def test_set_evicts_oldest_fifth_when_storage_is_full():
    """Verify a full storage evicts the earliest-expiring 20% before writing."""
    clock = FakeClock()
    storage = FullStorage()
    cache = ResponseCache(storage, clock=clock)
    for index in range(10):
        cache.set(f"key-{index}", index)
        clock.now += 60

    storage.full = True
    assert cache.set("new", "value") is True

    assert cache.get("key-0") is None
    assert cache.get("key-1") is None
    assert [cache.get(f"key-{index}") for index in range(2, 10)] == list(range(2, 10))
    assert cache.get("new") == "value"


def test_eviction_removes_at_least_one_entry():
    """Verify eviction removes one entry when 20% rounds down to zero."""
    clock = FakeClock()
    storage = FullStorage()
    cache = ResponseCache(storage, clock=clock)
    for index in range(3):
        cache.set(f"key-{index}", index)
        clock.now += 60

    storage.full = True
    cache.set("new", "value")

    assert cache.get("key-0") is None
    assert cache.get("key-1") == 1
    assert cache.get("key-2") == 2


def test_eviction_fraction_is_configurable_and_ignores_other_namespaces():
    """Verify the evicted share follows the configured fraction and spares foreign keys."""
    clock = FakeClock()
    storage = FullStorage()
    storage.set_item("foreign", json.dumps({"value": 0, "expiry": 0}))
    cache = ResponseCache(storage, eviction_fraction=0.5, clock=clock)
    for index in range(4):
        cache.set(f"key-{index}", index)
        clock.now += 60

    storage.full = True
    evicted = cache.evict_oldest()

    assert evicted == 2
    assert storage.get_item("foreign") is not None
    assert cache.get("key-0") is None
    assert cache.get("key-1") is None
    assert cache.get("key-2") == 2


def test_set_drops_write_silently_when_storage_stays_full():
    """Verify a write that fails after eviction is dropped without raising."""
    storage = FullStorage(frees_on_remove=False)
    cache = ResponseCache(storage, clock=FakeClock())
    cache.set("old", 1)

    storage.full = True
    assert cache.set("new", 2) is False
    assert cache.get("new") is None


def test_memory_storage_enforces_quota():
    """Verify the in-memory backend rejects writes past its quota and keeps prior contents."""
    storage = MemoryStorage(quota_bytes=20)
    storage.set_item("a", "1234")

    with pytest.raises(StorageQuotaExceededError):
        storage.set_item("b", "x" * 20)

    assert storage.keys() == ["a"]


def test_memory_storage_quota_counts_replaced_value_once():
    """Verify overwriting a key is measured against the new value only."""
    storage = MemoryStorage(quota_bytes=10)
    storage.set_item("k", "123456789")
    storage.set_item("k", "987654321")

    assert storage.get_item("k") == "987654321"


def test_file_storage_persists_between_instances(tmp_path):
    """Verify cached entries written through a file backend survive a reload."""
    path = tmp_path / "nested" / "cache.json"
    clock = FakeClock()
    ResponseCache(FileStorage(path), clock=clock).set("key", {"record": {"x": 1}})

    reloaded = ResponseCache(FileStorage(path), clock=clock)

    assert reloaded.get("key") == {"record": {"x": 1}}
    assert not path.with_name("cache.json.tmp").exists()


def test_file_storage_treats_corrupt_file_as_empty(tmp_path):
    """Verify a corrupt cache file is ignored and replaced on the next write."""
    path = tmp_path / "cache.json"
    path.write_text("{not json", encoding="utf-8")

    storage = FileStorage(path)
    assert storage.keys() == []

    storage.set_item("key", "value")
    assert json.loads(path.read_text(encoding="utf-8")) == {"key": "value"}


def test_set_evicts_when_entry_does_not_fit_quota_bounded_storage():
    """Verify a full byte-quota storage keeps accepting new entries by evicting the oldest."""
    clock = FakeClock()
    storage = MemoryStorage(quota_bytes=3000)
    cache = ResponseCache(storage, clock=clock)
    payload = "x" * 900

    results = []
    for index in range(10):
        results.append(cache.set(f"key-{index}", payload))
        clock.now += 60

    assert results == [True] * 10
    assert cache.get("key-9") == payload
    assert cache.get("key-0") is None
    assert 1 <= len(storage.keys()) <= 3


def test_set_drops_entry_larger_than_the_whole_quota():
    """Verify an entry that cannot fit even after eviction is dropped without raising."""
    storage = MemoryStorage(quota_bytes=500)
    cache = ResponseCache(storage, clock=FakeClock())
    cache.set("small", "ok")

    assert cache.set("huge", "x" * 1000) is False
    assert cache.get("huge") is None


def test_file_storage_unreadable_path_starts_empty_and_drops_writes(tmp_path):
    """Verify a cache path that cannot be read or written leaves caching best effort."""
    path = tmp_path / "cache.json"
    path.mkdir()

    storage = FileStorage(path)
    cache = ResponseCache(storage, clock=FakeClock())

    assert storage.keys() == []
    assert cache.get("key") is None
    assert cache.set("key", {"record": None}) is False

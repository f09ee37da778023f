"""Local response cache with lazy expiry and quota-driven eviction.

Entries live in a key/value storage backend under a versioned key prefix, so
bumping the prefix invalidates every entry written in an older format. Each
value is stored as JSON ``{"value": <payload>, "expiry": <epoch ms>}``.

Caching is best effort: storage failures are logged and never raised to the
caller.
"""

from __future__ import annotations

import json
import logging
import math
import os
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import CacheStorageError, StorageQuotaExceededError

logger = logging.getLogger(__name__)

CACHE_PREFIX = "cruxfetch_v1_"
CACHE_EXPIRY_SECONDS = 24 * 60 * 60

_QUOTA_CHECK_KEY = "__test_quota__"


def _entry_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class MemoryStorage:
    """Size-bounded in-process key/value storage.

    This is the storage interface the cache relies on: ``get_item``,
    ``set_item``, ``remove_item`` and ``keys``. ``set_item`` raises
    :class:`StorageQuotaExceededError` when the write would take the stored
    size past ``quota_bytes``.
    """

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        self._quota_bytes = quota_bytes
        self._items: Dict[str, str] = {}

    def _size_after_write(self, key: str, value: str) -> int:
        size = sum(_entry_size(k, v) for k, v in self._items.items() if k != key)
        return size + _entry_size(key, value)

    def _persist(self) -> None:
        """Hook for subclasses that mirror the items to durable storage."""

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self._quota_bytes is not None and self._size_after_write(key, value) > self._quota_bytes:
            raise StorageQuotaExceededError(
                f"Writing '{key}' would exceed the cache storage quota of {self._quota_bytes} bytes."
            )

        previous = self._items.get(key)
        self._items[key] = value
        try:
            self._persist()
        except CacheStorageError:
            if previous is None:
                del self._items[key]
            else:
                self._items[key] = previous
            raise

    def remove_item(self, key: str) -> None:
        if self._items.pop(key, None) is not None:
            self._persist()

    def keys(self) -> List[str]:
        return list(self._items)


class FileStorage(MemoryStorage):
    """Size-bounded storage persisted as a single JSON object file.

    The file is rewritten atomically on every mutation. A missing file is an
    empty store; an unreadable or corrupt file is logged and the store starts
    empty, so later writes replace it or fail as dropped cache writes.
    """

    def __init__(self, path: Path, quota_bytes: Optional[int] = None) -> None:
        super().__init__(quota_bytes=quota_bytes)
        self._path = Path(path)
        self._items = self._load()

    def _load(self) -> Dict[str, str]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning(
                "Cannot read cache file; starting with an empty cache",
                extra={"cache_path": str(self._path), "error": str(exc)},
            )
            return {}

        try:
            data = json.loads(text)
        except ValueError:
            data = None

        if not isinstance(data, dict):
            logger.warning("Ignoring unreadable cache file", extra={"cache_path": str(self._path)})
            return {}

        return {str(key): value for key, value in data.items() if isinstance(value, str)}

    def _persist(self) -> None:
        temp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(json.dumps(self._items), encoding="utf-8")
            os.replace(temp_path, self._path)
        except OSError as exc:
            raise CacheStorageError(f"Failed to write cache file {self._path}: {exc}") from exc


class ResponseCache:
    """Time-expiring key/value cache for raw API responses.

    Every entry expires ``CACHE_EXPIRY_SECONDS`` after it was written.
    Expired and corrupt entries are removed when a read observes them; there
    is no background sweep.
    """

    def __init__(
        self,
        storage: MemoryStorage,
        prefix: str = CACHE_PREFIX,
        eviction_fraction: float = 0.2,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage = storage
        self._prefix = prefix
        self._eviction_fraction = eviction_fraction
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _namespaced_keys(self) -> List[str]:
        return [key for key in self._storage.keys() if key.startswith(self._prefix)]

    def _remove(self, storage_key: str) -> bool:
        try:
            self._storage.remove_item(storage_key)
        except CacheStorageError as exc:
            logger.warning(
                "Failed to remove cache entry",
                extra={"storage_key": storage_key, "error": str(exc)},
            )
            return False
        return True

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value for ``key``, or ``None`` if missing, expired or corrupt."""
        storage_key = self._prefix + key
        raw = self._storage.get_item(storage_key)
        if raw is None:
            return None

        try:
            item = json.loads(raw)
            value = item["value"]
            expiry = item["expiry"]
            if isinstance(expiry, bool) or not isinstance(expiry, (int, float)):
                raise ValueError("expiry is not a timestamp")
        except (ValueError, TypeError, KeyError):
            logger.warning("Removing corrupted cache entry", extra={"cache_key": key})
            self._remove(storage_key)
            return None

        if self._now_ms() > expiry:
            logger.debug("Removing expired cache entry", extra={"cache_key": key})
            self._remove(storage_key)
            return None

        return value

    def set(self, key: str, value: Any) -> bool:
        """Store ``value`` under ``key``; returns ``False`` when the write was dropped.

        Old entries are evicted once, either when a trial write finds the
        storage full or when the entry itself does not fit; the write is then
        attempted one more time.
        """
        evicted = self._evict_if_needed()

        item = {
            "value": value,
            "expiry": self._now_ms() + CACHE_EXPIRY_SECONDS * 1000,
        }
        storage_key = self._prefix + key
        serialized = json.dumps(item)
        try:
            try:
                self._storage.set_item(storage_key, serialized)
            except StorageQuotaExceededError:
                if evicted:
                    raise
                self.evict_oldest()
                self._storage.set_item(storage_key, serialized)
        except CacheStorageError as exc:
            logger.warning(
                "Dropping cache write",
                extra={"cache_key": key, "error": str(exc)},
            )
            return False

        logger.debug("Cached response", extra={"cache_key": key})
        return True

    def _evict_if_needed(self) -> bool:
        """Try a tiny write against the storage and evict old entries if it is full.

        Returns:
            ``True`` when an eviction ran.
        """
        check_key = self._prefix + _QUOTA_CHECK_KEY
        try:
            self._storage.set_item(check_key, "test")
            self._storage.remove_item(check_key)
        except StorageQuotaExceededError:
            self.evict_oldest()
            return True
        except CacheStorageError as exc:
            logger.warning("Cache storage quota check failed", extra={"error": str(exc)})
        return False

    def evict_oldest(self) -> int:
        """Remove the earliest-expiring share of entries; returns the number removed.

        At least one entry is removed whenever the namespace holds any.
        Entries whose expiry cannot be read are skipped.
        """
        check_key = self._prefix + _QUOTA_CHECK_KEY
        entries: List[Tuple[float, str]] = []

        for storage_key in self._namespaced_keys():
            if storage_key == check_key:
                continue
            raw = self._storage.get_item(storage_key)
            if raw is None:
                continue
            try:
                expiry = json.loads(raw).get("expiry") or 0
            except (ValueError, AttributeError):
                continue
            if isinstance(expiry, bool) or not isinstance(expiry, (int, float)):
                expiry = 0
            entries.append((expiry, storage_key))

        entries.sort(key=lambda entry: entry[0])
        to_remove = min(len(entries), max(1, math.floor(len(entries) * self._eviction_fraction)))

        removed = 0
        for _, storage_key in entries[:to_remove]:
            if self._remove(storage_key):
                removed += 1

        logger.warning(
            "Cache storage quota exceeded; evicted oldest entries",
            extra={"evicted": removed, "entries": len(entries)},
        )
        return removed

    def clear(self) -> int:
        """Remove every entry under this cache's prefix and return how many were removed."""
        cleared = 0
        for storage_key in self._namespaced_keys():
            if self._remove(storage_key):
                cleared += 1

        logger.info("Cache cleared", extra={"removed": cleared})
        return cleared

"""
Cache store for a single bucket.

A CacheStore keeps one bucket's entries in memory behind its own lock and
writes the whole bucket back to its file after every change. Expired
entries are not purged in the background; they are dropped when a read,
a walk or a clean observes them, and that drop is itself a change that
gets persisted.

Every mutating call rewrites the full bucket file, so stores are meant for
small to moderate buckets, not for high-churn or large datasets.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Callable

from filecache.codec import Codec
from filecache.exceptions import CacheDecodeError, CacheEncodeError, FileCacheError
from filecache.logging import get_logger, log_context
from filecache.persistence import BucketFile
from filecache.types import TTL, CacheEntry, Clock, to_timedelta, utc_now

logger = get_logger(__name__)

# Receives (key, value); returning False stops the walk.
Visitor = Callable[[str, Any], Any]
# Receives (key, value); returning True deletes the entry.
Predicate = Callable[[str, Any], bool]


class CacheStore:
    """In-memory map for one bucket, persisted to one file.

    All public methods hold the store lock for their whole duration,
    including file I/O, and tag their log records with the bucket name and
    operation. Visitors and predicates run under that lock and must not
    call back into the same store. They must not touch other buckets of
    the same Cacher either while it may be closing: Cacher.close() holds
    the registry lock while it takes each store lock, so a callback
    waiting on the registry deadlocks against it.
    """

    def __init__(
        self,
        name: str,
        path: str | Path,
        codec: Codec,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize an empty store. Call load() to read the file.

        Args:
            name: Bucket name, used for logging.
            path: Backing file location.
            codec: Codec for values and the bucket document.
            clock: Source of the current time.
        """
        self.name = name
        self._file = BucketFile(path, codec)
        self._codec = codec
        self._clock = clock
        self._lock = threading.Lock()
        self._data: dict[str, CacheEntry] = {}

    @property
    def path(self) -> Path:
        return self._file.path

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data

    def keys(self) -> list[str]:
        """Snapshot of stored keys, expired ones included."""
        with self._lock:
            return list(self._data)

    def load(self) -> None:
        """Replace the in-memory map with the file content.

        A missing file leaves the store empty.
        """
        with self._lock, log_context(bucket=self.name, operation="load"):
            self._data = self._file.load()

    def save(self) -> None:
        """Write the in-memory map to the file."""
        with self._lock, log_context(bucket=self.name, operation="save"):
            self._save()

    def get(self, key: str, as_type: Any = Any) -> tuple[bool, Any]:
        """Look up a live entry.

        An expired entry is deleted and the bucket persisted before
        reporting it as missing.

        Returns:
            (True, value decoded as ``as_type``) or (False, None).
        """
        with self._lock, log_context(bucket=self.name, operation="get"):
            entry = self._data.get(key)
            if entry is None:
                return False, None
            if entry.is_expired(self._clock()):
                del self._data[key]
                logger.debug("Evicted expired entry", key=key)
                self._save()
                return False, None
            return True, self._decode(key, entry, as_type)

    def get_frozen(self, key: str, as_type: Any = Any) -> tuple[bool, Any]:
        """Look up an entry without checking its expiration."""
        with self._lock, log_context(bucket=self.name, operation="get_frozen"):
            entry = self._data.get(key)
            if entry is None:
                return False, None
            return True, self._decode(key, entry, as_type)

    def set(self, key: str, ttl: TTL, value: Any) -> None:
        """Store a value that expires ``ttl`` from now."""
        delta = to_timedelta(ttl)
        payload = self._encode(key, value)
        with self._lock, log_context(bucket=self.name, operation="set"):
            self._data[key] = CacheEntry(value=payload, expiration=self._clock() + delta)
            self._save()

    def set_frozen(self, key: str, value: Any) -> None:
        """Store a value that never expires."""
        payload = self._encode(key, value)
        with self._lock, log_context(bucket=self.name, operation="set_frozen"):
            self._data[key] = CacheEntry(value=payload, expiration=None)
            self._save()

    def delete(self, key: str) -> None:
        """Remove a key. Missing keys are not an error."""
        with self._lock, log_context(bucket=self.name, operation="delete"):
            self._data.pop(key, None)
            self._save()

    def range(self, visitor: Visitor, as_type: Any = Any) -> None:
        """Call ``visitor(key, value)`` for every live entry.

        Expired entries met during the walk are deleted. The walk stops
        when the visitor returns False. The bucket is persisted at the end
        in every case, so evictions done before a stop or an error are
        kept.
        """
        with self._lock, log_context(bucket=self.name, operation="range"):
            now = self._clock()
            try:
                for key, entry in list(self._data.items()):
                    if entry.is_expired(now):
                        del self._data[key]
                        logger.debug("Evicted expired entry", key=key)
                        continue
                    if visitor(key, self._decode(key, entry, as_type)) is False:
                        break
            finally:
                self._save()

    def delete_if(self, predicate: Predicate, as_type: Any = Any) -> int:
        """Delete every entry for which ``predicate(key, value)`` is true.

        No expiration check is made: expired and frozen entries are offered
        to the predicate like any other.

        Returns:
            Number of deleted entries.
        """
        deleted = 0
        with self._lock, log_context(bucket=self.name, operation="delete_if"):
            try:
                for key, entry in list(self._data.items()):
                    if predicate(key, self._decode(key, entry, as_type)):
                        del self._data[key]
                        deleted += 1
            finally:
                self._save()
        return deleted

    def clean(self) -> int:
        """Delete expired entries only.

        Returns:
            Number of deleted entries.
        """
        with self._lock, log_context(bucket=self.name, operation="clean"):
            now = self._clock()
            expired = [key for key, entry in self._data.items() if entry.is_expired(now)]
            for key in expired:
                del self._data[key]
            self._save()
            if expired:
                logger.debug("Cleaned bucket", removed=len(expired))
        return len(expired)

    def empty(self) -> None:
        """Delete every entry."""
        with self._lock, log_context(bucket=self.name, operation="empty"):
            self._data = {}
            self._save()

    def _save(self) -> None:
        # Caller holds self._lock.
        try:
            self._file.save(self._data)
        except FileCacheError as e:
            logger.error("Failed to persist bucket", path=str(self.path), error=str(e))
            raise

    def _encode(self, key: str, value: Any) -> Any:
        try:
            return self._codec.encode(value)
        except CacheEncodeError as e:
            e.context.update(bucket=self.name, key=key)
            raise

    def _decode(self, key: str, entry: CacheEntry, as_type: Any) -> Any:
        try:
            return self._codec.decode(entry.value, as_type)
        except CacheDecodeError as e:
            e.context.update(bucket=self.name, key=key)
            raise

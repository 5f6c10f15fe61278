"""
Cacher: the bucket registry and public cache API.

The Cacher owns a cache directory, lazily creates one CacheStore per bucket
name (loading its file when there is one) and routes every bucket-scoped
call to that store. It also runs the directory-wide operations: total size,
bulk removal and closing.

Two locks are involved. The registry lock guards the name-to-store map and
is held for the whole of the directory-wide operations. Each store has its
own lock for its entries and file. A bucket-scoped call takes the registry
lock only to resolve the store and releases it before taking the store
lock, so the two never wait on each other in a cycle.
"""

from __future__ import annotations

import threading
from pathlib import Path
from types import TracebackType
from typing import Any, Callable, Union

from filecache.codec import Codec, JSONCodec
from filecache.config import Settings, get_settings
from filecache.exceptions import CacheIOError, ConfigurationError, FileCacheError
from filecache.logging import get_logger
from filecache.persistence import BucketFile
from filecache.scanner import DirectoryScanner
from filecache.store import CacheStore, Predicate, Visitor
from filecache.types import TTL, Bucket, Clock, to_timedelta, utc_now

logger = get_logger(__name__)

DEFAULT_EXT = ".cache"

BucketRef = Union[str, Bucket]


class Cacher:
    """File-persisted key/value cache organized in buckets.

    Example:
        with Cacher(".filecache") as cacher:
            users = Bucket.create("users", ttl=300)
            cacher.set(users, None, "u1", {"name": "Ada"})
            found, user = cacher.get(users, "u1", as_type=User)
    """

    def __init__(
        self,
        directory: str | Path,
        ext: str = DEFAULT_EXT,
        codec: Codec | None = None,
        clock: Clock | None = None,
        default_ttl: TTL | None = None,
    ) -> None:
        """Initialize the cacher, creating the directory if needed.

        Args:
            directory: Directory holding one file per bucket.
            ext: Bucket file extension, with its leading dot.
            codec: Value codec. Defaults to JSONCodec.
            clock: Source of the current time. Defaults to utc_now.
            default_ttl: TTL used by set() when ttl is None and the bucket
                is given by name. Without it such calls raise ValueError.

        Raises:
            ConfigurationError: If the extension is invalid.
            CacheIOError: If the directory cannot be created.
        """
        if not ext.startswith(".") or len(ext) < 2:
            raise ConfigurationError(
                "Extension must start with '.' and name an extension", context={"ext": ext}
            )

        self.directory = Path(directory)
        self.ext = ext
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheIOError(
                f"Failed to create cache directory: {e}",
                context={"path": str(self.directory), "operation": "mkdir"},
            ) from e

        self._codec = codec or JSONCodec()
        self._clock = clock or utc_now
        self.default_ttl = to_timedelta(default_ttl) if default_ttl is not None else None
        self._stores: dict[str, CacheStore] = {}
        self._lock = threading.Lock()
        self._scanner = DirectoryScanner(self.directory, ext)

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs: Any) -> Cacher:
        """Build a cacher from FILECACHE_DIR, FILECACHE_EXT and FILECACHE_DEFAULT_TTL."""
        settings = settings or get_settings()
        kwargs.setdefault("default_ttl", settings.FILECACHE_DEFAULT_TTL)
        return cls(settings.FILECACHE_DIR, ext=settings.FILECACHE_EXT, **kwargs)

    def __enter__(self) -> Cacher:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Cacher(directory={str(self.directory)!r}, ext={self.ext!r})"

    # --- Registry ---

    def _bucket_name(self, bucket: BucketRef) -> str:
        name = bucket.name if isinstance(bucket, Bucket) else bucket
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise ValueError(f"Invalid bucket name: {name!r}")
        return name

    def _bucket_path(self, name: str) -> Path:
        return self.directory / f"{name}{self.ext}"

    def get_store(self, bucket: BucketRef) -> CacheStore:
        """Return the store for a bucket, creating and loading it if needed.

        Raises:
            CacheIOError: If an existing bucket file cannot be read.
            CacheDecodeError: If an existing bucket file is malformed.
        """
        name = self._bucket_name(bucket)
        with self._lock:
            store = self._stores.get(name)
            if store is None:
                store = CacheStore(name, self._bucket_path(name), self._codec, self._clock)
                store.load()
                self._stores[name] = store
                logger.debug("Opened bucket", bucket=name, entries=len(store))
            return store

    def loaded_buckets(self) -> list[str]:
        """Names of the buckets currently held in memory."""
        with self._lock:
            return sorted(self._stores)

    def list_buckets(self) -> list[str]:
        """Names of the buckets that have a file on disk."""
        with self._lock:
            return self._scanner.bucket_names()

    def bucket_size(self, bucket: BucketRef) -> int:
        """Size in bytes of a bucket file, 0 if it has none."""
        return BucketFile(self._bucket_path(self._bucket_name(bucket)), self._codec).size()

    # --- Bucket-scoped operations ---

    def set(self, bucket: BucketRef, ttl: TTL | None, key: str, value: Any) -> None:
        """Store ``value`` under ``key`` for ``ttl``.

        ``ttl`` may be None: a Bucket supplies its own TTL, a bucket name
        falls back to ``default_ttl``.
        """
        if ttl is None:
            if isinstance(bucket, Bucket):
                ttl = bucket.ttl
            elif self.default_ttl is not None:
                ttl = self.default_ttl
            else:
                raise ValueError("ttl is required when the bucket is given by name")
        self.get_store(bucket).set(key, ttl, value)

    def set_frozen(self, bucket: BucketRef, key: str, value: Any) -> None:
        """Store ``value`` under ``key`` with no expiration."""
        self.get_store(bucket).set_frozen(key, value)

    def get(self, bucket: BucketRef, key: str, as_type: Any = Any) -> tuple[bool, Any]:
        """Return (found, value) for a live entry, evicting it if expired."""
        return self.get_store(bucket).get(key, as_type)

    def get_frozen(self, bucket: BucketRef, key: str, as_type: Any = Any) -> tuple[bool, Any]:
        """Return (found, value) ignoring expiration."""
        return self.get_store(bucket).get_frozen(key, as_type)

    def delete(self, bucket: BucketRef, key: str) -> None:
        self.get_store(bucket).delete(key)

    def range(self, bucket: BucketRef, visitor: Visitor, as_type: Any = Any) -> None:
        """Walk live entries; see CacheStore.range."""
        self.get_store(bucket).range(visitor, as_type)

    def get_all(self, bucket: BucketRef, as_type: Any = Any) -> dict[str, Any]:
        """Return every live entry of a bucket, decoded as ``as_type``."""
        result: dict[str, Any] = {}

        def collect(key: str, value: Any) -> bool:
            result[key] = value
            return True

        self.get_store(bucket).range(collect, as_type)
        return result

    def delete_if(self, bucket: BucketRef, predicate: Predicate, as_type: Any = Any) -> int:
        """Delete matching entries, expired and frozen ones included."""
        return self.get_store(bucket).delete_if(predicate, as_type)

    def empty_bucket(self, bucket: BucketRef) -> None:
        """Delete every entry of a bucket, keeping the bucket file."""
        self.get_store(bucket).empty()

    def clean_bucket(self, bucket: BucketRef) -> int:
        """Delete the expired entries of a bucket."""
        return self.get_store(bucket).clean()

    def remove_bucket(self, bucket: BucketRef) -> bool:
        """Forget a bucket and delete its file.

        Returns:
            True if the bucket file was deleted, False if it did not exist.

        Raises:
            CacheIOError: If the file exists but cannot be deleted.
        """
        name = self._bucket_name(bucket)
        with self._lock:
            self._stores.pop(name, None)
            removed = BucketFile(self._bucket_path(name), self._codec).remove()

        if removed:
            logger.info("Removed bucket", bucket=name)
        else:
            logger.debug("Bucket file did not exist", bucket=name)
        return removed

    # --- Directory-wide operations ---

    def close(self) -> None:
        """Persist every loaded bucket.

        Stops at the first failure, which is raised; buckets after it are
        not persisted. The registry lock is held throughout, so visitors or
        predicates running concurrently must not reach for other buckets.
        """
        with self._lock:
            stores = list(self._stores.values())
            for index, store in enumerate(stores):
                try:
                    store.save()
                except FileCacheError:
                    logger.warning(
                        "Close stopped before persisting every bucket",
                        failed=store.name,
                        skipped=[s.name for s in stores[index + 1 :]],
                    )
                    raise
            count = len(stores)
        logger.debug("Closed cacher", directory=str(self.directory), buckets=count)

    def remove_all_by(self, filter: Callable[[str], bool]) -> int:
        """Delete every bucket file whose file name satisfies ``filter``.

        The whole registry is cleared afterwards, matched or not and even
        when the scan fails; unaffected buckets are reloaded from disk on
        their next use.

        Args:
            filter: Called with each bucket file name (extension included).

        Returns:
            Number of files deleted.
        """
        with self._lock:
            try:
                removed = self._scanner.remove_matching(filter)
            finally:
                self._stores.clear()

        logger.info("Removed bucket files", directory=str(self.directory), removed=removed)
        return removed

    def get_total_size(self) -> int:
        """Total size in bytes of all files directly in the cache directory."""
        with self._lock:
            return self._scanner.total_size()

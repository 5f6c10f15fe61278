"""File-persisted key/value cache organized in buckets with per-entry TTL."""

from filecache.cacher import Cacher
from filecache.codec import Codec, JSONCodec
from filecache.config import Settings, get_settings
from filecache.exceptions import (
    CacheDecodeError,
    CacheEncodeError,
    CacheIOError,
    ConfigurationError,
    FileCacheError,
)
from filecache.store import CacheStore
from filecache.types import Bucket, CacheEntry

__version__ = "0.1.0"

__all__ = [
    "Bucket",
    "CacheDecodeError",
    "CacheEncodeError",
    "CacheEntry",
    "CacheIOError",
    "CacheStore",
    "Cacher",
    "Codec",
    "ConfigurationError",
    "FileCacheError",
    "JSONCodec",
    "Settings",
    "get_settings",
]

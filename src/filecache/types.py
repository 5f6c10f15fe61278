"""
Core types for the file cache.

This module defines the data structures shared by the store and the cacher:
- CacheEntry: one stored value with its optional expiration
- Bucket: a name and TTL pair for callers
- Helper functions for timestamps and TTL normalization
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Union

# Anything accepted where a TTL is expected: a timedelta or seconds.
TTL = Union[timedelta, int, float]

# Returns the current time as an aware UTC datetime.
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def to_timedelta(ttl: TTL) -> timedelta:
    """Normalize a TTL given as a timedelta or a number of seconds."""
    if isinstance(ttl, timedelta):
        return ttl
    if isinstance(ttl, bool) or not isinstance(ttl, (int, float)):
        raise TypeError(f"TTL must be a timedelta or seconds, got {type(ttl).__name__}")
    return timedelta(seconds=ttl)


@dataclass(frozen=True)
class CacheEntry:
    """A stored value and the moment it stops being valid.

    ``value`` holds the encoded payload (JSON-compatible), never the
    caller's original object. An entry without expiration is frozen.
    """

    value: Any
    expiration: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        """Whether the entry is logically absent at ``now``."""
        return self.expiration is not None and now >= self.expiration


@dataclass(frozen=True)
class Bucket:
    """Immutable name and TTL pair.

    Purely a convenience for callers that always use the same TTL for a
    bucket; the cacher keeps no state about it.
    """

    name: str
    ttl: timedelta

    @classmethod
    def create(cls, name: str, ttl: TTL) -> Bucket:
        """Factory method accepting the TTL as a timedelta or seconds."""
        return cls(name=name, ttl=to_timedelta(ttl))

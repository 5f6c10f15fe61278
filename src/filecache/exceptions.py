"""
Custom exception hierarchy for the file cache.

All exceptions inherit from FileCacheError, which provides optional context
for structured error handling and logging.
"""

from __future__ import annotations

from typing import Any


class FileCacheError(Exception):
    """Base exception for all file cache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class CacheIOError(FileCacheError):
    """Raised when a bucket file or the cache directory cannot be accessed.

    Context should include:
        - path: The file or directory involved
        - operation: open, write, remove, scan, mkdir
    """

    pass


class CacheDecodeError(FileCacheError):
    """Raised when stored data cannot be decoded.

    Covers both malformed bucket files and values whose stored shape does
    not fit the requested type.

    Context should include:
        - path or key: Where the bad data was found
        - as_type: The requested type, for shape mismatches
    """

    pass


class CacheEncodeError(FileCacheError):
    """Raised when a value cannot be encoded for storage.

    Context should include:
        - key: The key being written
        - value_type: The type of the offending value
    """

    pass


class ConfigurationError(FileCacheError):
    """Raised when cache configuration is invalid.

    Examples:
        - Extension without a leading dot
        - Cache directory path pointing at a regular file
    """

    pass

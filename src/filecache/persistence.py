"""
Bucket file persistence.

One bucket is one file holding a single JSON document that maps each key
to its entry:

    {"<key>": {"value": <payload>, "expiration": "<ISO-8601>"}}

Frozen entries omit "expiration". The file is always read and written
whole; no handle is kept open between calls.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from filecache.codec import Codec
from filecache.exceptions import CacheDecodeError, CacheIOError
from filecache.logging import get_logger
from filecache.types import CacheEntry

logger = get_logger(__name__)


class BucketFile:
    """Reads and writes one bucket's entire dataset as one blob."""

    def __init__(self, path: str | Path, codec: Codec) -> None:
        """Initialize the bucket file.

        Args:
            path: Location of the bucket file.
            codec: Codec used to (de)serialize the document.
        """
        self.path = Path(path)
        self.codec = codec

    def size(self) -> int:
        """Size of the file in bytes, 0 if it does not exist."""
        try:
            return self.path.stat().st_size
        except FileNotFoundError:
            return 0

    def load(self) -> dict[str, CacheEntry]:
        """Read all entries from disk.

        Returns:
            Mapping of key to entry. Empty when the file does not exist.

        Raises:
            CacheIOError: If the file exists but cannot be read.
            CacheDecodeError: If the content is not a valid bucket document.
        """
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            logger.debug("No bucket file yet, starting empty", path=str(self.path))
            return {}
        except OSError as e:
            raise CacheIOError(
                f"Failed to open cache file: {e}",
                context={"path": str(self.path), "operation": "open"},
            ) from e

        try:
            document = self.codec.loads(data)
        except CacheDecodeError as e:
            e.context.setdefault("path", str(self.path))
            raise

        if not isinstance(document, dict):
            raise CacheDecodeError(
                "Bucket document must be an object",
                context={"path": str(self.path), "found": type(document).__name__},
            )

        entries = {key: self._dict_to_entry(key, raw) for key, raw in document.items()}
        logger.debug("Loaded bucket file", path=str(self.path), entries=len(entries))
        return entries

    def save(self, entries: dict[str, CacheEntry]) -> None:
        """Overwrite the file with the given entries.

        The document is fully serialized before the file is touched, so an
        encoding failure leaves the previous content in place.

        Raises:
            CacheEncodeError: If the document cannot be serialized.
            CacheIOError: If the file cannot be written.
        """
        document = {key: self._entry_to_dict(entry) for key, entry in entries.items()}
        data = self.codec.dumps(document)

        try:
            with open(self.path, "wb") as f:
                f.write(data)
        except OSError as e:
            raise CacheIOError(
                f"Failed to write cache file: {e}",
                context={"path": str(self.path), "operation": "write"},
            ) from e

        logger.debug(
            "Saved bucket file", path=str(self.path), entries=len(entries), size=len(data)
        )

    def remove(self) -> bool:
        """Delete the file.

        Returns:
            True if a file was deleted, False if there was none.

        Raises:
            CacheIOError: If the file exists but cannot be deleted.
        """
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise CacheIOError(
                f"Failed to remove cache file: {e}",
                context={"path": str(self.path), "operation": "remove"},
            ) from e
        return True

    def _entry_to_dict(self, entry: CacheEntry) -> dict[str, Any]:
        """Convert CacheEntry to dict for serialization."""
        data: dict[str, Any] = {"value": entry.value}
        if entry.expiration is not None:
            data["expiration"] = entry.expiration.isoformat()
        return data

    def _dict_to_entry(self, key: str, data: Any) -> CacheEntry:
        """Convert dict to CacheEntry."""
        if not isinstance(data, dict):
            raise CacheDecodeError(
                "Cache entry must be an object",
                context={"path": str(self.path), "key": key},
            )

        raw_expiration = data.get("expiration")
        expiration: datetime | None = None
        if raw_expiration is not None:
            try:
                expiration = datetime.fromisoformat(raw_expiration)
            except (TypeError, ValueError) as e:
                raise CacheDecodeError(
                    f"Invalid expiration timestamp: {raw_expiration!r}",
                    context={"path": str(self.path), "key": key},
                ) from e
            if expiration.tzinfo is None:
                expiration = expiration.replace(tzinfo=timezone.utc)

        return CacheEntry(value=data.get("value"), expiration=expiration)

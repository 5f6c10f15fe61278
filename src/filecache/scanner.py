"""
Directory-level operations over all bucket files.

These work on the files directly and never touch a store or its lock.
Only files sitting directly in the cache directory are considered.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

from filecache.exceptions import CacheIOError
from filecache.logging import get_logger

logger = get_logger(__name__)


class DirectoryScanner:
    """Scans a cache directory for bucket files."""

    def __init__(self, directory: str | Path, ext: str) -> None:
        self.directory = Path(directory)
        self.ext = ext

    def _files(self) -> list[Path]:
        """List regular files directly in the directory."""
        try:
            return [p for p in self.directory.iterdir() if p.is_file()]
        except OSError as e:
            raise CacheIOError(
                f"Failed to walk the cache directory: {e}",
                context={"path": str(self.directory), "operation": "scan"},
            ) from e

    def total_size(self) -> int:
        """Sum of the sizes of all files in the directory, in bytes.

        Every file counts, not only bucket files.
        """
        total = 0
        for path in self._files():
            try:
                total += path.stat().st_size
            except FileNotFoundError:
                continue
        return total

    def bucket_files(self) -> list[Path]:
        """Bucket files in the directory, sorted by name."""
        return sorted(p for p in self._files() if p.name.endswith(self.ext))

    def bucket_names(self) -> list[str]:
        return [p.name[: -len(self.ext)] for p in self.bucket_files()]

    def remove_matching(self, filter: Callable[[str], bool]) -> int:
        """Delete bucket files whose file name satisfies ``filter``.

        Args:
            filter: Called with the file name (extension included).

        Returns:
            Number of files deleted.

        Raises:
            CacheIOError: If the directory cannot be listed or a file
                cannot be deleted. Files deleted before the failure stay
                deleted.
        """
        removed = 0
        for path in self.bucket_files():
            if not filter(path.name):
                continue
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                raise CacheIOError(
                    f"Failed to remove file: {e}",
                    context={"path": str(path), "operation": "remove"},
                ) from e
            removed += 1
            logger.debug("Removed bucket file", path=str(path))
        return removed

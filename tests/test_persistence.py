"""
Tests for bucket file persistence.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from filecache.codec import JSONCodec
from filecache.exceptions import CacheDecodeError, CacheIOError
from filecache.persistence import BucketFile
from filecache.types import CacheEntry


@pytest.fixture
def bucket_file(temp_dir: Path) -> BucketFile:
    return BucketFile(temp_dir / "bucket.cache", JSONCodec())


class TestLoad:
    """Tests for reading bucket files."""

    def test_missing_file_is_empty(self, bucket_file: BucketFile) -> None:
        """Test that a bucket without a file starts empty."""
        assert bucket_file.load() == {}
        assert not bucket_file.path.exists()

    def test_malformed_file(self, bucket_file: BucketFile) -> None:
        bucket_file.path.write_bytes(b"{broken")

        with pytest.raises(CacheDecodeError) as exc_info:
            bucket_file.load()
        assert exc_info.value.context["path"] == str(bucket_file.path)

    def test_document_must_be_object(self, bucket_file: BucketFile) -> None:
        bucket_file.path.write_text("[1, 2, 3]")

        with pytest.raises(CacheDecodeError):
            bucket_file.load()

    def test_entry_must_be_object(self, bucket_file: BucketFile) -> None:
        bucket_file.path.write_text('{"k": 5}')

        with pytest.raises(CacheDecodeError) as exc_info:
            bucket_file.load()
        assert exc_info.value.context["key"] == "k"

    def test_invalid_expiration(self, bucket_file: BucketFile) -> None:
        bucket_file.path.write_text('{"k": {"value": 1, "expiration": "tomorrow"}}')

        with pytest.raises(CacheDecodeError):
            bucket_file.load()

    def test_zulu_and_naive_timestamps_are_utc(self, bucket_file: BucketFile) -> None:
        """Test that timestamps written by other tools are read as UTC."""
        bucket_file.path.write_text(
            json.dumps({
                "a": {"value": 1, "expiration": "2024-01-01T10:00:00Z"},
                "b": {"value": 2, "expiration": "2024-01-01T10:00:00"},
            })
        )

        entries = bucket_file.load()
        expected = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
        assert entries["a"].expiration == expected
        assert entries["b"].expiration == expected

    def test_missing_value_is_none(self, bucket_file: BucketFile) -> None:
        bucket_file.path.write_text('{"k": {}}')
        assert bucket_file.load() == {"k": CacheEntry(value=None)}


class TestSave:
    """Tests for writing bucket files."""

    def test_round_trip(self, bucket_file: BucketFile) -> None:
        """Test that saved entries load back identically."""
        expiration = datetime(2030, 6, 1, tzinfo=timezone.utc)
        entries = {
            "ttl": CacheEntry(value={"name": "v1"}, expiration=expiration),
            "frozen": CacheEntry(value=[1, 2, 3]),
        }

        bucket_file.save(entries)

        assert bucket_file.load() == entries

    def test_frozen_entry_omits_expiration(self, bucket_file: BucketFile) -> None:
        bucket_file.save({"k": CacheEntry(value="v")})

        raw = json.loads(bucket_file.path.read_text())
        assert raw == {"k": {"value": "v"}}

    def test_save_replaces_whole_file(self, bucket_file: BucketFile) -> None:
        bucket_file.save({"a": CacheEntry(value=1), "b": CacheEntry(value=2)})
        bucket_file.save({"b": CacheEntry(value=3)})

        assert json.loads(bucket_file.path.read_text()) == {"b": {"value": 3}}

    def test_unwritable_location(self, temp_dir: Path) -> None:
        """Test that write failures surface as CacheIOError."""
        bucket_file = BucketFile(temp_dir / "missing" / "bucket.cache", JSONCodec())

        with pytest.raises(CacheIOError) as exc_info:
            bucket_file.save({"k": CacheEntry(value=1)})
        assert exc_info.value.context["operation"] == "write"


class TestRemove:
    """Tests for deleting bucket files."""

    def test_remove_reports_presence(self, bucket_file: BucketFile) -> None:
        bucket_file.save({})
        assert bucket_file.size() > 0

        assert bucket_file.remove() is True
        assert bucket_file.remove() is False
        assert bucket_file.size() == 0

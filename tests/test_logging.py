"""
Tests for structured logging.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Generator

import pytest

from filecache.cacher import Cacher
from filecache.exceptions import CacheIOError
from filecache.logging import get_bucket, get_logger, log_context, setup_logging

if TYPE_CHECKING:
    from tests.conftest import FakeClock


@pytest.fixture
def restore_logging() -> Generator[None, None, None]:
    root = logging.getLogger("filecache")
    handlers, level, propagate = list(root.handlers), root.level, root.propagate
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    root.propagate = propagate


class TestLogContext:
    """Tests for scoped logging context."""

    def test_context_is_scoped(self) -> None:
        assert get_bucket() is None
        with log_context(bucket="users"):
            assert get_bucket() == "users"
            with log_context(bucket="sessions"):
                assert get_bucket() == "sessions"
            assert get_bucket() == "users"
        assert get_bucket() is None

    def test_logger_namespace(self) -> None:
        assert get_logger("tests.something").name == "filecache.tests.something"
        assert get_logger("filecache.store").name == "filecache.store"


class TestJSONFileLogging:
    """Tests for the JSON-lines file handler."""

    def test_records_carry_context_and_extra(
        self, temp_dir: Path, restore_logging: None
    ) -> None:
        """Test that keyword arguments and context end up in the JSON record."""
        log_file = temp_dir / "logs" / "filecache.jsonl"
        setup_logging("DEBUG", log_file=log_file, console_output=False)

        logger = get_logger("filecache.test")
        with log_context(bucket="users", operation="set"):
            logger.info("Saved bucket", entries=3)

        for handler in logging.getLogger("filecache").handlers:
            handler.flush()

        record = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert record["message"] == "Saved bucket"
        assert record["level"] == "INFO"
        assert record["bucket"] == "users"
        assert record["operation"] == "set"
        assert record["extra"]["entries"] == 3

    def test_store_operations_tag_records(
        self, temp_dir: Path, cache_dir: Path, clock: FakeClock, restore_logging: None
    ) -> None:
        """Test that records emitted inside a store call name bucket and operation."""
        log_file = temp_dir / "filecache.jsonl"
        setup_logging("DEBUG", log_file=log_file, console_output=False)

        cacher = Cacher(cache_dir, clock=clock)
        cacher.set("sessions", 5, "s1", "token")
        clock.advance(5)
        assert cacher.get("sessions", "s1") == (False, None)

        records = _read_records(log_file)
        evicted = [r for r in records if r["message"] == "Evicted expired entry"]
        assert len(evicted) == 1
        assert evicted[0]["bucket"] == "sessions"
        assert evicted[0]["operation"] == "get"
        assert evicted[0]["extra"]["key"] == "s1"

        saved = [r for r in records if r["message"] == "Saved bucket file"]
        assert {r["operation"] for r in saved} == {"set", "get"}

    def test_failed_close_logs_warning(
        self, temp_dir: Path, cache_dir: Path, restore_logging: None
    ) -> None:
        log_file = temp_dir / "filecache.jsonl"
        setup_logging("DEBUG", log_file=log_file, console_output=False)

        cacher = Cacher(cache_dir)
        cacher.set_frozen("b", "k", 1)
        path = cache_dir / "b.cache"
        path.unlink()
        path.mkdir()

        with pytest.raises(CacheIOError):
            cacher.close()
        path.rmdir()

        warnings = [r for r in _read_records(log_file) if r["level"] == "WARNING"]
        assert len(warnings) == 1
        assert warnings[0]["extra"]["failed"] == "b"
        assert warnings[0]["extra"]["skipped"] == []


def _read_records(log_file: Path) -> list[dict[str, Any]]:
    for handler in logging.getLogger("filecache").handlers:
        handler.flush()
    return [json.loads(line) for line in log_file.read_text().splitlines()]

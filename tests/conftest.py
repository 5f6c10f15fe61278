"""
Pytest configuration and fixtures for file cache tests.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import pytest

from filecache.cacher import Cacher
from filecache.config import clear_settings_cache


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def cache_dir(temp_dir: Path) -> Path:
    """Provide a (not yet created) cache directory."""
    return temp_dir / "cache"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cacher(cache_dir: Path, clock: FakeClock) -> Generator[Cacher, None, None]:
    """Provide a cacher on a fresh directory driven by the fake clock."""
    c = Cacher(cache_dir, clock=clock)
    yield c
    c.close()


@pytest.fixture
def mock_env_vars(cache_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing."""
    env_vars = {
        "FILECACHE_DIR": str(cache_dir),
        "FILECACHE_EXT": ".bkt",
        "FILECACHE_DEFAULT_TTL": "120",
        "LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()

"""Shared fixtures for the PainTrack test suite."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import date
from unittest.mock import MagicMock

import pytest

from paintrack.config import ReconnectConfig, StorageConfig
from paintrack.storage.memory import MemoryStore
from paintrack.storage.postgres import PostgresStore

TODAY = date(2026, 3, 14)


class Clock:
    """Mutable stand-in for ``date.today`` so tests can roll the date over."""

    def __init__(self, today: date = TODAY) -> None:
        self.today = today

    def __call__(self) -> date:
        return self.today


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def memory_store(clock: Clock) -> MemoryStore:
    return MemoryStore(today=clock)


@pytest.fixture
def fast_storage_config() -> StorageConfig:
    """Storage config with millisecond backoff so reconnect loops finish quickly."""
    return StorageConfig(
        database_url=None,
        reconnect=ReconnectConfig(
            base_delay_seconds=0.001,
            max_delay_seconds=0.004,
            max_attempts=3,
            jitter=0.0,
        ),
    )


@pytest.fixture
def mock_primary() -> MagicMock:
    """A PostgresStore double; every coroutine method is an AsyncMock."""
    return MagicMock(spec=PostgresStore)


@pytest.fixture(scope="session")
def postgres_container() -> Iterator:
    """Session-wide PostgreSQL 16 container for integration tests."""
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer("postgres:16") as pg:
        yield pg

"""Resilient storage: PostgreSQL primary with an in-memory fallback."""

from paintrack.storage.base import StorageState, Store
from paintrack.storage.errors import (
    FallbackDataLossWarning,
    NotFoundError,
    StorageError,
    StorageUnavailableError,
    ValidationError,
)
from paintrack.storage.facade import StorageFacade, StorageStatus, backoff_delay
from paintrack.storage.memory import MemoryStore
from paintrack.storage.postgres import PostgresStore

__all__ = [
    "FallbackDataLossWarning",
    "MemoryStore",
    "NotFoundError",
    "PostgresStore",
    "StorageError",
    "StorageFacade",
    "StorageState",
    "StorageStatus",
    "StorageUnavailableError",
    "Store",
    "ValidationError",
    "backoff_delay",
]

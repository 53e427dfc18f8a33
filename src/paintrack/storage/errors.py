"""Storage error taxonomy.

``ValidationError`` and ``NotFoundError`` are domain errors and always reach
the caller. ``StorageUnavailableError`` is raised only by the primary store
and is absorbed by :class:`~paintrack.storage.facade.StorageFacade`.
"""

from __future__ import annotations


class StorageError(Exception):
    """Base class for all storage-layer errors."""


class ValidationError(StorageError, ValueError):
    """Raised when input is malformed or out of range."""


class NotFoundError(StorageError, LookupError):
    """Raised when a referenced user or medication does not exist.

    Attributes:
        kind: Entity kind, e.g. ``"user"`` or ``"medication"``.
        entity_id: The id that was looked up.
    """

    def __init__(self, kind: str, entity_id: object) -> None:
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind.capitalize()} {entity_id!r} not found")

    def __str__(self) -> str:
        return str(self.args[0])


class StorageUnavailableError(StorageError):
    """Raised by the primary store when a query or connection fails."""


class FallbackDataLossWarning(UserWarning):
    """Category name for writes that landed in the volatile fallback store."""

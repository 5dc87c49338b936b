"""
Exception hierarchy for editgraph.

All exceptions inherit from EditGraphError and carry an optional context
dictionary with details useful for logging.
"""
from __future__ import annotations

from enum import Enum
from typing import Any


class EditGraphError(Exception):
    """Base exception for all editgraph errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(EditGraphError):
    """Invalid arguments passed to a public operation (programmer error)."""


class NotFoundError(EditGraphError):
    """A referenced version does not exist."""


class CycleDetectedError(EditGraphError):
    """The parent links of the version graph loop back on themselves."""


class ConfigurationError(EditGraphError):
    """Configuration is invalid or names an unknown backend."""


class StorageErrorCategory(str, Enum):
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    BAD_REQUEST = "bad_request"
    UNKNOWN = "unknown"

    @classmethod
    def from_status(cls, status: int | str | None) -> "StorageErrorCategory":
        try:
            code = int(status) if status is not None else None
        except (TypeError, ValueError):
            code = None
        if code == 404:
            return cls.NOT_FOUND
        if code in (401, 403):
            return cls.ACCESS_DENIED
        if code == 400:
            return cls.BAD_REQUEST
        return cls.UNKNOWN


class StoreError(EditGraphError):
    """Base for storage-related failures."""


class RemoteStoreError(StoreError):
    """A configured remote object store failed an operation."""

    def __init__(
        self,
        message: str,
        category: StorageErrorCategory = StorageErrorCategory.UNKNOWN,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context)
        self.category = category


class StoreNotConfiguredError(RemoteStoreError):
    """The remote object store has no usable configuration."""

    def __init__(self, message: str = "Remote object store is not configured"):
        super().__init__(message, StorageErrorCategory.UNKNOWN)


class UnreadableHandleError(StoreError):
    """A transient local handle is stale, revoked or malformed."""


class PersistenceError(StoreError):
    """The persistence channel could not load or save state."""


class CorruptStateError(EditGraphError):
    """Persisted editor state cannot be trusted."""

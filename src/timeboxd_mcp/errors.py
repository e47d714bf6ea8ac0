"""Error taxonomy shared by the store, the core and the tool surface."""

from __future__ import annotations


class TimeboxError(RuntimeError):
    """Base class for timebox errors."""


class ValidationError(TimeboxError):
    """Raised when a command receives malformed input."""


class NotFoundError(TimeboxError):
    """Raised when an unknown or soft-deleted timebox is referenced."""


class ConflictError(TimeboxError):
    """Raised when a transition would break the session invariants."""


class StorageError(TimeboxError):
    """Raised when the underlying database fails or holds unreadable data."""


__all__ = [
    "TimeboxError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "StorageError",
]

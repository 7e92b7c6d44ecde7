from __future__ import annotations


class TodoError(Exception):
    """Base class for every error raised by the todolist package."""


class ValidationError(TodoError, ValueError):
    """A required field was empty or a reorder request was malformed."""


class NotFoundError(TodoError, KeyError):
    """Raised by the ``require_*`` lookups when an id does not resolve."""


class PersistenceError(TodoError):
    """A preference store backend failed to save or load a snapshot."""


class SnapshotDecodeError(TodoError, ValueError):
    """Stored bytes could not be decoded into a snapshot."""


__all__ = [
    "TodoError",
    "ValidationError",
    "NotFoundError",
    "PersistenceError",
    "SnapshotDecodeError",
]

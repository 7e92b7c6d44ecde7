from __future__ import annotations

from typing import Protocol


class PreferenceStore(Protocol):
    """Minimal key-value store holding one opaque snapshot per key.

    Implementations raise PersistenceError when the backend fails; a missing
    key is not an error and loads as ``None``.
    """

    def save(self, snapshot: bytes, key: str) -> None:
        """Replace the bytes stored under key."""

    def load(self, key: str) -> bytes | None:
        """Return the bytes stored under key, or None if nothing was saved."""


__all__ = ["PreferenceStore"]

from __future__ import annotations

from .interface import PreferenceStore


class InMemoryPreferenceStore(PreferenceStore):
    """Process-local store; contents vanish with the process."""

    def __init__(self) -> None:
        self._values: dict[str, bytes] = {}

    def save(self, snapshot: bytes, key: str) -> None:
        self._values[key] = bytes(snapshot)

    def load(self, key: str) -> bytes | None:
        return self._values.get(key)

    def keys(self) -> list[str]:
        return list(self._values)


__all__ = ["InMemoryPreferenceStore"]

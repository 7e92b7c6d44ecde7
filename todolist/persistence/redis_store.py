from __future__ import annotations

from typing import Any, cast

import redis

from todolist.errors import PersistenceError

from .interface import PreferenceStore


class RedisPreferenceStore(PreferenceStore):
    """Redis-backed preference store.

    Data structures:
    - One string per key: ``{prefix}:{key}`` holding the raw snapshot bytes
    """

    def __init__(
        self,
        *,
        url: str = "redis://localhost:6379/0",
        key_prefix: str = "todolist",
        client: Any | None = None,
    ) -> None:
        if client is not None:
            self._redis = client
        else:
            self._redis = redis.Redis.from_url(url)
        self._prefix = key_prefix.rstrip(":")

    def get_client(self) -> Any:
        return self._redis

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def save(self, snapshot: bytes, key: str) -> None:
        try:
            self._redis.set(self._key(key), snapshot)
        except redis.exceptions.RedisError as exc:
            raise PersistenceError(f"redis SET {self._key(key)} failed: {exc}") from exc

    def load(self, key: str) -> bytes | None:
        try:
            raw = cast(bytes | str | None, self._redis.get(self._key(key)))
        except redis.exceptions.RedisError as exc:
            raise PersistenceError(f"redis GET {self._key(key)} failed: {exc}") from exc
        if raw is None:
            return None
        # Clients created with decode_responses=True hand back str
        if isinstance(raw, str):
            return raw.encode("utf-8")
        return bytes(raw)


__all__ = ["RedisPreferenceStore"]

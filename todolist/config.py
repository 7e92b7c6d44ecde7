from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

BACKENDS = ("memory", "file", "redis")


@dataclass(slots=True)
class StoreConfig:
    backend: str
    key: str
    data_dir: str
    redis_url: str
    redis_prefix: str


def _read_backend(raw: str | None) -> str:
    value = (raw or "").strip().lower()
    return value if value in BACKENDS else "memory"


def load_config(env: dict[str, str] | None = None) -> StoreConfig:
    e: dict[str, Any] = dict(os.environ)
    if env:
        e.update(env)
    key = (e.get("TODOLIST_KEY") or "").strip() or "todolist.snapshot"
    data_dir = (e.get("TODOLIST_DATA_DIR") or "").strip() or os.path.join("~", ".todolist")
    return StoreConfig(
        backend=_read_backend(e.get("TODOLIST_BACKEND")),
        key=key,
        data_dir=data_dir,
        redis_url=e.get("REDIS_URL", "redis://localhost:6379/0"),
        redis_prefix=(e.get("TODOLIST_REDIS_PREFIX") or "todolist").strip(),
    )


__all__ = ["BACKENDS", "StoreConfig", "load_config"]

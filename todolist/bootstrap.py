from __future__ import annotations

from todolist.config import StoreConfig, load_config
from todolist.observability import get_json_logger
from todolist.persistence import (
    FilePreferenceStore,
    InMemoryPreferenceStore,
    PreferenceStore,
    RedisPreferenceStore,
)
from todolist.store import TaskStore

# Process-wide store, created on first use
_STORE: TaskStore | None = None


def build_persistence(config: StoreConfig) -> PreferenceStore:
    if config.backend == "file":
        return FilePreferenceStore(config.data_dir)
    if config.backend == "redis":
        return RedisPreferenceStore(url=config.redis_url, key_prefix=config.redis_prefix)
    return InMemoryPreferenceStore()


def open_store(config: StoreConfig | None = None) -> TaskStore:
    cfg = config or load_config()
    logger = get_json_logger("todolist.bootstrap")
    logger.info(
        "opening store",
        extra={
            "event": "store_open",
            "backend": cfg.backend,
            "key": cfg.key,
            "attributes": {"data_dir": cfg.data_dir, "redis_url": cfg.redis_url},
        },
    )
    return TaskStore(build_persistence(cfg), key=cfg.key)


def get_store() -> TaskStore:
    global _STORE
    if _STORE is None:
        _STORE = open_store()
    return _STORE


def reset_store_for_testing(store: TaskStore | None = None) -> None:
    global _STORE
    _STORE = store


__all__ = ["build_persistence", "open_store", "get_store", "reset_store_for_testing"]

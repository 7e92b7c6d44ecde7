from __future__ import annotations

from .task_store import DEFAULT_SNAPSHOT_KEY, Listener, StoreChange, TaskStore

__all__ = [
    "DEFAULT_SNAPSHOT_KEY",
    "Listener",
    "StoreChange",
    "TaskStore",
]

from __future__ import annotations

from .snapshot import SNAPSHOT_VERSION, Snapshot, decode_snapshot, encode_snapshot
from .task import Group, Task, TaskPriority, TaskStatus

__all__ = [
    "Group",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "SNAPSHOT_VERSION",
    "Snapshot",
    "decode_snapshot",
    "encode_snapshot",
]

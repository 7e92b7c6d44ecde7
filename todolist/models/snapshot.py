from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from todolist.errors import SnapshotDecodeError

from .task import Group, Task, TaskStatus

SNAPSHOT_VERSION = 2


class Snapshot(BaseModel):
    """Full serialized state of the store at one point in time."""

    version: int = SNAPSHOT_VERSION
    groups: list[Group] = Field(default_factory=list)
    tasks: list[Task] = Field(default_factory=list)


def encode_snapshot(snapshot: Snapshot) -> bytes:
    data = snapshot.model_dump(mode="json")
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def decode_snapshot(raw: bytes | str) -> Snapshot:
    """Decode stored bytes into a Snapshot.

    Accepts the current object layout and the version-1 layout, which was a
    JSON array of groups each embedding its own ``tasks`` list with a boolean
    ``completed`` flag. Raises SnapshotDecodeError for anything else.
    """
    try:
        text = raw.decode("utf-8") if isinstance(raw, bytes | bytearray) else raw
        data = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise SnapshotDecodeError(f"snapshot is not valid JSON: {exc}") from exc

    try:
        if isinstance(data, list):
            return _migrate_v1(data)
        if isinstance(data, dict):
            snapshot = Snapshot.model_validate(data)
            snapshot.version = SNAPSHOT_VERSION
            return snapshot
    except PydanticValidationError as exc:
        raise SnapshotDecodeError(f"snapshot failed validation: {exc}") from exc
    raise SnapshotDecodeError(f"unsupported snapshot root: {type(data).__name__}")


def _migrate_v1(entries: list[Any]) -> Snapshot:
    groups: list[Group] = []
    tasks: list[Task] = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise SnapshotDecodeError("version-1 group entry must be an object")
        group = Group.model_validate(
            {k: v for k, v in entry.items() if k in ("id", "name", "description", "created_at")}
        )
        groups.append(group)
        for raw_task in entry.get("tasks") or []:
            if not isinstance(raw_task, dict):
                raise SnapshotDecodeError("version-1 task entry must be an object")
            fields = {k: v for k, v in raw_task.items() if k in ("id", "title", "details")}
            done = bool(raw_task.get("completed", False))
            fields["status"] = TaskStatus.DONE if done else TaskStatus.TODO
            fields["group_id"] = group.id
            tasks.append(Task.model_validate(fields))
    return Snapshot(groups=groups, tasks=tasks)


__all__ = ["SNAPSHOT_VERSION", "Snapshot", "encode_snapshot", "decode_snapshot"]

from __future__ import annotations

import datetime as _dt
import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Labels written by earlier releases of the app; accepted on decode only.
_LEGACY_STATUS: dict[str, TaskStatus] = {
    "À faire": TaskStatus.TODO,
    "En cours": TaskStatus.IN_PROGRESS,
    "Terminé": TaskStatus.DONE,
    "doing": TaskStatus.IN_PROGRESS,
}

_LEGACY_PRIORITY: dict[str, TaskPriority] = {
    "Basse": TaskPriority.LOW,
    "Moyenne": TaskPriority.MEDIUM,
    "Haute": TaskPriority.HIGH,
}


def _new_id() -> str:
    return str(uuid.uuid4())


class Task(BaseModel):
    """A single to-do item.

    - ``group_id`` is a back-reference resolved by lookup; it may point at a
      group that no longer exists only if the caller created it that way
    - Ordering is owned by the store's collection, not by any field here
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=_new_id)
    title: str
    details: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    group_id: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _LEGACY_STATUS.get(value, value)
        return value

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _LEGACY_PRIORITY.get(value, value)
        return value

    @property
    def completed(self) -> bool:
        return self.status is TaskStatus.DONE


class Group(BaseModel):
    """A named label that tasks may reference. Owns no tasks directly."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=_new_id)
    name: str
    description: str = ""
    created_at: _dt.datetime = Field(default_factory=lambda: _dt.datetime.now(_dt.UTC))


__all__ = ["Task", "Group", "TaskStatus", "TaskPriority"]

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from todolist.errors import (
    NotFoundError,
    SnapshotDecodeError,
    ValidationError,
)
from todolist.models import (
    Group,
    Snapshot,
    Task,
    TaskPriority,
    TaskStatus,
    decode_snapshot,
    encode_snapshot,
)
from todolist.observability import Metrics, get_json_logger, get_metrics
from todolist.persistence.interface import PreferenceStore

from .ordering import check_permutation, move_offsets, scatter_into

DEFAULT_SNAPSHOT_KEY = "todolist.snapshot"


@dataclass(slots=True, frozen=True)
class StoreChange:
    """Emitted to subscribers after each committed mutation."""

    op: str
    revision: int


Listener = Callable[[StoreChange], None]

_RecordT = TypeVar("_RecordT", bound=BaseModel)


def _require_non_empty(name: str, value: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    if not value.strip():
        raise ValidationError(f"{name} must be non-empty")
    return value


def _coerce_status(value: TaskStatus | str) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError as exc:
        raise ValidationError(f"unknown status: {value!r}") from exc


def _coerce_priority(value: TaskPriority | str) -> TaskPriority:
    try:
        return TaskPriority(value)
    except ValueError as exc:
        raise ValidationError(f"unknown priority: {value!r}") from exc


def _build(model: type[_RecordT], data: dict[str, Any]) -> _RecordT:
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(str(exc)) from exc


def _revised(record: _RecordT, fields: dict[str, Any]) -> _RecordT:
    """Validated copy of record with fields applied; record itself is untouched."""
    return _build(type(record), {**record.model_dump(), **fields})


class TaskStore:
    """In-memory owner of the ordered ``groups`` and ``tasks`` collections.

    - Every committed mutation bumps ``revision``, saves a full snapshot under
      ``key`` while still holding the lock, then notifies subscribers
    - Unknown ids are silent no-ops; the return value tells the caller whether
      anything happened (record or ``None``, ``True``/``False``)
    - Records handed out are copies; mutate through the store methods only
    - A failing backend degrades the store to in-memory-only for the session
    """

    def __init__(
        self,
        persistence: PreferenceStore | None = None,
        *,
        key: str = DEFAULT_SNAPSHOT_KEY,
        autoload: bool = True,
        metrics: Metrics | None = None,
    ) -> None:
        self._persistence = persistence
        self._key = key
        self._lock = threading.RLock()
        self._groups: list[Group] = []
        self._tasks: list[Task] = []
        self._listeners: list[Listener] = []
        self._revision = 0
        self._degraded = False
        self._logger = get_json_logger("todolist.store")
        self._metrics = metrics or get_metrics()
        if persistence is not None and autoload:
            self.load()

    # ----------------------------
    # State access
    # ----------------------------
    @property
    def key(self) -> str:
        return self._key

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def persistence_degraded(self) -> bool:
        return self._degraded

    @property
    def tasks(self) -> list[Task]:
        with self._lock:
            return [t.model_copy() for t in self._tasks]

    @property
    def groups(self) -> list[Group]:
        with self._lock:
            return [g.model_copy() for g in self._groups]

    def get_task(self, task_id: str) -> Task | None:
        with self._lock:
            idx = self._task_index(task_id)
            return self._tasks[idx].model_copy() if idx is not None else None

    def get_group(self, group_id: str) -> Group | None:
        with self._lock:
            idx = self._group_index(group_id)
            return self._groups[idx].model_copy() if idx is not None else None

    def require_task(self, task_id: str) -> Task:
        task = self.get_task(task_id)
        if task is None:
            raise NotFoundError(f"unknown task: {task_id}")
        return task

    def require_group(self, group_id: str) -> Group:
        group = self.get_group(group_id)
        if group is None:
            raise NotFoundError(f"unknown group: {group_id}")
        return group

    def tasks_for_group(self, group_id: str | None) -> list[Task]:
        """Tasks whose ``group_id`` equals group_id, in collection order.

        ``None`` selects ungrouped tasks. Orphans (pointing at a deleted or
        never-created group) only match their own dangling id.
        """
        with self._lock:
            return [t.model_copy() for t in self._tasks if t.group_id == group_id]

    def ungrouped_tasks(self) -> list[Task]:
        return self.tasks_for_group(None)

    def orphaned_tasks(self) -> list[Task]:
        with self._lock:
            known = {g.id for g in self._groups}
            return [
                t.model_copy()
                for t in self._tasks
                if t.group_id is not None and t.group_id not in known
            ]

    def snapshot(self) -> Snapshot:
        with self._lock:
            return self._snapshot_locked()

    # ----------------------------
    # Subscriptions
    # ----------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    # ----------------------------
    # Groups
    # ----------------------------
    def add_group(self, name: str, description: str = "") -> Group:
        _require_non_empty("name", name)
        with self._lock:
            group = _build(
                Group,
                {
                    "id": self._fresh_id({g.id for g in self._groups}),
                    "name": name,
                    "description": description,
                },
            )
            self._groups.append(group)
            change = self._commit("add_group", group_id=group.id)
            created = group.model_copy()
        self._notify(change)
        return created

    def rename_group(self, group_id: str, name: str, description: str) -> Group | None:
        with self._lock:
            idx = self._group_index(group_id)
            if idx is None:
                return None
            _require_non_empty("name", name)
            group = _revised(self._groups[idx], {"name": name, "description": description})
            self._groups[idx] = group
            change = self._commit("rename_group", group_id=group_id)
            updated = group.model_copy()
        self._notify(change)
        return updated

    update_group = rename_group

    def delete_group(self, group_id: str) -> bool:
        """Remove a group and clear ``group_id`` on every task referencing it.

        Both steps happen under one lock acquisition and produce one save.
        """
        with self._lock:
            idx = self._group_index(group_id)
            if idx is None:
                return False
            cleared = self._delete_groups_locked({group_id})
            change = self._commit(
                "delete_group", group_id=group_id, attributes={"cleared_tasks": cleared}
            )
        self._notify(change)
        return True

    remove_group = delete_group

    def remove_groups_at(self, offsets: Iterable[int]) -> list[str]:
        """Delete the groups at the given list positions; returns removed ids."""
        with self._lock:
            picked = sorted(set(offsets))
            if any(i < 0 or i >= len(self._groups) for i in picked):
                raise ValidationError(
                    f"offsets {picked} out of range for {len(self._groups)} groups"
                )
            if not picked:
                return []
            removed = [self._groups[i].id for i in picked]
            cleared = self._delete_groups_locked(set(removed))
            change = self._commit(
                "remove_groups",
                attributes={"removed": len(removed), "cleared_tasks": cleared},
            )
        self._notify(change)
        return removed

    def reorder_groups(self, new_order: Sequence[str]) -> bool:
        with self._lock:
            current = [g.id for g in self._groups]
            check_permutation(current, new_order)
            if list(new_order) == current:
                return False
            by_id = {g.id: g for g in self._groups}
            self._groups = [by_id[gid] for gid in new_order]
            change = self._commit("reorder_groups")
        self._notify(change)
        return True

    def move_groups(self, offsets: Iterable[int], destination: int) -> bool:
        with self._lock:
            reordered = move_offsets(self._groups, offsets, destination)
            if [g.id for g in reordered] == [g.id for g in self._groups]:
                return False
            self._groups = reordered
            change = self._commit("move_groups")
        self._notify(change)
        return True

    # ----------------------------
    # Tasks
    # ----------------------------
    def add_task(
        self,
        title: str,
        details: str = "",
        priority: TaskPriority | str = TaskPriority.MEDIUM,
        group_id: str | None = None,
    ) -> Task:
        """Append a new task with status ``todo``.

        ``group_id`` is stored as given, even if no such group exists.
        """
        _require_non_empty("title", title)
        prio = _coerce_priority(priority)
        with self._lock:
            task = _build(
                Task,
                {
                    "id": self._fresh_id({t.id for t in self._tasks}),
                    "title": title,
                    "details": details,
                    "priority": prio,
                    "group_id": group_id,
                },
            )
            self._tasks.append(task)
            change = self._commit("add_task", task_id=task.id, group_id=group_id)
            created = task.model_copy()
        self._notify(change)
        return created

    def update_task(self, task_id: str, title: str, details: str) -> Task | None:
        return self._mutate_task(
            "update_task", task_id, {"title": title, "details": details}, required=("title",)
        )

    def set_task_status(self, task_id: str, status: TaskStatus | str) -> Task | None:
        return self._mutate_task("set_task_status", task_id, {"status": _coerce_status(status)})

    update_task_status = set_task_status

    def set_task_priority(self, task_id: str, priority: TaskPriority | str) -> Task | None:
        return self._mutate_task(
            "set_task_priority", task_id, {"priority": _coerce_priority(priority)}
        )

    def toggle_task_completion(self, task_id: str) -> Task | None:
        """Flip between done and todo; in-progress tasks become done."""
        with self._lock:
            idx = self._task_index(task_id)
            if idx is None:
                return None
            task = self._tasks[idx]
            task.status = TaskStatus.TODO if task.status is TaskStatus.DONE else TaskStatus.DONE
            change = self._commit("toggle_task_completion", task_id=task_id)
            updated = task.model_copy()
        self._notify(change)
        return updated

    def move_task(self, task_id: str, to_group_id: str | None) -> Task | None:
        """Point a task at another group (or ``None`` to ungroup it).

        The target group is not checked for existence.
        """
        return self._mutate_task("move_task", task_id, {"group_id": to_group_id})

    def move_task_between_groups(
        self, task_id: str, from_group_id: str, to_group_id: str
    ) -> Task | None:
        """Move a task out of one existing group into another.

        No-op unless the groups differ, both exist, and the task is currently
        in ``from_group_id``.
        """
        if from_group_id == to_group_id:
            return None
        with self._lock:
            if self._group_index(from_group_id) is None or self._group_index(to_group_id) is None:
                return None
            idx = self._task_index(task_id)
            if idx is None or self._tasks[idx].group_id != from_group_id:
                return None
            # Checks and move share one lock hold so the task cannot change in between
            task = self._tasks[idx]
            task.group_id = to_group_id
            change = self._commit("move_task_between_groups", task_id=task_id, group_id=to_group_id)
            updated = task.model_copy()
        self._notify(change)
        return updated

    def remove_task(self, task_id: str) -> bool:
        with self._lock:
            idx = self._task_index(task_id)
            if idx is None:
                return False
            del self._tasks[idx]
            change = self._commit("remove_task", task_id=task_id)
        self._notify(change)
        return True

    def remove_tasks_at(self, offsets: Iterable[int]) -> list[str]:
        """Delete the tasks at the given positions of the full task list."""
        with self._lock:
            removed, change = self._remove_slots(list(range(len(self._tasks))), offsets)
        if change is not None:
            self._notify(change)
        return removed

    def remove_group_tasks_at(self, group_id: str | None, offsets: Iterable[int]) -> list[str]:
        """Delete tasks by position within ``tasks_for_group(group_id)``."""
        with self._lock:
            removed, change = self._remove_slots(self._slots_for_group(group_id), offsets)
        if change is not None:
            self._notify(change)
        return removed

    def reorder_tasks(self, new_order: Sequence[str]) -> bool:
        with self._lock:
            current = [t.id for t in self._tasks]
            check_permutation(current, new_order)
            if list(new_order) == current:
                return False
            by_id = {t.id: t for t in self._tasks}
            self._tasks = [by_id[tid] for tid in new_order]
            change = self._commit("reorder_tasks")
        self._notify(change)
        return True

    def reorder_group_tasks(self, group_id: str | None, new_order: Sequence[str]) -> bool:
        """Reorder only the tasks of one group view.

        new_order must be a permutation of ``tasks_for_group(group_id)`` ids.
        Those tasks are written back into the backing positions they already
        occupy, so tasks from other groups keep their places.
        """
        with self._lock:
            slots = self._slots_for_group(group_id)
            current = [self._tasks[i].id for i in slots]
            check_permutation(current, new_order)
            if list(new_order) == current:
                return False
            by_id = {self._tasks[i].id: self._tasks[i] for i in slots}
            scatter_into(self._tasks, slots, [by_id[tid] for tid in new_order])
            change = self._commit("reorder_group_tasks", group_id=group_id)
        self._notify(change)
        return True

    def move_tasks(self, offsets: Iterable[int], destination: int) -> bool:
        with self._lock:
            reordered = move_offsets(self._tasks, offsets, destination)
            if [t.id for t in reordered] == [t.id for t in self._tasks]:
                return False
            self._tasks = reordered
            change = self._commit("move_tasks")
        self._notify(change)
        return True

    def move_group_tasks(
        self, group_id: str | None, offsets: Iterable[int], destination: int
    ) -> bool:
        """Offset-based move inside one group view, mapped onto the backing list."""
        with self._lock:
            slots = self._slots_for_group(group_id)
            scoped = [self._tasks[i] for i in slots]
            reordered = move_offsets(scoped, offsets, destination)
            if [t.id for t in reordered] == [t.id for t in scoped]:
                return False
            scatter_into(self._tasks, slots, reordered)
            change = self._commit("move_group_tasks", group_id=group_id)
        self._notify(change)
        return True

    # ----------------------------
    # Whole-state operations
    # ----------------------------
    def replace_state(self, snapshot: Snapshot) -> None:
        """Swap in the contents of snapshot wholesale, then save it."""
        _check_unique_ids(snapshot)
        with self._lock:
            self._install_locked(snapshot)
            change = self._commit("replace_state")
        self._notify(change)

    def clear(self) -> None:
        self.replace_state(Snapshot())

    def load(self) -> bool:
        """Replace in-memory state with the persisted snapshot, if any.

        Returns True when a snapshot was found and installed. Undecodable
        data leaves the store empty; a backend failure also switches the
        store to in-memory-only for the rest of the session.
        """
        if self._persistence is None:
            return False
        try:
            raw = self._persistence.load(self._key)
        except Exception:  # noqa: BLE001
            self._degraded = True
            self._metrics.increment("load_errors")
            self._logger.error(
                "snapshot load failed; continuing in memory only",
                extra={"event": "load_error", "key": self._key},
                exc_info=True,
            )
            return False
        if raw is None:
            self._logger.info("no saved snapshot", extra={"event": "load_empty", "key": self._key})
            return False
        try:
            snapshot = decode_snapshot(raw)
            _check_unique_ids(snapshot)
        except (SnapshotDecodeError, ValidationError) as exc:
            self._metrics.increment("decode_errors")
            self._logger.warning(
                "discarding undecodable snapshot",
                extra={
                    "event": "decode_error",
                    "key": self._key,
                    "metadata": {"error": str(exc)[:200]},
                },
            )
            return False
        with self._lock:
            self._install_locked(snapshot)
            self._revision += 1
            change = StoreChange(op="load", revision=self._revision)
        self._logger.info(
            "snapshot loaded",
            extra={
                "event": "load",
                "key": self._key,
                "attributes": {"groups": len(snapshot.groups), "tasks": len(snapshot.tasks)},
            },
        )
        self._notify(change)
        return True

    # ----------------------------
    # Internals
    # ----------------------------
    def _mutate_task(
        self,
        op: str,
        task_id: str,
        fields: dict[str, Any],
        *,
        required: tuple[str, ...] = (),
    ) -> Task | None:
        with self._lock:
            idx = self._task_index(task_id)
            if idx is None:
                return None
            for name in required:
                _require_non_empty(name, fields[name])
            task = _revised(self._tasks[idx], fields)
            self._tasks[idx] = task
            change = self._commit(op, task_id=task_id)
            updated = task.model_copy()
        self._notify(change)
        return updated

    def _remove_slots(
        self, slots: list[int], offsets: Iterable[int]
    ) -> tuple[list[str], StoreChange | None]:
        # Caller holds the lock; slots map view positions to backing indices
        picked = sorted(set(offsets))
        if any(i < 0 or i >= len(slots) for i in picked):
            raise ValidationError(f"offsets {picked} out of range for {len(slots)} tasks")
        if not picked:
            return [], None
        doomed = {slots[i] for i in picked}
        removed = [self._tasks[i].id for i in sorted(doomed)]
        self._tasks = [t for i, t in enumerate(self._tasks) if i not in doomed]
        change = self._commit("remove_tasks", attributes={"removed": len(removed)})
        return removed, change

    def _delete_groups_locked(self, group_ids: set[str]) -> int:
        self._groups = [g for g in self._groups if g.id not in group_ids]
        cleared = 0
        for task in self._tasks:
            if task.group_id in group_ids:
                task.group_id = None
                cleared += 1
        return cleared

    def _slots_for_group(self, group_id: str | None) -> list[int]:
        return [i for i, t in enumerate(self._tasks) if t.group_id == group_id]

    def _task_index(self, task_id: str) -> int | None:
        for i, t in enumerate(self._tasks):
            if t.id == task_id:
                return i
        return None

    def _group_index(self, group_id: str) -> int | None:
        for i, g in enumerate(self._groups):
            if g.id == group_id:
                return i
        return None

    @staticmethod
    def _fresh_id(taken: set[str]) -> str:
        while True:
            candidate = str(uuid.uuid4())
            if candidate not in taken:
                return candidate

    def _snapshot_locked(self) -> Snapshot:
        return Snapshot(
            groups=[g.model_copy() for g in self._groups],
            tasks=[t.model_copy() for t in self._tasks],
        )

    def _install_locked(self, snapshot: Snapshot) -> None:
        self._groups = [g.model_copy() for g in snapshot.groups]
        self._tasks = [t.model_copy() for t in snapshot.tasks]

    def _commit(self, op: str, **extra: Any) -> StoreChange:
        # Caller holds the lock; saving here keeps saves in mutation order
        self._revision += 1
        self._metrics.increment("mutations", {"op": op})
        self._logger.debug(
            "mutation",
            extra={"event": "mutation", "op": op, "revision": self._revision, **extra},
        )
        self._save_locked(op)
        return StoreChange(op=op, revision=self._revision)

    def _save_locked(self, op: str) -> None:
        if self._persistence is None or self._degraded:
            return
        payload = encode_snapshot(self._snapshot_locked())
        try:
            self._persistence.save(payload, self._key)
        except Exception:  # noqa: BLE001
            self._degraded = True
            self._metrics.increment("save_errors")
            self._logger.error(
                "snapshot save failed; continuing in memory only",
                extra={
                    "event": "save_error",
                    "op": op,
                    "key": self._key,
                    "revision": self._revision,
                },
                exc_info=True,
            )
            return
        self._metrics.increment("saves")

    def _notify(self, change: StoreChange) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(change)
            except Exception:  # noqa: BLE001
                self._metrics.increment("listener_errors")
                self._logger.error(
                    "change listener failed",
                    extra={"event": "listener_error", "op": change.op, "revision": change.revision},
                    exc_info=True,
                )


def _check_unique_ids(snapshot: Snapshot) -> None:
    for label, ids in (
        ("group", [g.id for g in snapshot.groups]),
        ("task", [t.id for t in snapshot.tasks]),
    ):
        if len(set(ids)) != len(ids):
            raise ValidationError(f"snapshot contains duplicate {label} ids")


__all__ = ["DEFAULT_SNAPSHOT_KEY", "Listener", "StoreChange", "TaskStore"]

from __future__ import annotations

import pytest

from todolist.errors import ValidationError
from todolist.models import TaskPriority, TaskStatus
from todolist.store import TaskStore


@pytest.fixture()
def store() -> TaskStore:
    return TaskStore()


def test_add_group(store: TaskStore) -> None:
    group = store.add_group("Test Group", "Test Description")

    assert len(store.groups) == 1
    assert store.groups[0].id == group.id
    assert store.groups[0].name == "Test Group"
    assert store.groups[0].description == "Test Description"
    assert store.groups[0].created_at.tzinfo is not None


def test_add_group_rejects_empty_name(store: TaskStore) -> None:
    with pytest.raises(ValidationError) as ei:
        store.add_group("  ", "desc")
    assert "name" in str(ei.value)
    assert store.groups == []


def test_rename_group_keeps_order_and_created_at(store: TaskStore) -> None:
    a = store.add_group("A", "a")
    b = store.add_group("B", "b")

    renamed = store.rename_group(a.id, "A2", "a2")

    assert renamed is not None
    assert [g.name for g in store.groups] == ["A2", "B"]
    assert store.groups[0].description == "a2"
    assert store.groups[0].created_at == a.created_at
    assert store.groups[1].model_dump() == b.model_dump()


def test_rename_unknown_group_is_noop(store: TaskStore) -> None:
    store.add_group("A", "a")
    before = [g.model_dump() for g in store.groups]

    assert store.update_group("missing", "X", "x") is None
    assert [g.model_dump() for g in store.groups] == before


def test_add_task_to_group(store: TaskStore) -> None:
    work = store.add_group("Work", "desc")

    store.add_task("Write spec", "", TaskPriority.HIGH, group_id=work.id)

    in_work = store.tasks_for_group(work.id)
    assert len(in_work) == 1
    assert in_work[0].title == "Write spec"
    assert in_work[0].priority is TaskPriority.HIGH
    assert in_work[0].status is TaskStatus.TODO


def test_tasks_for_group_filters_and_keeps_order(store: TaskStore) -> None:
    g1 = store.add_group("Group 1", "Description 1")
    g2 = store.add_group("Group 2", "Description 2")
    store.add_task("Task 1", group_id=g1.id)
    store.add_task("Task 2", group_id=g2.id)
    store.add_task("Loose")
    store.add_task("Task 3", group_id=g1.id)

    assert [t.title for t in store.tasks_for_group(g1.id)] == ["Task 1", "Task 3"]
    assert [t.title for t in store.tasks_for_group(g2.id)] == ["Task 2"]
    assert [t.title for t in store.tasks_for_group(None)] == ["Loose"]


def test_delete_group_clears_task_reference(store: TaskStore) -> None:
    g = store.add_group("G")
    t = store.add_task("T", group_id=g.id)

    assert store.delete_group(g.id) is True

    assert store.groups == []
    assert [x.id for x in store.tasks] == [t.id]
    assert store.tasks[0].group_id is None


def test_delete_group_only_touches_its_tasks(store: TaskStore) -> None:
    g1 = store.add_group("G1")
    g2 = store.add_group("G2")
    t1 = store.add_task("t1", group_id=g1.id)
    t2 = store.add_task("t2", group_id=g2.id)
    t3 = store.add_task("t3")
    t4 = store.add_task("t4", group_id=g1.id)

    store.delete_group(g1.id)

    by_id = {t.id: t for t in store.tasks}
    assert by_id[t1.id].group_id is None
    assert by_id[t4.id].group_id is None
    assert by_id[t2.id].group_id == g2.id
    assert by_id[t3.id].group_id is None
    assert [g.id for g in store.groups] == [g2.id]


def test_delete_group_is_one_mutation(store: TaskStore) -> None:
    g = store.add_group("G")
    store.add_task("a", group_id=g.id)
    store.add_task("b", group_id=g.id)
    revision = store.revision

    store.remove_group(g.id)

    assert store.revision == revision + 1
    assert store.orphaned_tasks() == []


def test_delete_unknown_group_is_noop(store: TaskStore) -> None:
    store.add_group("G")
    revision = store.revision

    assert store.delete_group("missing") is False
    assert len(store.groups) == 1
    assert store.revision == revision


def test_remove_groups_at_cascades(store: TaskStore) -> None:
    a = store.add_group("A")
    b = store.add_group("B")
    c = store.add_group("C")
    t = store.add_task("t", group_id=b.id)

    removed = store.remove_groups_at([1, 2])

    assert removed == [b.id, c.id]
    assert [g.id for g in store.groups] == [a.id]
    assert store.get_task(t.id).group_id is None  # type: ignore[union-attr]
    with pytest.raises(ValidationError):
        store.remove_groups_at([3])


def test_unknown_group_id_is_accepted_as_orphan(store: TaskStore) -> None:
    real = store.add_group("Real")
    store.add_task("in real", group_id=real.id)
    orphan = store.add_task("orphan", group_id="no-such-group")

    assert store.get_task(orphan.id).group_id == "no-such-group"  # type: ignore[union-attr]
    assert [t.id for t in store.orphaned_tasks()] == [orphan.id]
    assert [t.id for t in store.tasks_for_group("no-such-group")] == [orphan.id]


def test_move_task(store: TaskStore) -> None:
    g = store.add_group("G")
    t = store.add_task("t")

    assert store.move_task(t.id, g.id).group_id == g.id  # type: ignore[union-attr]
    assert [x.id for x in store.tasks_for_group(g.id)] == [t.id]

    assert store.move_task(t.id, None).group_id is None  # type: ignore[union-attr]
    assert store.tasks_for_group(g.id) == []

    assert store.move_task(t.id, "nowhere").group_id == "nowhere"  # type: ignore[union-attr]
    assert store.move_task("missing", g.id) is None


def test_move_task_between_groups(store: TaskStore) -> None:
    g1 = store.add_group("G1")
    g2 = store.add_group("G2")
    t = store.add_task("t", group_id=g1.id)

    assert store.move_task_between_groups(t.id, g1.id, g1.id) is None
    assert store.move_task_between_groups(t.id, g2.id, g1.id) is None
    assert store.move_task_between_groups(t.id, g1.id, "missing") is None
    assert store.get_task(t.id).group_id == g1.id  # type: ignore[union-attr]

    moved = store.move_task_between_groups(t.id, g1.id, g2.id)

    assert moved is not None
    assert moved.group_id == g2.id
    assert store.tasks_for_group(g1.id) == []


def test_rename_unknown_group_returns_none_before_checking_name(store: TaskStore) -> None:
    store.add_group("A")

    assert store.rename_group("missing", "", "") is None
    assert [g.name for g in store.groups] == ["A"]


def test_rename_group_rejects_non_string_description(store: TaskStore) -> None:
    g = store.add_group("A", "a")

    with pytest.raises(ValidationError):
        store.rename_group(g.id, "B", None)  # type: ignore[arg-type]

    assert store.get_group(g.id).model_dump() == g.model_dump()  # type: ignore[union-attr]


def test_move_task_between_groups_is_one_mutation(store: TaskStore) -> None:
    g1 = store.add_group("G1")
    g2 = store.add_group("G2")
    t = store.add_task("t", group_id=g1.id)
    seen: list[str] = []
    store.subscribe(lambda change: seen.append(change.op))
    revision = store.revision

    store.move_task_between_groups(t.id, g1.id, g2.id)

    assert seen == ["move_task_between_groups"]
    assert store.revision == revision + 1
    assert [x.id for x in store.tasks_for_group(g2.id)] == [t.id]

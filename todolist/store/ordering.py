from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TypeVar

from todolist.errors import ValidationError

T = TypeVar("T")


def check_permutation(current: Sequence[str], new_order: Sequence[str]) -> None:
    """Raise ValidationError unless new_order holds exactly the ids in current."""
    if len(new_order) != len(current) or len(set(new_order)) != len(new_order):
        raise ValidationError("new order must list each id in scope exactly once")
    if set(new_order) != set(current):
        missing = sorted(set(current) - set(new_order))
        extra = sorted(set(new_order) - set(current))
        raise ValidationError(f"new order does not match scope (missing={missing}, extra={extra})")


def move_offsets(items: Sequence[T], offsets: Iterable[int], destination: int) -> list[T]:
    """Return items with the entries at offsets moved before ``destination``.

    ``destination`` is an index into the original list (``len(items)`` means
    the end). Moved entries keep their relative order.
    """
    picked = sorted(set(offsets))
    size = len(items)
    if any(i < 0 or i >= size for i in picked):
        raise ValidationError(f"offsets {picked} out of range for {size} items")
    if destination < 0 or destination > size:
        raise ValidationError(f"destination {destination} out of range for {size} items")
    picked_set = set(picked)
    moving = [items[i] for i in picked]
    remaining = [item for i, item in enumerate(items) if i not in picked_set]
    insert_at = destination - sum(1 for i in picked if i < destination)
    return remaining[:insert_at] + moving + remaining[insert_at:]


def scatter_into(backing: list[T], slots: Sequence[int], ordered: Sequence[T]) -> None:
    """Write ordered into the given backing positions, in slot order.

    Entries outside ``slots`` are left where they are, which is how a
    reorder inside a filtered view maps back onto the full collection.
    """
    if len(slots) != len(ordered):
        raise ValidationError("slot count does not match reordered item count")
    for slot, item in zip(sorted(slots), ordered, strict=True):
        backing[slot] = item


__all__ = ["check_permutation", "move_offsets", "scatter_into"]

"""Ordering of the content items of a course.

Pure planning functions: they read `id` and `sequence` from the items,
never mutate them and return a `SequencePlan` with the new display order
and only the items whose sequence changes. After any plan is applied the
sequences of a course are exactly 1..n.

Drag reorders rewrite every item between the two positions, which is fine
for the size of a course's lesson list.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol
from uuid import UUID


class Sequenced(Protocol):
    id: UUID
    sequence: int


class MoveDirection(str, Enum):
    """Direction of a one-step move."""

    UP = "up"
    DOWN = "down"


class InvalidPositionError(ValueError):
    """Position outside the item list."""

    def __init__(self, index: int, size: int):
        self.index = index
        self.size = size
        super().__init__(f"Position {index} out of range for {size} items")


@dataclass(frozen=True)
class SequenceChange:
    """New sequence for one item."""

    content_id: UUID
    old_sequence: int
    new_sequence: int


@dataclass
class SequencePlan:
    """Result of a sequencing operation."""

    order: list[Any] = field(default_factory=list)
    changes: list[SequenceChange] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not self.changes

    def new_sequence(self, content_id: UUID) -> int | None:
        """Sequence an item gets once the plan is applied (None if unchanged)."""
        for change in self.changes:
            if change.content_id == content_id:
                return change.new_sequence
        return None


def order_items(items: Sequence[Sequenced]) -> list[Any]:
    """Items in display order (ascending sequence, id breaks ties)."""
    return sorted(items, key=lambda item: (item.sequence, str(item.id)))


def next_sequence(items: Sequence[Sequenced]) -> int:
    """Sequence for an appended item: max + 1, or 1 for an empty course."""
    return max((item.sequence for item in items), default=0) + 1


def renumber(order: list[Any]) -> SequencePlan:
    """Assign 1-based positions to an already ordered list."""
    changes = [
        SequenceChange(item.id, item.sequence, position)
        for position, item in enumerate(order, start=1)
        if item.sequence != position
    ]
    return SequencePlan(order=order, changes=changes)


def _check_index(index: int, size: int) -> None:
    if not 0 <= index < size:
        raise InvalidPositionError(index, size)


def move_adjacent(
    items: Sequence[Sequenced],
    index: int,
    direction: MoveDirection,
) -> SequencePlan:
    """Swap the item at `index` (0-based, display order) with its neighbor.

    Moving the first item up or the last item down returns an empty plan.

    Raises:
        InvalidPositionError: If index is outside the list
    """
    order = order_items(items)
    _check_index(index, len(order))

    target = index - 1 if direction == MoveDirection.UP else index + 1
    if not 0 <= target < len(order):
        return SequencePlan(order=order)

    order[index], order[target] = order[target], order[index]
    return renumber(order)


def move_to(
    items: Sequence[Sequenced],
    source_index: int,
    destination_index: int,
) -> SequencePlan:
    """Drag an item from one position to another and renumber.

    Raises:
        InvalidPositionError: If either index is outside the list
    """
    order = order_items(items)
    _check_index(source_index, len(order))
    _check_index(destination_index, len(order))

    item = order.pop(source_index)
    order.insert(destination_index, item)
    return renumber(order)


def remove_at(items: Sequence[Sequenced], index: int) -> SequencePlan:
    """Plan for deleting the item at `index`; the rest close the gap.

    The removed item is not part of `order` nor `changes`.

    Raises:
        InvalidPositionError: If index is outside the list
    """
    order = order_items(items)
    _check_index(index, len(order))

    order.pop(index)
    return renumber(order)


def index_of(items: Sequence[Sequenced], content_id: UUID) -> int | None:
    """Display position of an item, None when absent."""
    for position, item in enumerate(order_items(items)):
        if item.id == content_id:
            return position
    return None

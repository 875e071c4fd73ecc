"""Gapped integer positions for ordering tickets inside a status column.

Adjacent tickets are spaced ``POSITION_GAP`` apart so a drop between two cards
can usually take the midpoint without touching any other row. When no integer
is left between the neighbours the caller renumbers the whole column instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Protocol, Sequence, TypeVar

POSITION_GAP = 1000


class PositionGapExhaustedError(RuntimeError):
    """Raised when no free integer position exists at the requested slot."""

    def __init__(self, left: int | None, right: int | None) -> None:
        super().__init__(f"No free position between {left} and {right}; column must be renumbered")
        self.left = left
        self.right = right


class Positioned(Protocol):
    position: int | None
    updated_at: datetime


T = TypeVar("T", bound=Positioned)


@dataclass(slots=True)
class InsertPlan:
    """Position for an inserted ticket plus any sibling renumbering it requires."""

    position: int
    renumbered: list[tuple[str, int]] = field(default_factory=list)

    @property
    def requires_renumber(self) -> bool:
        return bool(self.renumbered)


def compute_insert_position(positions: Sequence[int | None], target_index: int) -> int:
    """Return a position that places a new ticket at ``target_index``.

    ``positions`` must be the column's positions in display order. The result
    is strictly between its neighbours; otherwise ``PositionGapExhaustedError``
    is raised so the caller can fall back to :func:`renumber_column`.
    """

    if target_index < 0:
        raise ValueError("target_index must be non-negative")
    if not positions:
        return 0

    if target_index == 0:
        first = positions[0]
        if first is None or first <= 0:
            raise PositionGapExhaustedError(None, first)
        return max(0, first - POSITION_GAP)

    if target_index >= len(positions):
        last = positions[-1]
        if last is None:
            raise PositionGapExhaustedError(last, None)
        return last + POSITION_GAP

    left = positions[target_index - 1]
    right = positions[target_index]
    if left is None or right is None:
        raise PositionGapExhaustedError(left, right)
    midpoint = (left + right) // 2
    if not left < midpoint < right:
        raise PositionGapExhaustedError(left, right)
    return midpoint


def renumber_column(ordered_ids: Iterable[str]) -> list[tuple[str, int]]:
    """Assign canonical gapped positions (``index * POSITION_GAP``) in order."""

    return [(ticket_id, index * POSITION_GAP) for index, ticket_id in enumerate(ordered_ids)]


def reorder_within_column(ordered_ids: Sequence[str], from_index: int, to_index: int) -> list[tuple[str, int]]:
    """Move the id at ``from_index`` to ``to_index`` and renumber the column."""

    if not 0 <= from_index < len(ordered_ids):
        raise ValueError(f"from_index {from_index} is outside the column")
    if to_index < 0:
        raise ValueError("to_index must be non-negative")
    reordered = list(ordered_ids)
    moved = reordered.pop(from_index)
    reordered.insert(to_index, moved)
    return renumber_column(reordered)


def plan_insert(
    column_ids: Sequence[str],
    positions: Sequence[int | None],
    ticket_id: str,
    target_index: int,
) -> InsertPlan:
    """Plan an insert, renumbering the column when the gap is exhausted."""

    if len(column_ids) != len(positions):
        raise ValueError("column_ids and positions must have the same length")
    try:
        return InsertPlan(position=compute_insert_position(positions, target_index))
    except PositionGapExhaustedError:
        ordered = [item for item in column_ids if item != ticket_id]
        ordered.insert(min(target_index, len(ordered)), ticket_id)
        renumbered = renumber_column(ordered)
        position = next(value for item, value in renumbered if item == ticket_id)
        siblings = [(item, value) for item, value in renumbered if item != ticket_id]
        return InsertPlan(position=position, renumbered=siblings)


def position_sort_key(position: int | None, updated_at: datetime) -> tuple[bool, int, float]:
    # Unpositioned tickets go last; ties fall back to most recently updated first.
    return (position is None, position if position is not None else 0, -updated_at.timestamp())


def sort_column(tickets: Iterable[T]) -> list[T]:
    return sorted(tickets, key=lambda ticket: position_sort_key(ticket.position, ticket.updated_at))

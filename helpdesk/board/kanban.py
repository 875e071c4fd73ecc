"""Client-side Kanban board state.

Moves are applied optimistically in two phases: a tentative projection is
staged while the API call is in flight, then either committed with the
server's answer or discarded when the call fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Mapping

from helpdesk.tickets.errors import InvalidStatusTransitionError, TicketNotFoundError
from helpdesk.tickets.models import Ticket
from helpdesk.tickets.ordering import plan_insert, reorder_within_column, sort_column
from helpdesk.tickets.state import STATUS_ORDER, TicketStateMachine, TicketStatus, parse_status

from .client import HelpdeskAPIClient

logger = logging.getLogger(__name__)

Columns = dict[TicketStatus, list[Ticket]]


def group_tickets_by_status(tickets: Iterable[Ticket]) -> Columns:
    """Bucket tickets into one list per status, each in display order."""

    grouped: Columns = {status: [] for status in STATUS_ORDER}
    for ticket in tickets:
        grouped[ticket.status].append(ticket)
    return {status: sort_column(items) for status, items in grouped.items()}


def is_valid_move(current: TicketStatus, target: TicketStatus) -> bool:
    """Drag-and-drop check; dropping a card back into its own column is allowed."""

    return current == target or TicketStateMachine.can_transition(current, target)


def _allowed_values(current: TicketStatus) -> list[str]:
    allowed = TicketStateMachine.allowed_transitions(current)
    return [status.value for status in STATUS_ORDER if status in allowed]


def transition_error_message(current: TicketStatus, target: TicketStatus) -> str:
    allowed = _allowed_values(current)
    if not allowed:
        return f"Cannot move ticket from '{current}' - it's a final state"
    return f"Cannot move ticket from '{current}' to '{target}'. Allowed transitions: {', '.join(allowed)}"


@dataclass(slots=True)
class BoardChange:
    """A staged edit: the columns as they would look once the server agrees."""

    ticket_id: str
    columns: Columns
    position: int | None = None
    requires_reorder: bool = False


@dataclass(slots=True)
class KanbanBoard:
    client: HelpdeskAPIClient
    _columns: Columns = field(default_factory=lambda: group_tickets_by_status(()))
    _pending: BoardChange | None = None

    @classmethod
    def from_tickets(cls, client: HelpdeskAPIClient, tickets: Iterable[Ticket]) -> "KanbanBoard":
        return cls(client=client, _columns=group_tickets_by_status(tickets))

    def load(self) -> None:
        self._columns = group_tickets_by_status(self.client.fetch_all_tickets())
        self._pending = None

    @property
    def columns(self) -> Mapping[TicketStatus, list[Ticket]]:
        """What the board shows right now, including any staged change."""

        source = self._pending.columns if self._pending is not None else self._columns
        return {status: list(items) for status, items in source.items()}

    @property
    def pending(self) -> BoardChange | None:
        return self._pending

    def column(self, status: TicketStatus) -> list[Ticket]:
        return list(self.columns[status])

    def find(self, ticket_id: str) -> Ticket | None:
        for items in self._columns.values():
            for ticket in items:
                if ticket.id == ticket_id:
                    return ticket
        return None

    def move_ticket(self, ticket_id: str, new_status: TicketStatus | str, target_index: int) -> Ticket:
        ticket = self.find(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        target = parse_status(new_status)

        if ticket.status == target:
            from_index = [item.id for item in self._columns[target]].index(ticket_id)
            self.reorder(target, from_index, target_index)
            return self.find(ticket_id) or ticket
        if not is_valid_move(ticket.status, target):
            logger.warning("%s", transition_error_message(ticket.status, target))
            raise InvalidStatusTransitionError(ticket.status.value, target.value, _allowed_values(ticket.status))

        change = self._stage_move(ticket, target, target_index)
        try:
            updated = self.client.update_ticket_status(
                ticket_id,
                target.value,
                None if change.requires_reorder else change.position,
            )
        except Exception:
            self.discard()
            raise

        if change.requires_reorder:
            try:
                self.client.reorder_tickets(target.value, [item.id for item in change.columns[target]])
            except Exception:
                # The status change is already stored; only the renumbering is lost.
                logger.warning("Ticket %s moved to %s but the column reorder failed", ticket_id, target)
                self._commit_server_state(updated)
                raise
            updated = replace(updated, position=change.position)
        self._commit(change, updated)
        return updated

    def reorder(self, column: TicketStatus | str, from_index: int, to_index: int) -> None:
        status = parse_status(column)
        current = self._columns[status]
        to_index = min(to_index, len(current) - 1) if current else to_index
        if from_index == to_index:
            return

        by_id = {ticket.id: ticket for ticket in current}
        pairs = reorder_within_column([ticket.id for ticket in current], from_index, to_index)
        columns = self._copy_columns()
        columns[status] = [replace(by_id[ticket_id], position=position) for ticket_id, position in pairs]
        change = BoardChange(ticket_id=current[from_index].id, columns=columns, requires_reorder=True)

        self._pending = change
        try:
            self.client.reorder_tickets(status.value, [ticket_id for ticket_id, _ in pairs])
        except Exception:
            self.discard()
            raise
        self._columns = change.columns
        self._pending = None

    def discard(self) -> None:
        if self._pending is not None:
            logger.info("Rolling back staged change for ticket %s", self._pending.ticket_id)
        self._pending = None

    def _stage_move(self, ticket: Ticket, target: TicketStatus, target_index: int) -> BoardChange:
        destination = [item for item in self._columns[target] if item.id != ticket.id]
        plan = plan_insert(
            [item.id for item in destination],
            [item.position for item in destination],
            ticket.id,
            target_index,
        )
        renumbered = dict(plan.renumbered)
        moved = replace(ticket, status=target, position=plan.position)
        projected = [replace(item, position=renumbered.get(item.id, item.position)) for item in destination]
        projected.insert(min(target_index, len(projected)), moved)

        columns = self._copy_columns()
        columns[ticket.status] = [item for item in columns[ticket.status] if item.id != ticket.id]
        columns[target] = projected
        change = BoardChange(
            ticket_id=ticket.id,
            columns=columns,
            position=plan.position,
            requires_reorder=plan.requires_renumber,
        )
        self._pending = change
        return change

    def _commit(self, change: BoardChange, updated: Ticket) -> None:
        columns = change.columns
        columns[updated.status] = sort_column(
            updated if item.id == updated.id else item for item in columns[updated.status]
        )
        self._columns = columns
        self._pending = None

    def _commit_server_state(self, updated: Ticket) -> None:
        columns = {
            status: [item for item in items if item.id != updated.id] for status, items in self._columns.items()
        }
        columns[updated.status] = sort_column([*columns[updated.status], updated])
        self._columns = columns
        self._pending = None

    def _copy_columns(self) -> Columns:
        return {status: list(items) for status, items in self._columns.items()}

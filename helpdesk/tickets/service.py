from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from .errors import InvalidStatusError, TicketValidationError
from .models import ReorderResult, Ticket, utcnow, validate_description, validate_title
from .ordering import POSITION_GAP, plan_insert, renumber_column, sort_column
from .query import TicketPage, TicketQuery, list_page
from .state import STATUS_ORDER, TicketStateMachine, TicketStatus, parse_status
from .store import TicketStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PositionInitResult:
    """Outcome of assigning positions to tickets stored without one."""

    total: int
    updated: int
    already_positioned: int


@dataclass(slots=True)
class TicketService:
    """High level orchestration for ticket lifecycle, ordering and listing.

    Lookups that find nothing return ``None``; translating that into a
    not-found response is left to the caller.
    """

    store: TicketStore

    async def create_ticket(
        self,
        *,
        title: str | None,
        description: str | None,
        contact: Mapping[str, Any] | None = None,
    ) -> Ticket:
        ticket = Ticket.create(title, description, contact)
        created = await self.store.create(ticket)
        logger.info("Created ticket %s", created.id)
        return created

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        return await self.store.find_by_id(ticket_id)

    async def list_tickets(self, query: TicketQuery | None = None) -> TicketPage:
        tickets = await self.store.find_all()
        return list_page(tickets, query or TicketQuery())

    async def update_ticket(
        self,
        ticket_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        contact: Mapping[str, Any] | None = None,
    ) -> Ticket | None:
        current = await self.store.find_by_id(ticket_id)
        if current is None:
            return None

        changes: dict[str, Any] = {}
        if title is not None:
            changes["title"] = validate_title(title)
        if description is not None:
            changes["description"] = validate_description(description)
        if contact is not None:
            changes["contact"] = current.contact.merged(contact)
        changes["updated_at"] = utcnow()
        return await self.store.update(ticket_id, changes)

    async def change_status(
        self,
        ticket_id: str,
        *,
        new_status: Any,
        position: int | None = None,
    ) -> Ticket | None:
        """Apply a status transition; the only path that changes ``status``.

        Siblings in the destination column keep their positions. Exactly one
        store update is issued on success.
        """

        ticket = await self.store.find_by_id(ticket_id)
        if ticket is None:
            return None

        target = parse_status(new_status)
        TicketStateMachine.assert_transition(ticket.status, target)

        changes: dict[str, Any] = {"status": target, "updated_at": utcnow()}
        if position is not None:
            changes["position"] = position
        updated = await self.store.update(ticket_id, changes)
        if updated is not None:
            logger.info("Ticket %s moved from %s to %s", ticket_id, ticket.status, target)
        return updated

    async def column(self, status: TicketStatus) -> list[Ticket]:
        tickets = await self.store.find_all()
        return sort_column(ticket for ticket in tickets if ticket.status == status)

    async def move_ticket(self, ticket_id: str, *, new_status: Any, target_index: int) -> Ticket | None:
        """Drop a ticket into another column at ``target_index``."""

        if target_index < 0:
            message = "Target index must be zero or greater"
            raise TicketValidationError(message, [{"field": "targetIndex", "message": message}])

        ticket = await self.store.find_by_id(ticket_id)
        if ticket is None:
            return None
        target = parse_status(new_status)
        # Validate before renumbering siblings so a refused move leaves no trace.
        TicketStateMachine.assert_transition(ticket.status, target)

        destination = [item for item in await self.column(target) if item.id != ticket_id]
        plan = plan_insert(
            [item.id for item in destination],
            [item.position for item in destination],
            ticket_id,
            target_index,
        )
        if plan.requires_renumber:
            logger.info("Position gap exhausted in %s column; renumbering %d tickets", target, len(plan.renumbered))
            for sibling_id, position in plan.renumbered:
                await self.store.update(sibling_id, {"position": position})
        return await self.change_status(ticket_id, new_status=target, position=plan.position)

    async def reorder_column(self, column: Any, ordered_ids: Sequence[str]) -> ReorderResult:
        """Renumber ``column`` in the given order, skipping ids that do not belong to it."""

        try:
            status = parse_status(column)
        except InvalidStatusError:
            message = f"Invalid column: {column}"
            raise TicketValidationError(message, [{"field": "column", "message": message}]) from None

        result = ReorderResult(column=status)
        members: list[str] = []
        seen: set[str] = set()
        for ticket_id in ordered_ids:
            if ticket_id in seen:
                logger.warning("Ticket %s listed more than once during reorder; keeping first", ticket_id)
                result.skipped.append(ticket_id)
                continue
            seen.add(ticket_id)
            ticket = await self.store.find_by_id(ticket_id)
            if ticket is None:
                logger.warning("Ticket %s not found during reorder", ticket_id)
                result.skipped.append(ticket_id)
                continue
            if ticket.status != status:
                logger.warning("Ticket %s has status %s, expected %s", ticket_id, ticket.status, status)
                result.skipped.append(ticket_id)
                continue
            members.append(ticket_id)

        now = utcnow()
        for ticket_id, position in renumber_column(members):
            updated = await self.store.update(ticket_id, {"position": position, "updated_at": now})
            if updated is not None:
                result.applied.append((ticket_id, position))
        logger.info("Reordered %s column: %d applied, %d skipped", status, len(result.applied), len(result.skipped))
        return result

    async def initialize_positions(self) -> PositionInitResult:
        """Give tickets persisted without a position one after the positioned ones.

        ``updated_at`` is left untouched.
        """

        tickets = await self.store.find_all()
        updated = 0
        already_positioned = 0
        for status in STATUS_ORDER:
            ordered = sort_column(ticket for ticket in tickets if ticket.status == status)
            explicit = [ticket.position for ticket in ordered if ticket.position is not None]
            already_positioned += len(explicit)
            next_position = (max(explicit) // POSITION_GAP + 1) * POSITION_GAP if explicit else 0
            for ticket in ordered:
                if ticket.position is not None:
                    continue
                await self.store.update(ticket.id, {"position": next_position})
                logger.debug("Assigned position %d to ticket %s", next_position, ticket.id)
                next_position += POSITION_GAP
                updated += 1
        if updated:
            logger.info("Initialised positions for %d tickets", updated)
        return PositionInitResult(total=len(tickets), updated=updated, already_positioned=already_positioned)

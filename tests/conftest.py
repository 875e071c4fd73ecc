from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from helpdesk.main import create_app
from helpdesk.tickets.models import Contact, Ticket
from helpdesk.tickets.service import TicketService
from helpdesk.tickets.state import TicketStatus
from helpdesk.tickets.store import MemoryTicketStore

BASE_TIME = datetime(2024, 11, 5, 9, 0, tzinfo=timezone.utc)


def make_ticket(
    ticket_id: str,
    *,
    status: TicketStatus = TicketStatus.PENDING,
    position: int | None = None,
    minutes: int = 0,
    title: str | None = None,
) -> Ticket:
    moment = BASE_TIME + timedelta(minutes=minutes)
    return Ticket(
        id=ticket_id,
        title=title or f"Ticket {ticket_id}",
        description="Something is broken",
        contact=Contact(name="Ada", email="ada@example.com"),
        status=status,
        created_at=moment,
        updated_at=moment,
        position=position,
    )


@pytest.fixture
def memory_store() -> MemoryTicketStore:
    return MemoryTicketStore()


@pytest.fixture
def ticket_service(memory_store: MemoryTicketStore) -> TicketService:
    return TicketService(memory_store)


@pytest.fixture
def api_client(ticket_service: TicketService):
    app = create_app()
    app.state.ticket_service = ticket_service
    client = TestClient(app)
    try:
        yield client
    finally:
        app.dependency_overrides.clear()

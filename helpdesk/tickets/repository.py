from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from packages.db.models import TicketTable

from .models import Contact, Ticket
from .state import TicketStatus
from .store import validate_changes


class SqlTicketStore:
    """PostgreSQL backed ticket store using SQLModel tables."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        async with self._engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)

    async def find_by_id(self, ticket_id: str) -> Ticket | None:
        async with self._session_factory() as session:
            row = await session.get(TicketTable, ticket_id)
            if row is None:
                return None
            return self._table_to_ticket(row)

    async def find_all(self) -> list[Ticket]:
        async with self._session_factory() as session:
            result = await session.execute(select(TicketTable).order_by(TicketTable.created_at.asc()))
            return [self._table_to_ticket(row) for row in result.scalars().all()]

    async def create(self, ticket: Ticket) -> Ticket:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(
                    TicketTable(
                        id=ticket.id,
                        title=ticket.title,
                        description=ticket.description,
                        contact=ticket.contact.to_dict(),
                        status=ticket.status.value,
                        position=ticket.position,
                        created_at=ticket.created_at,
                        updated_at=ticket.updated_at,
                    )
                )
        return ticket

    async def update(self, ticket_id: str, changes: Mapping[str, Any]) -> Ticket | None:
        validate_changes(changes)
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(TicketTable, ticket_id, with_for_update=True)
                if row is None:
                    return None
                for name, value in changes.items():
                    setattr(row, name, self._to_column_value(value))
                await session.flush()
                return self._table_to_ticket(row)

    @staticmethod
    def _to_column_value(value: Any) -> Any:
        if isinstance(value, TicketStatus):
            return value.value
        if isinstance(value, Contact):
            return value.to_dict()
        return value

    @staticmethod
    def _table_to_ticket(row: TicketTable) -> Ticket:
        contact = row.contact or {}
        return Ticket(
            id=row.id,
            title=row.title,
            description=row.description,
            contact=Contact(
                name=contact.get("name") or "",
                email=contact.get("email") or "",
                phone=contact.get("phone") or None,
            ),
            status=TicketStatus(row.status),
            position=row.position,
            created_at=_ensure_datetime(row.created_at),
            updated_at=_ensure_datetime(row.updated_at),
        )


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")

"""Storage port for tickets and its in-process implementations."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from dataclasses import fields, replace
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol

from .models import Ticket

logger = logging.getLogger(__name__)

_FIELD_NAMES = frozenset(item.name for item in fields(Ticket))
_IMMUTABLE_FIELDS = frozenset({"id", "created_at"})


class TicketStore(Protocol):
    """Contract the ticket engines depend on.

    ``update`` must be atomic per ticket id. Nothing is atomic across ids.
    """

    async def find_by_id(self, ticket_id: str) -> Ticket | None:
        ...

    async def find_all(self) -> list[Ticket]:
        ...

    async def create(self, ticket: Ticket) -> Ticket:
        ...

    async def update(self, ticket_id: str, changes: Mapping[str, Any]) -> Ticket | None:
        ...


def validate_changes(changes: Mapping[str, Any]) -> None:
    unknown = set(changes) - _FIELD_NAMES
    if unknown:
        raise ValueError(f"Unknown ticket fields: {', '.join(sorted(unknown))}")
    frozen = set(changes) & _IMMUTABLE_FIELDS
    if frozen:
        raise ValueError(f"Immutable ticket fields cannot be updated: {', '.join(sorted(frozen))}")


class MemoryTicketStore:
    """Dictionary backed store; data lives for the lifetime of the process."""

    def __init__(self, tickets: Iterable[Ticket] = ()) -> None:
        self._tickets: dict[str, Ticket] = {ticket.id: replace(ticket) for ticket in tickets}
        self._lock = asyncio.Lock()

    async def find_by_id(self, ticket_id: str) -> Ticket | None:
        ticket = self._tickets.get(ticket_id)
        return replace(ticket) if ticket is not None else None

    async def find_all(self) -> list[Ticket]:
        return [replace(ticket) for ticket in self._tickets.values()]

    async def create(self, ticket: Ticket) -> Ticket:
        async with self._lock:
            if ticket.id in self._tickets:
                raise ValueError(f"Ticket {ticket.id} already exists")
            self._tickets[ticket.id] = replace(ticket)
        return replace(ticket)

    async def update(self, ticket_id: str, changes: Mapping[str, Any]) -> Ticket | None:
        validate_changes(changes)
        async with self._lock:
            current = self._tickets.get(ticket_id)
            if current is None:
                return None
            updated = replace(current, **changes)
            self._tickets[ticket_id] = updated
        return replace(updated)

    async def clear(self) -> None:
        async with self._lock:
            self._tickets.clear()


class JsonFileTicketStore:
    """Store keeping every ticket record in a single JSON array on disk."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()
        self._initialized = False

    @property
    def path(self) -> Path:
        return self._path

    async def init(self) -> None:
        async with self._lock:
            await self._ensure_file()

    async def find_by_id(self, ticket_id: str) -> Ticket | None:
        async with self._lock:
            records = await self._read()
        for record in records:
            if record.get("id") == ticket_id:
                return Ticket.reconstruct(record)
        return None

    async def find_all(self) -> list[Ticket]:
        async with self._lock:
            records = await self._read()
        return [Ticket.reconstruct(record) for record in records]

    async def create(self, ticket: Ticket) -> Ticket:
        async with self._lock:
            records = await self._read()
            if any(record.get("id") == ticket.id for record in records):
                raise ValueError(f"Ticket {ticket.id} already exists")
            records.append(ticket.to_record())
            await self._write(records)
        return replace(ticket)

    async def update(self, ticket_id: str, changes: Mapping[str, Any]) -> Ticket | None:
        validate_changes(changes)
        async with self._lock:
            records = await self._read()
            for index, record in enumerate(records):
                if record.get("id") == ticket_id:
                    updated = replace(Ticket.reconstruct(record), **changes)
                    records[index] = updated.to_record()
                    await self._write(records)
                    return updated
        return None

    async def clear(self) -> None:
        async with self._lock:
            await self._write([])

    async def _ensure_file(self) -> None:
        if self._initialized:
            return
        await asyncio.to_thread(self._path.parent.mkdir, parents=True, exist_ok=True)
        if not self._path.exists():
            await self._write([])
        else:
            await self._read_or_reset()
        self._initialized = True
        logger.info("JSON ticket store initialised at %s", self._path)

    async def _read(self) -> list[dict[str, Any]]:
        await self._ensure_file()
        return await self._read_or_reset()

    async def _read_or_reset(self) -> list[dict[str, Any]]:
        content = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
        if not content.strip():
            await self._write([])
            return []
        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            logger.warning("Invalid JSON in %s; resetting ticket data", self._path)
            await self._write([])
            return []
        if not isinstance(data, list):
            logger.warning("Ticket data in %s is not a list; resetting", self._path)
            await self._write([])
            return []
        return data

    async def _write(self, records: list[dict[str, Any]]) -> None:
        payload = json.dumps(records, indent=2, ensure_ascii=False)
        await asyncio.to_thread(_atomic_write, self._path, payload)


def _atomic_write(path: Path, payload: str) -> None:
    handle, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(handle, "w", encoding="utf-8") as stream:
            stream.write(payload)
        os.replace(temp_name, path)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise

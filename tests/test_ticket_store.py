from __future__ import annotations

import json

import pytest

from conftest import make_ticket
from helpdesk.tickets.models import Contact
from helpdesk.tickets.state import TicketStatus
from helpdesk.tickets.store import JsonFileTicketStore, MemoryTicketStore


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryTicketStore()
    return JsonFileTicketStore(tmp_path / "data" / "tickets.json")


@pytest.mark.asyncio
async def test_create_then_find(store):
    ticket = make_ticket("t-1", position=1000)

    created = await store.create(ticket)

    assert created == ticket
    assert await store.find_by_id("t-1") == ticket
    assert await store.find_by_id("missing") is None
    assert await store.find_all() == [ticket]


@pytest.mark.asyncio
async def test_update_merges_changes(store):
    await store.create(make_ticket("t-1"))

    updated = await store.update(
        "t-1",
        {"status": TicketStatus.ACCEPTED, "position": 500, "contact": Contact(name="Bo", email="bo@x.io")},
    )

    assert updated.status is TicketStatus.ACCEPTED
    assert updated.position == 500
    assert updated.title == "Ticket t-1"
    stored = await store.find_by_id("t-1")
    assert stored == updated


@pytest.mark.asyncio
async def test_update_missing_ticket_returns_none(store):
    assert await store.update("missing", {"position": 0}) is None


@pytest.mark.asyncio
async def test_update_refuses_unknown_and_immutable_fields(store):
    await store.create(make_ticket("t-1"))
    with pytest.raises(ValueError):
        await store.update("t-1", {"colour": "red"})
    with pytest.raises(ValueError):
        await store.update("t-1", {"id": "t-2"})


@pytest.mark.asyncio
async def test_create_rejects_duplicate_ids(store):
    await store.create(make_ticket("t-1"))
    with pytest.raises(ValueError):
        await store.create(make_ticket("t-1"))


@pytest.mark.asyncio
async def test_returned_tickets_are_copies(store):
    await store.create(make_ticket("t-1"))
    fetched = await store.find_by_id("t-1")
    fetched.title = "changed locally"
    assert (await store.find_by_id("t-1")).title == "Ticket t-1"


@pytest.mark.asyncio
async def test_json_store_creates_missing_file(tmp_path):
    path = tmp_path / "nested" / "tickets.json"
    store = JsonFileTicketStore(path)

    await store.init()

    assert path.exists()
    assert json.loads(path.read_text(encoding="utf-8")) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", "{not json", '{"tickets": []}'])
async def test_json_store_resets_unusable_content(tmp_path, content):
    path = tmp_path / "tickets.json"
    path.write_text(content, encoding="utf-8")
    store = JsonFileTicketStore(path)

    assert await store.find_all() == []
    assert json.loads(path.read_text(encoding="utf-8")) == []


@pytest.mark.asyncio
async def test_json_store_persists_camel_case_records(tmp_path):
    path = tmp_path / "tickets.json"
    store = JsonFileTicketStore(path)
    await store.create(make_ticket("t-1", position=0))

    records = json.loads(path.read_text(encoding="utf-8"))
    assert records[0]["id"] == "t-1"
    assert records[0]["status"] == "pending"
    assert "createdAt" in records[0] and "updatedAt" in records[0]

    reopened = JsonFileTicketStore(path)
    assert (await reopened.find_by_id("t-1")).position == 0


@pytest.mark.asyncio
async def test_json_store_reads_legacy_records_without_position(tmp_path):
    path = tmp_path / "tickets.json"
    record = make_ticket("legacy").to_record()
    del record["position"]
    path.write_text(json.dumps([record]), encoding="utf-8")

    ticket = await JsonFileTicketStore(path).find_by_id("legacy")
    assert ticket.position is None


@pytest.mark.asyncio
async def test_clear_removes_everything(store):
    await store.create(make_ticket("t-1"))
    await store.clear()
    assert await store.find_all() == []

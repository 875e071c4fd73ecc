from __future__ import annotations

import json
from unittest.mock import MagicMock

import httpx
import pytest

from conftest import make_ticket
from helpdesk.board.client import APIError, HelpdeskAPIClient
from helpdesk.board.kanban import KanbanBoard, group_tickets_by_status, is_valid_move, transition_error_message
from helpdesk.tickets.errors import InvalidStatusTransitionError
from helpdesk.tickets.state import TicketStatus


def _client_with(handler) -> HelpdeskAPIClient:
    return HelpdeskAPIClient(base_url="http://helpdesk.test/", transport=httpx.MockTransport(handler))


def test_client_parses_ticket_envelope():
    record = make_ticket("t-1", position=0).to_record()
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True, "message": "ok", "data": record})

    ticket = _client_with(handler).update_ticket_status("t-1", "accepted", 1500)

    assert ticket.id == "t-1"
    assert seen[0].method == "PATCH"
    assert seen[0].url.path == "/api/tickets/t-1/status"
    assert json.loads(seen[0].content) == {"status": "accepted", "position": 1500}


def test_client_raises_api_error_from_envelope():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            422,
            json={"success": False, "errorCode": "INVALID_STATUS_TRANSITION", "message": "nope", "details": {}},
        )

    with pytest.raises(APIError) as excinfo:
        _client_with(handler).update_ticket_status("t-1", "pending")

    assert excinfo.value.status_code == 422
    assert excinfo.value.error_code == "INVALID_STATUS_TRANSITION"
    assert str(excinfo.value) == "[422] nope"


def test_fetch_all_tickets_walks_pages():
    pages = {
        "1": [make_ticket("a").to_record(), make_ticket("b").to_record()],
        "2": [make_ticket("c").to_record()],
    }

    def handler(request: httpx.Request) -> httpx.Response:
        page = request.url.params["page"]
        return httpx.Response(
            200,
            json={"success": True, "data": pages[page], "pagination": {"hasNext": page == "1"}},
        )

    tickets = _client_with(handler).fetch_all_tickets(page_size=2)
    assert [ticket.id for ticket in tickets] == ["a", "b", "c"]


def test_group_tickets_by_status_orders_columns():
    grouped = group_tickets_by_status(
        [
            make_ticket("late", position=2000),
            make_ticket("done", status=TicketStatus.RESOLVED),
            make_ticket("early", position=0),
            make_ticket("legacy"),
        ]
    )

    assert list(grouped) == [TicketStatus.PENDING, TicketStatus.ACCEPTED, TicketStatus.RESOLVED, TicketStatus.REJECTED]
    assert [ticket.id for ticket in grouped[TicketStatus.PENDING]] == ["early", "late", "legacy"]
    assert grouped[TicketStatus.ACCEPTED] == []


def test_board_move_check_allows_same_column():
    assert is_valid_move(TicketStatus.RESOLVED, TicketStatus.RESOLVED)
    assert is_valid_move(TicketStatus.PENDING, TicketStatus.ACCEPTED)
    assert not is_valid_move(TicketStatus.PENDING, TicketStatus.RESOLVED)
    assert transition_error_message(TicketStatus.RESOLVED, TicketStatus.PENDING).endswith("it's a final state")


def _board(*tickets) -> tuple[KanbanBoard, MagicMock]:
    client = MagicMock(spec=HelpdeskAPIClient)
    return KanbanBoard.from_tickets(client, tickets), client


def test_move_commits_server_answer():
    board, client = _board(
        make_ticket("mover"),
        make_ticket("x", status=TicketStatus.ACCEPTED, position=0),
        make_ticket("y", status=TicketStatus.ACCEPTED, position=1000),
    )
    client.update_ticket_status.return_value = make_ticket("mover", status=TicketStatus.ACCEPTED, position=500)

    moved = board.move_ticket("mover", "accepted", 1)

    client.update_ticket_status.assert_called_once_with("mover", "accepted", 500)
    assert moved.position == 500
    assert board.pending is None
    assert [ticket.id for ticket in board.column(TicketStatus.ACCEPTED)] == ["x", "mover", "y"]
    assert board.column(TicketStatus.PENDING) == []


def test_move_rolls_back_when_server_refuses():
    board, client = _board(make_ticket("mover"), make_ticket("x", status=TicketStatus.ACCEPTED, position=0))
    before = board.columns
    staged: list[list[str]] = []

    def refuse(*args, **kwargs):
        staged.append([ticket.id for ticket in board.column(TicketStatus.ACCEPTED)])
        raise APIError("nope", status_code=422, error_code="INVALID_STATUS_TRANSITION")

    client.update_ticket_status.side_effect = refuse

    with pytest.raises(APIError):
        board.move_ticket("mover", "accepted", 0)

    assert staged == [["mover", "x"]]
    assert board.pending is None
    assert board.columns == before


def test_move_to_disallowed_column_never_calls_server():
    board, client = _board(make_ticket("done", status=TicketStatus.RESOLVED))

    with pytest.raises(InvalidStatusTransitionError):
        board.move_ticket("done", "pending", 0)

    client.update_ticket_status.assert_not_called()


def test_move_with_exhausted_gap_reorders_destination():
    board, client = _board(
        make_ticket("mover"),
        make_ticket("x", status=TicketStatus.ACCEPTED, position=0),
        make_ticket("y", status=TicketStatus.ACCEPTED, position=1),
    )
    client.update_ticket_status.return_value = make_ticket("mover", status=TicketStatus.ACCEPTED)

    moved = board.move_ticket("mover", "accepted", 1)

    client.update_ticket_status.assert_called_once_with("mover", "accepted", None)
    client.reorder_tickets.assert_called_once_with("accepted", ["x", "mover", "y"])
    assert moved.position == 1000
    assert [ticket.position for ticket in board.column(TicketStatus.ACCEPTED)] == [0, 1000, 2000]


def test_failed_reorder_after_status_change_keeps_server_status():
    board, client = _board(
        make_ticket("mover"),
        make_ticket("x", status=TicketStatus.ACCEPTED, position=0),
        make_ticket("y", status=TicketStatus.ACCEPTED, position=1),
    )
    client.update_ticket_status.return_value = make_ticket("mover", status=TicketStatus.ACCEPTED)
    client.reorder_tickets.side_effect = APIError("down", status_code=503)

    with pytest.raises(APIError):
        board.move_ticket("mover", "accepted", 1)

    client.update_ticket_status.assert_called_once_with("mover", "accepted", None)
    assert board.pending is None
    assert board.column(TicketStatus.PENDING) == []
    assert [(ticket.id, ticket.position) for ticket in board.column(TicketStatus.ACCEPTED)] == [
        ("x", 0),
        ("y", 1),
        ("mover", None),
    ]


def test_same_column_move_is_a_reorder():
    board, client = _board(
        make_ticket("A", position=0),
        make_ticket("B", position=1000),
        make_ticket("C", position=2000),
    )

    board.move_ticket("C", "pending", 0)

    client.reorder_tickets.assert_called_once_with("pending", ["C", "A", "B"])
    client.update_ticket_status.assert_not_called()
    assert [(ticket.id, ticket.position) for ticket in board.column(TicketStatus.PENDING)] == [
        ("C", 0),
        ("A", 1000),
        ("B", 2000),
    ]


def test_failed_reorder_is_discarded():
    board, client = _board(make_ticket("A", position=0), make_ticket("B", position=1000))
    client.reorder_tickets.side_effect = APIError("down", status_code=503)

    with pytest.raises(APIError):
        board.reorder("pending", 1, 0)

    assert [ticket.id for ticket in board.column(TicketStatus.PENDING)] == ["A", "B"]


def test_load_replaces_board_state():
    board, client = _board()
    client.fetch_all_tickets.return_value = [make_ticket("a", status=TicketStatus.REJECTED)]

    board.load()

    assert [ticket.id for ticket in board.column(TicketStatus.REJECTED)] == ["a"]

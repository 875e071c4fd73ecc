import pytest

from conftest import make_ticket
from helpdesk.tickets.errors import TicketValidationError
from helpdesk.tickets.query import (
    MAX_LIMIT,
    SortField,
    SortOrder,
    TicketQuery,
    list_page,
    parse_ticket_query,
)
from helpdesk.tickets.state import TicketStatus


def _tickets():
    return [
        make_ticket("a", status=TicketStatus.RESOLVED, minutes=1),
        make_ticket("b", status=TicketStatus.PENDING, minutes=3),
        make_ticket("c", status=TicketStatus.ACCEPTED, minutes=2),
        make_ticket("d", status=TicketStatus.REJECTED, minutes=0),
    ]


def test_defaults_sort_by_updated_at_descending():
    page = list_page(_tickets(), TicketQuery())
    assert [ticket.id for ticket in page.items] == ["b", "c", "a", "d"]
    assert page.pagination.page == 1
    assert page.pagination.limit == 10


def test_status_sort_uses_lifecycle_order():
    query = TicketQuery(sort_by=SortField.STATUS, sort_order=SortOrder.ASC)
    page = list_page(_tickets(), query)
    assert [ticket.status for ticket in page.items] == [
        TicketStatus.PENDING,
        TicketStatus.ACCEPTED,
        TicketStatus.RESOLVED,
        TicketStatus.REJECTED,
    ]


def test_filter_by_multiple_statuses():
    query = parse_ticket_query(status="pending, Accepted")
    page = list_page(_tickets(), query)
    assert {ticket.id for ticket in page.items} == {"b", "c"}
    assert page.pagination.total == 2


def test_repeated_status_parameters_are_merged():
    query = parse_ticket_query(status=["pending", "rejected"])
    assert query.statuses == {TicketStatus.PENDING, TicketStatus.REJECTED}


def test_unknown_status_is_a_validation_error():
    with pytest.raises(TicketValidationError) as excinfo:
        parse_ticket_query(status="pending,closed")
    assert "closed" in str(excinfo.value)


def test_pagination_over_three_items():
    tickets = _tickets()[:3]

    first = list_page(tickets, TicketQuery(page=1, limit=2))
    assert len(first.items) == 2
    assert first.pagination.total == 3
    assert first.pagination.total_pages == 2
    assert first.pagination.has_next
    assert not first.pagination.has_prev

    second = list_page(tickets, TicketQuery(page=2, limit=2))
    assert len(second.items) == 1
    assert not second.pagination.has_next
    assert second.pagination.has_prev


def test_page_past_the_end_is_empty():
    page = list_page(_tickets(), TicketQuery(page=5, limit=2))
    assert page.items == []
    assert page.pagination.total == 4
    assert not page.pagination.has_next


def test_empty_collection_has_zero_pages():
    page = list_page([], TicketQuery())
    assert page.items == []
    assert page.pagination.total_pages == 0
    assert not page.pagination.has_next


def test_bad_values_fall_back_to_defaults():
    query = parse_ticket_query(sort_by="title", sort_order="sideways", page="-3", limit="abc")
    assert query.sort_by is SortField.UPDATED_AT
    assert query.sort_order is SortOrder.DESC
    assert query.page == 1
    assert query.limit == 10


def test_limit_is_capped():
    assert parse_ticket_query(limit="500").limit == MAX_LIMIT
    assert TicketQuery(limit=1000).limit == MAX_LIMIT


def test_list_page_does_not_mutate_input():
    tickets = _tickets()
    snapshot = list(tickets)
    list_page(tickets, TicketQuery(sort_by=SortField.CREATED_AT, sort_order=SortOrder.ASC))
    assert tickets == snapshot

"""Filtering, sorting and pagination for ticket list views."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Sequence

from .errors import TicketValidationError
from .models import Ticket
from .state import STATUS_ORDER, TicketStatus, status_ordinal

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


class SortField(str, Enum):
    STATUS = "status"
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(slots=True)
class TicketQuery:
    """Normalised list request."""

    statuses: frozenset[TicketStatus] | None = None
    sort_by: SortField = SortField.UPDATED_AT
    sort_order: SortOrder = SortOrder.DESC
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.limit < 1:
            raise ValueError("limit must be >= 1")
        self.limit = min(self.limit, MAX_LIMIT)


@dataclass(slots=True)
class Pagination:
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


@dataclass(slots=True)
class TicketPage:
    items: list[Ticket] = field(default_factory=list)
    pagination: Pagination | None = None


def parse_ticket_query(
    *,
    status: str | Sequence[str] | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    page: Any = None,
    limit: Any = None,
) -> TicketQuery:
    """Build a :class:`TicketQuery` from raw query-string values.

    ``status`` may be a single comma separated string or repeated values.
    Unknown status values raise ``TicketValidationError``; unknown sort
    settings and unusable page/limit values fall back to the defaults.
    """

    return TicketQuery(
        statuses=_parse_statuses(status),
        sort_by=_parse_enum(SortField, sort_by, SortField.UPDATED_AT),
        sort_order=_parse_enum(SortOrder, sort_order.lower() if sort_order else None, SortOrder.DESC),
        page=_parse_positive_int(page, DEFAULT_PAGE),
        limit=min(_parse_positive_int(limit, DEFAULT_LIMIT), MAX_LIMIT),
    )


def list_page(tickets: Iterable[Ticket], query: TicketQuery) -> TicketPage:
    """Filter, sort and slice ``tickets`` in memory. Never mutates its input."""

    selected = [ticket for ticket in tickets if query.statuses is None or ticket.status in query.statuses]
    ordered = sort_tickets(selected, query.sort_by, query.sort_order)

    total = len(ordered)
    total_pages = math.ceil(total / query.limit)
    offset = (query.page - 1) * query.limit
    return TicketPage(
        items=ordered[offset : offset + query.limit],
        pagination=Pagination(
            page=query.page,
            limit=query.limit,
            total=total,
            total_pages=total_pages,
            has_next=query.page < total_pages,
            has_prev=query.page > 1,
        ),
    )


def sort_tickets(tickets: Sequence[Ticket], sort_by: SortField, sort_order: SortOrder) -> list[Ticket]:
    reverse = sort_order is SortOrder.DESC
    if sort_by is SortField.STATUS:
        return sorted(tickets, key=lambda ticket: status_ordinal(ticket.status), reverse=reverse)
    if sort_by is SortField.CREATED_AT:
        return sorted(tickets, key=lambda ticket: ticket.created_at, reverse=reverse)
    return sorted(tickets, key=lambda ticket: ticket.updated_at, reverse=reverse)


def _parse_statuses(raw: str | Sequence[str] | None) -> frozenset[TicketStatus] | None:
    if not raw:
        return None
    values = [raw] if isinstance(raw, str) else list(raw)
    tokens = [token.strip().lower() for value in values for token in str(value).split(",") if token.strip()]
    if not tokens:
        return None

    valid = {status.value for status in STATUS_ORDER}
    invalid = [token for token in tokens if token not in valid]
    if invalid:
        message = (
            f"Invalid status value(s): {', '.join(invalid)}. "
            f"Valid: {', '.join(status.value for status in STATUS_ORDER)}"
        )
        raise TicketValidationError(message, [{"field": "status", "message": message}])
    return frozenset(TicketStatus(token) for token in tokens)


def _parse_enum(enum_type: type[Enum], raw: str | None, default: Any) -> Any:
    if not raw:
        return default
    try:
        return enum_type(raw)
    except ValueError:
        return default


def _parse_positive_int(raw: Any, default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        parsed = int(str(raw).strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default

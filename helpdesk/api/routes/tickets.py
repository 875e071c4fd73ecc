from __future__ import annotations

import re
from typing import Any

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from helpdesk.dependencies.tickets import TicketServiceDep
from helpdesk.tickets.errors import TicketNotFoundError, TicketValidationError
from helpdesk.tickets.models import DESCRIPTION_MAX_LENGTH, TITLE_MAX_LENGTH, Ticket
from helpdesk.tickets.query import Pagination, parse_ticket_query
from helpdesk.tickets.state import TicketStatus

router = APIRouter(prefix="/api/tickets", tags=["tickets"])

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^[+]?[\d\s\-()]{7,20}$")


def _check_email(value: str | None) -> str | None:
    if value is not None and not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email format")
    return value


def _check_phone(value: str | None) -> str | None:
    if not value:
        return None
    if not PHONE_PATTERN.match(value):
        raise ValueError("Invalid phone number format")
    return value


class ContactCreateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=50)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        return _check_email(value)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        return _check_phone(value)


class ContactUpdateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = Field(default=None, min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=50)

    @field_validator("name", "email")
    @classmethod
    def reject_null(cls, value: str | None) -> str:
        if value is None:
            raise ValueError("may be omitted but not cleared")
        return value

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        return _check_email(value)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        return _check_phone(value)


class TicketCreateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str = Field(..., min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    contact: ContactCreateRequest


class TicketUpdateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str | None = Field(default=None, min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str | None = Field(default=None, min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    contact: ContactUpdateRequest | None = None

    def ensure_payload(self) -> None:
        if self.title is None and self.description is None and self.contact is None:
            message = "No fields provided for update"
            raise TicketValidationError(message, [{"field": "body", "message": message}])

    def contact_changes(self) -> dict[str, Any] | None:
        if self.contact is None:
            return None
        return self.contact.model_dump(exclude_unset=True)


class TicketStatusChangeRequest(BaseModel):
    status: str = Field(..., min_length=1)
    position: int | None = None


class TicketReorderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    column: str = Field(..., min_length=1)
    ordered_ids: list[str] = Field(..., alias="orderedIds")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContactResponse(_CamelModel):
    name: str
    email: str
    phone: str | None = None


class TicketResponse(_CamelModel):
    id: str
    title: str
    description: str
    contact: ContactResponse
    status: TicketStatus
    position: int | None = None
    created_at: str
    updated_at: str


class PaginationResponse(_CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class TicketEnvelope(_CamelModel):
    success: bool = True
    data: TicketResponse


class TicketMessageEnvelope(TicketEnvelope):
    message: str


class TicketListEnvelope(_CamelModel):
    success: bool = True
    data: list[TicketResponse]
    pagination: PaginationResponse


class MessageEnvelope(_CamelModel):
    success: bool = True
    message: str


def _to_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse(
        id=ticket.id,
        title=ticket.title,
        description=ticket.description,
        contact=ContactResponse(**ticket.contact.to_dict()),
        status=ticket.status,
        position=ticket.position,
        created_at=ticket.created_at.isoformat(),
        updated_at=ticket.updated_at.isoformat(),
    )


def _to_pagination(pagination: Pagination) -> PaginationResponse:
    return PaginationResponse(
        page=pagination.page,
        limit=pagination.limit,
        total=pagination.total,
        total_pages=pagination.total_pages,
        has_next=pagination.has_next,
        has_prev=pagination.has_prev,
    )


@router.get("", response_model=TicketListEnvelope)
async def list_tickets(
    service: TicketServiceDep,
    status_filter: list[str] | None = Query(default=None, alias="status"),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: str | None = Query(default=None, alias="sortOrder"),
    page: str | None = Query(default=None),
    limit: str | None = Query(default=None),
) -> TicketListEnvelope:
    query = parse_ticket_query(status=status_filter, sort_by=sort_by, sort_order=sort_order, page=page, limit=limit)
    result = await service.list_tickets(query)
    return TicketListEnvelope(
        data=[_to_response(ticket) for ticket in result.items],
        pagination=_to_pagination(result.pagination),
    )


@router.post("", response_model=TicketMessageEnvelope, status_code=status.HTTP_201_CREATED)
async def create_ticket(payload: TicketCreateRequest, service: TicketServiceDep) -> TicketMessageEnvelope:
    ticket = await service.create_ticket(
        title=payload.title,
        description=payload.description,
        contact=payload.contact.model_dump(),
    )
    return TicketMessageEnvelope(message="Ticket created successfully", data=_to_response(ticket))


@router.patch("/reorder", response_model=MessageEnvelope)
async def reorder_tickets(payload: TicketReorderRequest, service: TicketServiceDep) -> MessageEnvelope:
    await service.reorder_column(payload.column, payload.ordered_ids)
    return MessageEnvelope(message="Tickets reordered successfully")


@router.get("/{ticket_id}", response_model=TicketEnvelope)
async def get_ticket(ticket_id: str, service: TicketServiceDep) -> TicketEnvelope:
    ticket = await service.get_ticket(ticket_id)
    if ticket is None:
        raise TicketNotFoundError(ticket_id)
    return TicketEnvelope(data=_to_response(ticket))


@router.put("/{ticket_id}", response_model=TicketMessageEnvelope)
async def update_ticket(
    ticket_id: str,
    payload: TicketUpdateRequest,
    service: TicketServiceDep,
) -> TicketMessageEnvelope:
    payload.ensure_payload()
    ticket = await service.update_ticket(
        ticket_id,
        title=payload.title,
        description=payload.description,
        contact=payload.contact_changes(),
    )
    if ticket is None:
        raise TicketNotFoundError(ticket_id)
    return TicketMessageEnvelope(message="Ticket updated successfully", data=_to_response(ticket))


@router.patch("/{ticket_id}/status", response_model=TicketMessageEnvelope)
async def change_ticket_status(
    ticket_id: str,
    payload: TicketStatusChangeRequest,
    service: TicketServiceDep,
) -> TicketMessageEnvelope:
    ticket = await service.change_status(ticket_id, new_status=payload.status, position=payload.position)
    if ticket is None:
        raise TicketNotFoundError(ticket_id)
    return TicketMessageEnvelope(message=f"Ticket status updated to '{ticket.status}'", data=_to_response(ticket))

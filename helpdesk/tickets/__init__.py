"""Ticket domain models, engines and services."""

from .errors import (
    InvalidStatusError,
    InvalidStatusTransitionError,
    OperationNotAllowedError,
    TicketError,
    TicketNotFoundError,
    TicketValidationError,
)
from .models import Contact, ReorderResult, Ticket
from .ordering import POSITION_GAP, PositionGapExhaustedError
from .query import TicketPage, TicketQuery
from .service import PositionInitResult, TicketService
from .state import TicketStateMachine, TicketStatus
from .store import JsonFileTicketStore, MemoryTicketStore, TicketStore

__all__ = [
    "Contact",
    "InvalidStatusError",
    "InvalidStatusTransitionError",
    "JsonFileTicketStore",
    "MemoryTicketStore",
    "OperationNotAllowedError",
    "POSITION_GAP",
    "PositionGapExhaustedError",
    "PositionInitResult",
    "ReorderResult",
    "Ticket",
    "TicketError",
    "TicketNotFoundError",
    "TicketPage",
    "TicketQuery",
    "TicketService",
    "TicketStateMachine",
    "TicketStatus",
    "TicketStore",
    "TicketValidationError",
]

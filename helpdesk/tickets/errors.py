"""Typed errors raised by the ticket domain and service layer."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence


class TicketError(RuntimeError):
    """Base error carrying a machine readable ``code`` and structured details."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] | None = dict(details) if details is not None else None


class TicketValidationError(TicketError):
    """Raised when ticket input breaks a field constraint."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, fields: Sequence[Mapping[str, str]] | None = None) -> None:
        super().__init__(message, details={"fields": [dict(field) for field in fields or ()]})
        self.fields = list(fields or ())

    @classmethod
    def from_fields(cls, fields: Sequence[Mapping[str, str]]) -> "TicketValidationError":
        return cls("; ".join(field["message"] for field in fields), fields)


class TicketNotFoundError(TicketError):
    """Raised at the HTTP boundary when a ticket lookup came back empty."""

    code = "TICKET_NOT_FOUND"

    def __init__(self, ticket_id: str) -> None:
        super().__init__(
            f"Ticket with ID '{ticket_id}' not found",
            details={"resource": "Ticket", "identifier": ticket_id},
        )
        self.ticket_id = ticket_id


class InvalidStatusError(TicketError):
    """Raised when a status value is outside the ticket status enum."""

    code = "INVALID_STATUS"

    def __init__(self, status: Any, valid_statuses: Iterable[str]) -> None:
        valid = list(valid_statuses)
        super().__init__(
            f"Invalid status '{status}'. Must be one of: {', '.join(valid)}",
            details={"status": status, "validStatuses": valid},
        )
        self.status = status
        self.valid_statuses = valid


class InvalidStatusTransitionError(TicketError):
    """Raised when the transition table has no edge for the requested move."""

    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current_status: str, target_status: str, allowed_transitions: Iterable[str] = ()) -> None:
        allowed_list = list(allowed_transitions)
        allowed = ", ".join(allowed_list) if allowed_list else "none (final state)"
        super().__init__(
            f"Cannot transition from '{current_status}' to '{target_status}'. Allowed transitions: {allowed}",
            details={
                "currentStatus": current_status,
                "targetStatus": target_status,
                "allowedTransitions": allowed_list,
            },
        )
        self.current_status = current_status
        self.target_status = target_status
        self.allowed_transitions = allowed_list


class OperationNotAllowedError(TicketError):
    """Reserved for operations refused because of the ticket's current state."""

    code = "OPERATION_NOT_ALLOWED"

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(
            f"Operation '{operation}' not allowed: {reason}",
            details={"operation": operation, "reason": reason},
        )

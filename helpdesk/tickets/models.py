from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

from .errors import TicketValidationError
from .state import TicketStateMachine, TicketStatus

TITLE_MAX_LENGTH = 255
DESCRIPTION_MAX_LENGTH = 2000


def utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class Contact:
    """Person to reach about a ticket."""

    name: str = ""
    email: str = ""
    phone: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "Contact":
        data = data or {}
        phone = _strip(data.get("phone"))
        return cls(
            name=_strip(data.get("name")) or "",
            email=_strip(data.get("email")) or "",
            phone=phone or None,
        )

    def merged(self, changes: Mapping[str, Any]) -> "Contact":
        """Apply a partial update; a null name or email keeps the current value, a null phone clears it."""

        name = changes.get("name")
        email = changes.get("email")
        return Contact(
            name=self.name if name is None else name,
            email=self.email if email is None else email,
            phone=changes.get("phone", self.phone) or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "email": self.email, "phone": self.phone}


@dataclass(slots=True)
class Ticket:
    """Aggregate representing a support ticket entry."""

    id: str
    title: str
    description: str
    contact: Contact
    status: TicketStatus
    created_at: datetime
    updated_at: datetime
    position: int | None = None

    @classmethod
    def create(cls, title: str | None, description: str | None, contact: Mapping[str, Any] | None = None) -> "Ticket":
        """Build a new ``pending`` ticket, trimming and validating its text fields."""

        clean_title = validate_title(title)
        clean_description = validate_description(description)
        now = utcnow()
        return cls(
            id=str(uuid.uuid4()),
            title=clean_title,
            description=clean_description,
            contact=Contact.from_mapping(contact),
            status=TicketStateMachine.initial_state(),
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def reconstruct(cls, data: Mapping[str, Any]) -> "Ticket":
        """Rebuild a ticket from a persisted record without validating it."""

        contact = data.get("contact") or {}
        position = data.get("position")
        return cls(
            id=str(data["id"]),
            title=data["title"],
            description=data["description"],
            contact=Contact(
                name=contact.get("name") or "",
                email=contact.get("email") or "",
                phone=contact.get("phone") or None,
            ),
            status=TicketStatus(data["status"]),
            created_at=ensure_datetime(data["createdAt"]),
            updated_at=ensure_datetime(data["updatedAt"]),
            position=int(position) if position is not None else None,
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "contact": self.contact.to_dict(),
            "status": self.status.value,
            "position": self.position,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    def is_final_state(self) -> bool:
        return TicketStateMachine.is_final(self.status)

    def allowed_transitions(self) -> frozenset[TicketStatus]:
        return TicketStateMachine.allowed_transitions(self.status)

    def can_transition_to(self, target: TicketStatus) -> bool:
        return TicketStateMachine.can_transition(self.status, target)


@dataclass(slots=True)
class ReorderResult:
    """Positions applied by a column reorder and the ids it skipped."""

    column: TicketStatus
    applied: list[tuple[str, int]] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def validate_title(title: str | None) -> str:
    cleaned = _strip(title)
    if not cleaned:
        raise TicketValidationError("Title is required", [{"field": "title", "message": "Title is required"}])
    if len(cleaned) > TITLE_MAX_LENGTH:
        message = f"Title must be at most {TITLE_MAX_LENGTH} characters"
        raise TicketValidationError(message, [{"field": "title", "message": message}])
    return cleaned


def validate_description(description: str | None) -> str:
    cleaned = _strip(description)
    if not cleaned:
        message = "Description is required"
        raise TicketValidationError(message, [{"field": "description", "message": message}])
    if len(cleaned) > DESCRIPTION_MAX_LENGTH:
        message = f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters"
        raise TicketValidationError(message, [{"field": "description", "message": message}])
    return cleaned


def ensure_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def _strip(value: Any) -> str | None:
    if value is None:
        return None
    return str(value).strip()

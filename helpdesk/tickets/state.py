from __future__ import annotations

from enum import Enum
from typing import Any, Mapping

from .errors import InvalidStatusError, InvalidStatusTransitionError


class TicketStatus(str, Enum):
    """Supported states for a ticket's lifecycle."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    RESOLVED = "resolved"
    REJECTED = "rejected"

    def __str__(self) -> str:
        return self.value


# Ordinal used when sorting by status; not lexical.
STATUS_ORDER: tuple[TicketStatus, ...] = (
    TicketStatus.PENDING,
    TicketStatus.ACCEPTED,
    TicketStatus.RESOLVED,
    TicketStatus.REJECTED,
)


class TicketStateMachine:
    """Validate ticket lifecycle transitions against a closed table."""

    _TRANSITIONS: Mapping[TicketStatus, frozenset[TicketStatus]] = {
        TicketStatus.PENDING: frozenset({TicketStatus.ACCEPTED, TicketStatus.REJECTED}),
        TicketStatus.ACCEPTED: frozenset({TicketStatus.RESOLVED, TicketStatus.REJECTED}),
        TicketStatus.RESOLVED: frozenset(),
        TicketStatus.REJECTED: frozenset(),
    }

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return TicketStatus.PENDING

    @classmethod
    def allowed_transitions(cls, current: TicketStatus) -> frozenset[TicketStatus]:
        return cls._TRANSITIONS[current]

    @classmethod
    def can_transition(cls, current: TicketStatus, new: TicketStatus) -> bool:
        # No self loops: a same-status request is not a transition.
        return new in cls._TRANSITIONS[current]

    @classmethod
    def is_final(cls, status: TicketStatus) -> bool:
        return not cls._TRANSITIONS[status]

    @classmethod
    def assert_transition(cls, current: TicketStatus, new: TicketStatus) -> None:
        if not cls.can_transition(current, new):
            raise InvalidStatusTransitionError(
                current.value,
                new.value,
                [status.value for status in STATUS_ORDER if status in cls._TRANSITIONS[current]],
            )


def parse_status(value: Any) -> TicketStatus:
    """Coerce ``value`` into a :class:`TicketStatus` or raise ``InvalidStatusError``."""

    if isinstance(value, TicketStatus):
        return value
    try:
        return TicketStatus(value)
    except ValueError:
        raise InvalidStatusError(value, [status.value for status in STATUS_ORDER]) from None


def status_ordinal(status: TicketStatus) -> int:
    return STATUS_ORDER.index(status)


_missing = [status for status in TicketStatus if status not in TicketStateMachine._TRANSITIONS]
if _missing:  # pragma: no cover - guards edits to the table
    raise RuntimeError(f"Transition table is missing entries for: {', '.join(map(str, _missing))}")
del _missing

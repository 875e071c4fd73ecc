"""Kanban board client for the helpdesk API."""

from .client import APIError, HelpdeskAPIClient
from .kanban import KanbanBoard, group_tickets_by_status, is_valid_move, transition_error_message

__all__ = [
    "APIError",
    "HelpdeskAPIClient",
    "KanbanBoard",
    "group_tickets_by_status",
    "is_valid_move",
    "transition_error_message",
]

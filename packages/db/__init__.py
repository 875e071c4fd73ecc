"""Database models and utilities."""

from .models import TicketTable

__all__ = ["TicketTable"]

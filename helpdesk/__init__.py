"""Helpdesk ticket tracker: ticket lifecycle, Kanban ordering and the HTTP API."""

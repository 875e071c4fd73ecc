from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

import httpx

from helpdesk.tickets.models import Ticket


class APIError(RuntimeError):
    """Error envelope returned by the helpdesk API."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.details = details

    def __str__(self) -> str:
        prefix = f"[{self.status_code}] " if self.status_code is not None else ""
        return f"{prefix}{super().__str__()}"


def _error_from_response(response: httpx.Response) -> APIError:
    try:
        data = response.json()
    except ValueError:
        return APIError(response.text or "Unknown server error", status_code=response.status_code)

    if isinstance(data, Mapping):
        message = data.get("message") or data.get("detail")
        return APIError(
            str(message or "Request failed"),
            status_code=response.status_code,
            error_code=data.get("errorCode"),
            details=data.get("details"),
        )
    return APIError("Request failed", status_code=response.status_code)


@dataclass(slots=True)
class TicketListResult:
    tickets: list[Ticket]
    pagination: Mapping[str, Any]


@dataclass(slots=True)
class HelpdeskAPIClient:
    """Small synchronous client for the ticket API used by the board."""

    base_url: str
    timeout: float = 10.0
    transport: httpx.BaseTransport | None = None

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = self._build_url(path)
        headers: dict[str, str] = {"Accept": "application/json"}
        headers.update(kwargs.pop("headers", {}))

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:  # pragma: no cover - network failures are exercised manually
            raise APIError(f"API request failed: {exc}") from exc

        if response.status_code >= 400:
            raise _error_from_response(response)
        if not response.content:
            return None
        return response.json()

    def _build_url(self, path: str) -> str:
        normalized = path if path.startswith("/") else f"/{path}"
        return f"{self.base_url.rstrip('/')}{normalized}"

    def list_tickets(
        self,
        *,
        statuses: Sequence[str] | None = None,
        sort_by: str | None = None,
        sort_order: str | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> TicketListResult:
        params: dict[str, Any] = {}
        if statuses:
            params["status"] = ",".join(statuses)
        if sort_by:
            params["sortBy"] = sort_by
        if sort_order:
            params["sortOrder"] = sort_order
        if page is not None:
            params["page"] = page
        if limit is not None:
            params["limit"] = limit
        body = self._request("GET", "/api/tickets", params=params)
        return TicketListResult(
            tickets=[Ticket.reconstruct(item) for item in body.get("data", [])],
            pagination=body.get("pagination") or {},
        )

    def fetch_all_tickets(self, *, page_size: int = 100) -> list[Ticket]:
        """Walk every page of the list endpoint."""

        tickets: list[Ticket] = []
        page = 1
        while True:
            result = self.list_tickets(page=page, limit=page_size)
            tickets.extend(result.tickets)
            if not result.pagination.get("hasNext"):
                return tickets
            page += 1

    def get_ticket(self, ticket_id: str) -> Ticket:
        body = self._request("GET", f"/api/tickets/{ticket_id}")
        return Ticket.reconstruct(body["data"])

    def create_ticket(self, *, title: str, description: str, contact: Mapping[str, Any]) -> Ticket:
        payload = {"title": title, "description": description, "contact": dict(contact)}
        body = self._request("POST", "/api/tickets", json=payload)
        return Ticket.reconstruct(body["data"])

    def update_ticket(
        self,
        ticket_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        contact: Mapping[str, Any] | None = None,
    ) -> Ticket:
        payload: dict[str, Any] = {}
        if title is not None:
            payload["title"] = title
        if description is not None:
            payload["description"] = description
        if contact is not None:
            payload["contact"] = dict(contact)
        body = self._request("PUT", f"/api/tickets/{ticket_id}", json=payload)
        return Ticket.reconstruct(body["data"])

    def update_ticket_status(self, ticket_id: str, status: str, position: int | None = None) -> Ticket:
        payload: dict[str, Any] = {"status": status}
        if position is not None:
            payload["position"] = position
        body = self._request("PATCH", f"/api/tickets/{ticket_id}/status", json=payload)
        return Ticket.reconstruct(body["data"])

    def reorder_tickets(self, column: str, ordered_ids: Sequence[str]) -> None:
        self._request("PATCH", "/api/tickets/reorder", json={"column": column, "orderedIds": list(ordered_ids)})

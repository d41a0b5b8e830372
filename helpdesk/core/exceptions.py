"""Errors raised by the ticket lifecycle engine and its collaborators."""

from __future__ import annotations

from fastapi import status


class TicketingError(Exception):
    """Base error; carries the HTTP status the API layer renders it with."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(TicketingError):
    """Ticket or user id does not resolve, or resolves to a deleted record."""

    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(TicketingError):
    """Actor's role or relationship to the ticket does not permit the action."""

    status_code = status.HTTP_403_FORBIDDEN


class InvalidOperationError(TicketingError):
    """Actor is authorized but the action's preconditions are not met."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidTransitionError(TicketingError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, current, requested):
        super().__init__(
            f"Cannot change ticket status from {current.value} to {requested.value}"
        )
        self.current = current
        self.requested = requested


class ConflictError(TicketingError):
    """Ticket was changed by another request; re-read and retry."""

    status_code = status.HTTP_409_CONFLICT

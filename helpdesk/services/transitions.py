"""Ticket status state machine."""

from __future__ import annotations

from helpdesk.models.ticket import TicketStatus

# Current status -> statuses it may move to. CLOSED is terminal.
ALLOWED_TRANSITIONS: dict[TicketStatus, frozenset[TicketStatus]] = {
    TicketStatus.OPEN: frozenset({TicketStatus.IN_PROGRESS, TicketStatus.CLOSED}),
    TicketStatus.IN_PROGRESS: frozenset({TicketStatus.RESOLVED, TicketStatus.OPEN}),
    TicketStatus.RESOLVED: frozenset({TicketStatus.CLOSED, TicketStatus.IN_PROGRESS}),
    TicketStatus.CLOSED: frozenset(),
}

INITIAL_STATUS = TicketStatus.OPEN


def can_transition(current: TicketStatus, requested: TicketStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS[current]


def is_terminal(status: TicketStatus) -> bool:
    return not ALLOWED_TRANSITIONS[status]

"""SLA deadlines by ticket priority."""

from __future__ import annotations

from datetime import datetime, timedelta

from helpdesk.models.ticket import Ticket, TicketPriority, TicketStatus

# Fixed policy. Not configurable.
SLA_OFFSETS: dict[TicketPriority, timedelta] = {
    TicketPriority.CRITICAL: timedelta(hours=4),
    TicketPriority.HIGH: timedelta(hours=24),
    TicketPriority.MEDIUM: timedelta(days=3),
    TicketPriority.LOW: timedelta(days=7),
}

# Statuses after which the deadline no longer matters
SLA_STOPPED_STATUSES = frozenset({TicketStatus.RESOLVED, TicketStatus.CLOSED})


def compute_deadline(priority: TicketPriority, now: datetime) -> datetime:
    """Deadline for a ticket whose SLA window starts at ``now``.

    Called on creation and on every priority change; a priority change
    restarts the window from the moment of the change.
    """
    return now + SLA_OFFSETS[TicketPriority(priority)]


def is_sla_breached(ticket: Ticket, now: datetime) -> bool:
    return ticket.sla_deadline < now and ticket.status not in SLA_STOPPED_STATUSES

"""Who may do what to a ticket.

Every predicate takes anything with ``id`` and ``role`` (a ``User`` row or a
``UserIdentity``) and returns a bool. The lifecycle engine turns a False into
the matching error; nothing here raises or touches the database.
"""

from __future__ import annotations

from helpdesk.models.ticket import Ticket
from helpdesk.models.user import UserRole

STAFF_ROLES = frozenset({UserRole.AGENT, UserRole.ADMIN})


def is_agent_or_admin(user) -> bool:
    return user.role in STAFF_ROLES


def can_assign_tickets(user) -> bool:
    return user.role in STAFF_ROLES


def can_modify_ticket(user, ticket: Ticket) -> bool:
    """Admins modify anything, agents unassigned tickets or their own, customers their own."""
    if user.role == UserRole.ADMIN:
        return True
    if user.role == UserRole.AGENT:
        return ticket.assigned_to is None or ticket.assigned_to == user.id
    return ticket.created_by == user.id


def can_view_ticket(user, ticket: Ticket) -> bool:
    if user.role in STAFF_ROLES:
        return True
    return ticket.created_by == user.id


def can_delete_tickets(user) -> bool:
    return user.role == UserRole.ADMIN

"""Ticket lifecycle: status workflow, assignment, priority and SLA.

Each operation loads one ticket, checks authorization and legality, changes
the detached record and writes it back through the store in one transaction.
A rejected operation raises before anything is written.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from helpdesk.core.clock import utcnow
from helpdesk.core.exceptions import (
    ForbiddenError,
    InvalidOperationError,
    InvalidTransitionError,
)
from helpdesk.models import (
    Ticket,
    TicketHistory,
    TicketHistoryAction,
    TicketPriority,
    TicketStatus,
)
from helpdesk.schemas.user import UserIdentity
from helpdesk.services import permissions
from helpdesk.services.sla import SLA_STOPPED_STATUSES, compute_deadline, is_sla_breached
from helpdesk.services.ticket_store import TicketStore
from helpdesk.services.transitions import INITIAL_STATUS, can_transition
from helpdesk.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)


class TicketLifecycleService:
    def __init__(
        self,
        store: TicketStore,
        directory: UserDirectory,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.directory = directory
        self.clock = clock

    # === CREATE / READ ===

    def create_ticket(
        self,
        title: str,
        description: str,
        priority: TicketPriority,
        creator_id: UUID,
    ) -> Ticket:
        creator = self.directory.resolve(creator_id)
        now = self.clock()
        priority = TicketPriority(priority)
        ticket = Ticket(
            title=title,
            description=description,
            priority=priority,
            status=INITIAL_STATUS,
            created_by=creator.id,
            assigned_to=None,
            sla_deadline=compute_deadline(priority, now),
        )
        history = [
            self._history(ticket, creator, TicketHistoryAction.CREATED, now,
                          field_name="priority", new_value=priority.value),
        ]
        ticket = self.store.add(ticket, history)
        logger.info(f"Ticket {ticket.id} created by {creator.id} with priority {priority.value}")
        return ticket

    def get_ticket(self, ticket_id: UUID, actor_id: UUID) -> Ticket:
        ticket = self.store.get(ticket_id)
        actor = self.directory.resolve(actor_id)
        if not permissions.can_view_ticket(actor, ticket):
            raise ForbiddenError("Access to ticket denied")
        return ticket

    def list_tickets(
        self,
        actor_id: UUID,
        status: Optional[TicketStatus] = None,
    ) -> List[Ticket]:
        """Every ticket for staff; customers only see tickets they created."""
        actor = self.directory.resolve(actor_id)
        conditions = []
        if not permissions.is_agent_or_admin(actor):
            conditions.append(Ticket.created_by == actor.id)
        if status is not None:
            conditions.append(Ticket.status == TicketStatus(status))
        return self.store.scan(*conditions, order_by=Ticket.created_at.desc())

    def list_my_tickets(self, actor_id: UUID) -> List[Ticket]:
        actor = self.directory.resolve(actor_id)
        return self.store.scan(
            Ticket.created_by == actor.id, order_by=Ticket.created_at.desc()
        )

    def list_assigned_tickets(self, actor_id: UUID) -> List[Ticket]:
        actor = self.directory.resolve(actor_id)
        if not permissions.is_agent_or_admin(actor):
            raise ForbiddenError("Only agents can have tickets assigned")
        return self.store.scan(
            Ticket.assigned_to == actor.id, order_by=Ticket.created_at.desc()
        )

    def ticket_history(self, ticket_id: UUID, actor_id: UUID) -> List[TicketHistory]:
        ticket = self.store.get(ticket_id)
        actor = self.directory.resolve(actor_id)
        if not permissions.is_agent_or_admin(actor):
            raise ForbiddenError("Ticket history is visible to staff only")
        return self.store.history(ticket.id)

    # === STATUS WORKFLOW ===

    def update_status(
        self,
        ticket_id: UUID,
        new_status: TicketStatus,
        actor_id: UUID,
    ) -> Ticket:
        ticket = self.store.get(ticket_id)
        actor = self.directory.resolve(actor_id)
        new_status = TicketStatus(new_status)
        current = ticket.status

        if not can_transition(current, new_status):
            logger.warning(
                f"Rejected transition {current.value} -> {new_status.value} "
                f"on ticket {ticket.id} by {actor.id}"
            )
            raise InvalidTransitionError(current, new_status)
        if new_status == TicketStatus.RESOLVED and not permissions.is_agent_or_admin(actor):
            logger.warning(f"User {actor.id} ({actor.role.value}) may not resolve ticket {ticket.id}")
            raise ForbiddenError("Only agents can resolve tickets")
        if new_status == TicketStatus.IN_PROGRESS and ticket.assigned_to is None:
            raise InvalidOperationError(
                "Ticket must be assigned before it can be moved to in progress"
            )

        now = self.clock()
        history = [self._enter_status(ticket, new_status, actor, now)]
        ticket = self.store.save(ticket, history)
        logger.info(
            f"Ticket {ticket.id} status {current.value} -> {new_status.value} by {actor.id}"
        )
        return ticket

    # === ASSIGNMENT ===

    def assign_ticket(
        self,
        ticket_id: UUID,
        agent_id: UUID,
        requester_id: UUID,
    ) -> Ticket:
        """Assign to an agent or admin; an open ticket moves to in progress."""
        ticket = self.store.get(ticket_id)
        requester = self.directory.resolve(requester_id)
        agent = self.directory.resolve(agent_id)

        if not permissions.is_agent_or_admin(agent):
            logger.warning(f"Rejected assigning ticket {ticket.id} to non-agent {agent.id}")
            raise InvalidOperationError("User is not an agent")
        if not permissions.can_assign_tickets(requester):
            logger.warning(f"User {requester.id} ({requester.role.value}) may not assign tickets")
            raise ForbiddenError("Only agents and admins can assign tickets")

        now = self.clock()
        history = []
        previous = ticket.assigned_to
        if previous != agent.id:
            action = (
                TicketHistoryAction.ASSIGNED if previous is None
                else TicketHistoryAction.REASSIGNED
            )
            ticket.assigned_to = agent.id
            history.append(self._history(
                ticket, requester, action, now, field_name="assigned_to",
                old_value=str(previous) if previous else None, new_value=str(agent.id),
            ))
        if ticket.status == TicketStatus.OPEN:
            history.append(
                self._enter_status(ticket, TicketStatus.IN_PROGRESS, requester, now)
            )

        ticket = self.store.save(ticket, history)
        logger.info(f"Ticket {ticket.id} assigned to {agent.id} by {requester.id}")
        return ticket

    def unassign_ticket(self, ticket_id: UUID, requester_id: UUID) -> Ticket:
        """Clear the assignee; an in-progress ticket goes back to open."""
        ticket = self.store.get(ticket_id)
        requester = self.directory.resolve(requester_id)

        if not permissions.is_agent_or_admin(requester):
            raise ForbiddenError("Only agents and admins can unassign tickets")
        if ticket.assigned_to is None:
            raise InvalidOperationError("Ticket is not assigned to anyone")

        now = self.clock()
        previous = ticket.assigned_to
        ticket.assigned_to = None
        history = [self._history(
            ticket, requester, TicketHistoryAction.UNASSIGNED, now,
            field_name="assigned_to", old_value=str(previous),
        )]
        if ticket.status == TicketStatus.IN_PROGRESS:
            history.append(self._enter_status(ticket, TicketStatus.OPEN, requester, now))

        ticket = self.store.save(ticket, history)
        logger.info(f"Ticket {ticket.id} unassigned from {previous} by {requester.id}")
        return ticket

    # === PRIORITY / DETAILS ===

    def update_priority(
        self,
        ticket_id: UUID,
        new_priority: TicketPriority,
        requester_id: UUID,
    ) -> Ticket:
        """Change priority; the SLA window restarts from now."""
        ticket = self.store.get(ticket_id)
        requester = self.directory.resolve(requester_id)
        new_priority = TicketPriority(new_priority)

        if not permissions.can_modify_ticket(requester, ticket):
            logger.warning(f"User {requester.id} may not change priority of ticket {ticket.id}")
            raise ForbiddenError("Not authorized to modify this ticket")

        now = self.clock()
        old_priority = ticket.priority
        ticket.priority = new_priority
        ticket.sla_deadline = compute_deadline(new_priority, now)
        history = [self._history(
            ticket, requester, TicketHistoryAction.PRIORITY_CHANGED, now,
            field_name="priority", old_value=old_priority.value, new_value=new_priority.value,
        )]

        ticket = self.store.save(ticket, history)
        logger.info(
            f"Ticket {ticket.id} priority {old_priority.value} -> {new_priority.value}, "
            f"SLA deadline {ticket.sla_deadline.isoformat()}"
        )
        return ticket

    def update_ticket_details(
        self,
        ticket_id: UUID,
        actor_id: UUID,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Ticket:
        ticket = self.store.get(ticket_id)
        actor = self.directory.resolve(actor_id)
        if not permissions.can_modify_ticket(actor, ticket):
            raise ForbiddenError("Not authorized to modify this ticket")

        now = self.clock()
        history = []
        if title is not None and title != ticket.title:
            history.append(self._history(
                ticket, actor, TicketHistoryAction.TITLE_CHANGED, now,
                field_name="title", old_value=ticket.title, new_value=title,
            ))
            ticket.title = title
        if description is not None and description != ticket.description:
            # Text is not copied into the trail
            history.append(self._history(
                ticket, actor, TicketHistoryAction.DESCRIPTION_CHANGED, now,
                field_name="description",
            ))
            ticket.description = description
        if not history:
            return ticket

        ticket = self.store.save(ticket, history)
        logger.info(f"Ticket {ticket.id} details updated by {actor.id}")
        return ticket

    def delete_ticket(self, ticket_id: UUID, actor_id: UUID) -> None:
        """Soft delete. Terminal: the ticket is gone for every later operation."""
        ticket = self.store.get(ticket_id)
        actor = self.directory.resolve(actor_id)
        if not permissions.can_delete_tickets(actor):
            raise ForbiddenError("Only admins can delete tickets")

        now = self.clock()
        ticket.deleted_at = now
        self.store.save(ticket, [self._history(ticket, actor, TicketHistoryAction.DELETED, now)])
        logger.info(f"Ticket {ticket.id} soft deleted by {actor.id}")

    # === SLA ===

    def is_sla_breached(self, ticket: Ticket, now: Optional[datetime] = None) -> bool:
        return is_sla_breached(ticket, now or self.clock())

    def list_sla_breached(self) -> List[Ticket]:
        """Overdue unresolved tickets, most urgent and most overdue first."""
        now = self.clock()
        tickets = self.store.scan(
            Ticket.sla_deadline < now,
            Ticket.status.notin_(list(SLA_STOPPED_STATUSES)),
        )
        return sorted(tickets, key=lambda t: (-t.priority.rank, t.sla_deadline))

    # === helpers ===

    def _enter_status(
        self,
        ticket: Ticket,
        new_status: TicketStatus,
        actor: UserIdentity,
        now: datetime,
    ) -> TicketHistory:
        """Move the record to ``new_status`` and run its entry actions."""
        old_status = ticket.status
        ticket.status = new_status
        if new_status == TicketStatus.RESOLVED:
            ticket.resolved_at = now
        elif new_status == TicketStatus.CLOSED:
            ticket.closed_at = now
        return self._history(
            ticket, actor, TicketHistoryAction.STATUS_CHANGED, now,
            field_name="status", old_value=old_status.value, new_value=new_status.value,
        )

    @staticmethod
    def _history(
        ticket: Ticket,
        actor: UserIdentity,
        action: str,
        now: datetime,
        field_name: Optional[str] = None,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
    ) -> TicketHistory:
        return TicketHistory(
            ticket_id=ticket.id,
            user_id=actor.id,
            action=action,
            field_name=field_name,
            old_value=old_value,
            new_value=new_value,
            created_at=now,
        )

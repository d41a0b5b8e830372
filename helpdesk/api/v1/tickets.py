from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from helpdesk.api.deps import get_current_user, get_ticket_service
from helpdesk.core.exceptions import ForbiddenError
from helpdesk.models import Ticket, TicketStatus
from helpdesk.schemas.ticket import (
    TicketAssign,
    TicketCreate,
    TicketHistoryRead,
    TicketPriorityUpdate,
    TicketRead,
    TicketStatusUpdate,
    TicketUpdate,
)
from helpdesk.schemas.user import UserIdentity
from helpdesk.services import permissions
from helpdesk.services.ticket_lifecycle import TicketLifecycleService

router = APIRouter()


def _to_read(ticket: Ticket, service: TicketLifecycleService) -> TicketRead:
    result = TicketRead.model_validate(ticket)
    result.is_sla_breached = service.is_sla_breached(ticket)
    return result


@router.get(
    "/",
    response_model=List[TicketRead],
    status_code=status.HTTP_200_OK,
)
def list_tickets(
    current_user: UserIdentity = Depends(get_current_user),
    service: TicketLifecycleService = Depends(get_ticket_service),
    status_filter: Optional[TicketStatus] = Query(None, alias="status"),
) -> List[TicketRead]:
    """All tickets for staff, own tickets for customers."""
    tickets = service.list_tickets(current_user.id, status=status_filter)
    return [_to_read(ticket, service) for ticket in tickets]


@router.get(
    "/my-tickets",
    response_model=List[TicketRead],
    status_code=status.HTTP_200_OK,
)
def list_my_tickets(
    current_user: UserIdentity = Depends(get_current_user),
    service: TicketLifecycleService = Depends(get_ticket_service),
) -> List[TicketRead]:
    return [_to_read(ticket, service) for ticket in service.list_my_tickets(current_user.id)]


@router.get(
    "/assigned-to-me",
    response_model=List[TicketRead],
    status_code=status.HTTP_200_OK,
)
def list_assigned_tickets(
    current_user: UserIdentity = Depends(get_current_user),
    service: TicketLifecycleService = Depends(get_ticket_service),
) -> List[TicketRead]:
    tickets = service.list_assigned_tickets(current_user.id)
    return [_to_read(ticket, service) for ticket in tickets]


@router.get(
    "/sla-breached",
    response_model=List[TicketRead],
    status_code=status.HTTP_200_OK,
)
def list_sla_breached(
    current_user: UserIdentity = Depends(get_current_user),
    service: TicketLifecycleService = Depends(get_ticket_service),
) -> List[TicketRead]:
    """Overdue tickets, most urgent first (staff only)."""
    actor = service.directory.resolve(current_user.id)
    if not permissions.is_agent_or_admin(actor):
        raise ForbiddenError("Only agents and admins can monitor SLA breaches")
    return [_to_read(ticket, service) for ticket in service.list_sla_breached()]


@router.post(
    "/",
    response_model=TicketRead,
    status_code=status.HTTP_201_CREATED,
)
def create_ticket(
    ticket_data: TicketCreate,
    current_user: UserIdentity = Depends(get_current_user),
    service: TicketLifecycleService = Depends(get_ticket_service),
) -> TicketRead:
    ticket = service.create_ticket(
        title=ticket_data.title,
        description=ticket_data.description,
        priority=ticket_data.priority,
        creator_id=current_user.id,
    )
    return _to_read(ticket, service)


@router.get(
    "/{ticket_id}",
    response_model=TicketRead,
    status_code=status.HTTP_200_OK,
)
def get_ticket(
    ticket_id: UUID,
    current_user: UserIdentity = Depends(get_current_user),
    service: TicketLifecycleService = Depends(get_ticket_service),
) -> TicketRead:
    return _to_read(service.get_ticket(ticket_id, current_user.id), service)


@router.put(
    "/{ticket_id}",
    response_model=TicketRead,
    status_code=status.HTTP_200_OK,
)
def update_ticket(
    ticket_id: UUID,
    ticket_update: TicketUpdate,
    current_user: UserIdentity = Depends(get_current_user),
    service: TicketLifecycleService = Depends(get_ticket_service),
) -> TicketRead:
    """Update title and description. Workflow fields have their own endpoints."""
    ticket = service.update_ticket_details(
        ticket_id,
        current_user.id,
        title=ticket_update.title,
        description=ticket_update.description,
    )
    return _to_read(ticket, service)


@router.delete(
    "/{ticket_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_ticket(
    ticket_id: UUID,
    current_user: UserIdentity = Depends(get_current_user),
    service: TicketLifecycleService = Depends(get_ticket_service),
) -> Response:
    """Soft delete a ticket (admins only)."""
    service.delete_ticket(ticket_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/{ticket_id}/status",
    response_model=TicketRead,
    status_code=status.HTTP_200_OK,
)
def update_ticket_status(
    ticket_id: UUID,
    payload: TicketStatusUpdate,
    current_user: UserIdentity = Depends(get_current_user),
    service: TicketLifecycleService = Depends(get_ticket_service),
) -> TicketRead:
    """Move a ticket along the workflow: open -> in_progress -> resolved -> closed."""
    ticket = service.update_status(ticket_id, payload.status, current_user.id)
    return _to_read(ticket, service)


@router.put(
    "/{ticket_id}/assign",
    response_model=TicketRead,
    status_code=status.HTTP_200_OK,
)
def assign_ticket(
    ticket_id: UUID,
    payload: TicketAssign,
    current_user: UserIdentity = Depends(get_current_user),
    service: TicketLifecycleService = Depends(get_ticket_service),
) -> TicketRead:
    ticket = service.assign_ticket(ticket_id, payload.agent_id, current_user.id)
    return _to_read(ticket, service)


@router.put(
    "/{ticket_id}/unassign",
    response_model=TicketRead,
    status_code=status.HTTP_200_OK,
)
def unassign_ticket(
    ticket_id: UUID,
    current_user: UserIdentity = Depends(get_current_user),
    service: TicketLifecycleService = Depends(get_ticket_service),
) -> TicketRead:
    return _to_read(service.unassign_ticket(ticket_id, current_user.id), service)


@router.put(
    "/{ticket_id}/priority",
    response_model=TicketRead,
    status_code=status.HTTP_200_OK,
)
def update_ticket_priority(
    ticket_id: UUID,
    payload: TicketPriorityUpdate,
    current_user: UserIdentity = Depends(get_current_user),
    service: TicketLifecycleService = Depends(get_ticket_service),
) -> TicketRead:
    """Change priority and restart the SLA window."""
    ticket = service.update_priority(ticket_id, payload.priority, current_user.id)
    return _to_read(ticket, service)


@router.get(
    "/{ticket_id}/history",
    response_model=List[TicketHistoryRead],
    status_code=status.HTTP_200_OK,
)
def get_ticket_history(
    ticket_id: UUID,
    current_user: UserIdentity = Depends(get_current_user),
    service: TicketLifecycleService = Depends(get_ticket_service),
) -> List[TicketHistoryRead]:
    """Audit trail of a ticket (staff only)."""
    return [
        TicketHistoryRead.model_validate(entry)
        for entry in service.ticket_history(ticket_id, current_user.id)
    ]

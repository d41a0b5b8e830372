from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from helpdesk.core.clock import utcnow


class TicketHistoryAction:
    """Kinds of entries in a ticket's audit trail."""
    CREATED = "created"
    STATUS_CHANGED = "status_changed"
    PRIORITY_CHANGED = "priority_changed"
    ASSIGNED = "assigned"
    UNASSIGNED = "unassigned"
    REASSIGNED = "reassigned"
    TITLE_CHANGED = "title_changed"
    DESCRIPTION_CHANGED = "description_changed"
    DELETED = "deleted"


class TicketHistory(SQLModel, table=True):
    """Represents a history entry for ticket changes (visible only to staff)."""

    __tablename__ = "ticket_history"

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    ticket_id: UUID = Field(foreign_key="tickets.id", index=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)  # actor
    action: str = Field(max_length=50, index=True)
    field_name: Optional[str] = Field(default=None, max_length=50)
    old_value: Optional[str] = Field(default=None, max_length=1000)
    new_value: Optional[str] = Field(default=None, max_length=1000)
    created_at: datetime = Field(default_factory=utcnow, nullable=False, index=True)

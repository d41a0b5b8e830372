from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from helpdesk.core.clock import utcnow


class TicketStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketPriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Higher is more urgent."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    TicketPriority.CRITICAL: 4,
    TicketPriority.HIGH: 3,
    TicketPriority.MEDIUM: 2,
    TicketPriority.LOW: 1,
}


class Ticket(SQLModel, table=True):
    """Represents a support ticket."""

    __tablename__ = "tickets"

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    title: str = Field(max_length=255, index=True)
    description: str = Field(max_length=5000)
    status: TicketStatus = Field(default=TicketStatus.OPEN, index=True)
    priority: TicketPriority = Field(default=TicketPriority.MEDIUM, index=True)
    created_by: UUID = Field(foreign_key="users.id", index=True)
    assigned_to: Optional[UUID] = Field(default=None, foreign_key="users.id", nullable=True, index=True)
    sla_deadline: datetime = Field(nullable=False, index=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False, index=True)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = Field(default=None, index=True)
    # Compared and bumped on every write by TicketStore.save
    version: int = Field(default=1, nullable=False)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

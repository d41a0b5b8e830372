from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from helpdesk.models.ticket import TicketPriority, TicketStatus


class TicketBase(BaseModel):
    title: str = Field(max_length=255, min_length=1)
    description: str = Field(max_length=5000, min_length=1)
    priority: TicketPriority = Field(default=TicketPriority.MEDIUM)


class TicketCreate(TicketBase):
    # created_by is taken from current_user
    pass


class TicketUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=255, min_length=1)
    description: Optional[str] = Field(None, max_length=5000, min_length=1)


class TicketStatusUpdate(BaseModel):
    status: TicketStatus


class TicketAssign(BaseModel):
    agent_id: UUID


class TicketPriorityUpdate(BaseModel):
    priority: TicketPriority


class TicketRead(TicketBase):
    id: UUID
    status: TicketStatus
    created_by: UUID
    assigned_to: Optional[UUID] = None
    sla_deadline: datetime
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    version: int
    # Computed at read time, never stored
    is_sla_breached: bool = False

    model_config = ConfigDict(from_attributes=True)


class TicketHistoryRead(BaseModel):
    id: UUID
    ticket_id: UUID
    user_id: UUID
    action: str
    field_name: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

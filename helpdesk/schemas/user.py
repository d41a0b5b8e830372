from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict

from helpdesk.models.user import UserRole


class UserIdentity(BaseModel):
    """Who is acting: the user directory's answer for an id."""

    id: UUID
    role: UserRole

    model_config = ConfigDict(from_attributes=True, frozen=True)

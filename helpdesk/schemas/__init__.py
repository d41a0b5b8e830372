from .ticket import (
    TicketAssign,
    TicketCreate,
    TicketHistoryRead,
    TicketPriorityUpdate,
    TicketRead,
    TicketStatusUpdate,
    TicketUpdate,
)
from .user import UserIdentity

__all__ = [
    "TicketAssign",
    "TicketCreate",
    "TicketHistoryRead",
    "TicketPriorityUpdate",
    "TicketRead",
    "TicketStatusUpdate",
    "TicketUpdate",
    "UserIdentity",
]

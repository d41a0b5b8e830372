from .ticket import Ticket, TicketPriority, TicketStatus
from .ticket_history import TicketHistory, TicketHistoryAction
from .user import User, UserRole

__all__ = [
    "Ticket",
    "TicketHistory",
    "TicketHistoryAction",
    "TicketPriority",
    "TicketStatus",
    "User",
    "UserRole",
]

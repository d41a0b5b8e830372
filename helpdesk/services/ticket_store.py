"""Durable ticket records with optimistic concurrency.

Tickets leave the store detached from the session: callers change them in
memory and hand them back to ``save``, which only writes if nobody else has
written the row since it was read.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import List
from uuid import UUID

from sqlalchemy import update
from sqlmodel import Session, select

from helpdesk.core.clock import utcnow
from helpdesk.core.exceptions import ConflictError, NotFoundError
from helpdesk.models import Ticket, TicketHistory

logger = logging.getLogger(__name__)

# Columns a write never touches
_IMMUTABLE_FIELDS = {"id", "created_by", "created_at", "version"}


class TicketStore:
    def __init__(self, session: Session, clock: Callable[[], datetime] = utcnow):
        self.session = session
        self.clock = clock

    def get(self, ticket_id: UUID) -> Ticket:
        ticket = self.session.get(Ticket, ticket_id)
        if not ticket or ticket.is_deleted:
            raise NotFoundError("Ticket not found")
        self.session.expunge(ticket)
        return ticket

    def add(self, ticket: Ticket, history: Iterable[TicketHistory] = ()) -> Ticket:
        now = self.clock()
        ticket.created_at = now
        ticket.updated_at = now
        ticket.version = 1
        self.session.add(ticket)
        # Ticket row must exist before history rows referencing it
        self.session.flush()
        for entry in history:
            self.session.add(entry)
        self.session.commit()
        self.session.refresh(ticket)
        self.session.expunge(ticket)
        return ticket

    def save(self, ticket: Ticket, history: Iterable[TicketHistory] = ()) -> Ticket:
        """Write back a ticket previously returned by ``get``.

        Raises ConflictError if the stored version moved on since the read;
        nothing is written in that case.
        """
        now = self.clock()
        values = ticket.model_dump(exclude=_IMMUTABLE_FIELDS)
        values["updated_at"] = now
        values["version"] = ticket.version + 1

        statement = (
            update(Ticket)
            .where(Ticket.id == ticket.id, Ticket.version == ticket.version)
            .values(**values)
        )
        result = self.session.exec(statement)
        if result.rowcount != 1:
            self.session.rollback()
            logger.warning(
                f"Concurrent update detected for ticket {ticket.id} at version {ticket.version}"
            )
            raise ConflictError("Ticket was modified by another request, please retry")

        for entry in history:
            self.session.add(entry)
        self.session.commit()

        ticket.updated_at = now
        ticket.version += 1
        return ticket

    def scan(self, *conditions, order_by=None) -> List[Ticket]:
        """Non-deleted tickets matching every SQL condition given."""
        statement = select(Ticket).where(Ticket.deleted_at.is_(None), *conditions)
        if order_by is not None:
            statement = statement.order_by(order_by)
        tickets = list(self.session.exec(statement).all())
        for ticket in tickets:
            self.session.expunge(ticket)
        return tickets

    def history(self, ticket_id: UUID) -> List[TicketHistory]:
        statement = (
            select(TicketHistory)
            .where(TicketHistory.ticket_id == ticket_id)
            .order_by(TicketHistory.created_at.asc())
        )
        return list(self.session.exec(statement).all())

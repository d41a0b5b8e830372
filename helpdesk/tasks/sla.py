"""Celery tasks for SLA monitoring."""

from __future__ import annotations

import logging
from collections import Counter

from sqlmodel import Session

from helpdesk.celery_app import celery_app
from helpdesk.db import engine
from helpdesk.services.ticket_lifecycle import TicketLifecycleService
from helpdesk.services.ticket_store import TicketStore
from helpdesk.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)


@celery_app.task(name="helpdesk.tasks.sla.scan_sla_breaches")
def scan_sla_breaches() -> dict[str, int]:
    """
    Periodic read-only sweep for tickets past their SLA deadline.

    Runs through Celery Beat every SLA_SCAN_INTERVAL_SECONDS and logs each
    breached ticket, most urgent first.

    Returns:
        dict: total breached plus a count per priority
    """
    with Session(engine) as session:
        service = TicketLifecycleService(TicketStore(session), UserDirectory(session))
        breached = service.list_sla_breached()

    for ticket in breached:
        logger.warning(
            f"[SLA] Ticket {ticket.id} ({ticket.priority.value}, {ticket.status.value}) "
            f"missed its deadline {ticket.sla_deadline.isoformat()}"
        )

    by_priority = Counter(ticket.priority.value for ticket in breached)
    result = {"breached": len(breached), **by_priority}
    logger.info(f"[SLA Task] Finished: {len(breached)} breached tickets")
    return result

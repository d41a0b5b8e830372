"""Celery application configuration."""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import Celery

from helpdesk.core.config import settings

logger = logging.getLogger(__name__)

celery_app = Celery(
    "helpdesk",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["helpdesk.tasks.sla"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    broker_connection_retry_on_startup=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=3600,
    worker_prefetch_multiplier=1,
)

# Periodic tasks
celery_app.conf.beat_schedule = {
    "scan-sla-breaches": {
        "task": "helpdesk.tasks.sla.scan_sla_breaches",
        "schedule": timedelta(seconds=settings.SLA_SCAN_INTERVAL_SECONDS),
    },
}

logger.info(f"Celery app configured with broker: {settings.CELERY_BROKER_URL}")

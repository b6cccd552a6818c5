"""Celery tasks for the ticketing app.

Both tasks are scheduled through django_celery_beat; see ``ticketing.schedules``.
"""

from datetime import timedelta

import structlog
from celery import shared_task
from django.conf import settings
from django.utils import timezone

from ticketing.services import PurchaseService, get_sweeper
from ticketing.stores import DjangoTicketingStore

logger = structlog.get_logger(__name__)


@shared_task(name="ticketing.sweep_ended_events")
def sweep_ended_events() -> int:
    """Marks approved events whose end has passed as completed.

    Returns the number of events completed. A tick that finds a sweep already
    running in this worker is skipped and returns 0.
    """
    result = get_sweeper().run_scheduled()
    return result.count if result is not None else 0


@shared_task(name="ticketing.expire_stale_purchases")
def expire_stale_purchases(ttl_minutes: int | None = None) -> int:
    """Cancels pending purchases left unpaid past the TTL and returns their tickets to stock.

    This task is idempotent and safe to run periodically.
    """
    minutes = ttl_minutes or settings.TICKETING_PENDING_PURCHASE_TTL_MINUTES
    cutoff = timezone.now() - timedelta(minutes=minutes)
    expired = PurchaseService(DjangoTicketingStore()).expire_stale(cutoff)
    if not expired:
        logger.debug("no_stale_purchases", ttl_minutes=minutes)
    return len(expired)

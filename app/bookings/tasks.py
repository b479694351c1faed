"""
Celery tasks for the booking lifecycle.

Usage:
    from bookings.tasks import expire_stale_pending_bookings

    expire_stale_pending_bookings.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task

from bookings.services import BookingService

logger = logging.getLogger(__name__)


@shared_task
def expire_stale_pending_bookings() -> dict:
    """
    Expire bookings the provider did not answer within the response window.

    Each expired booking is refunded in full. Scheduled via celery-beat.

    Returns:
        Dict with count of bookings expired
    """
    result = BookingService().expire_stale_pending()
    expired_count = result.data if result.success else 0
    logger.info(
        f"Expired {expired_count} stale pending bookings",
        extra={"expired_count": expired_count},
    )
    return {"expired_count": expired_count}

"""
Celery tasks for payment processing.

This module provides periodic tasks for:
- Retrying failed webhook events
- Cleaning up old applied webhook events
- Re-creating bookings for orphaned captures
- Canceling payment intents the customer abandoned
- Resuming payout transfers that never stored a transfer id

All tasks are scheduled through celery-beat (see CELERY_BEAT_SCHEDULE).

Usage:
    from payments.tasks import reconcile_orphaned_captures

    reconcile_orphaned_captures.delay()
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from payments.models import PaymentIntent, WebhookEvent
from payments.services import (
    EscrowCaptureCoordinator,
    PaymentIntentService,
    PayoutService,
)
from payments.state_machines import PaymentIntentStatus, WebhookEventStatus
from payments.webhooks.processor import WebhookProcessor

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

RETRY_BATCH_SIZE = 100

# Leave fresh orphans to the request that is still creating the booking
ORPHAN_GRACE_PERIOD = timedelta(minutes=5)


# =============================================================================
# Webhook Tasks
# =============================================================================


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Periodic task to retry failed webhook events.

    Re-dispatches failed events below STRIPE_WEBHOOK_MAX_ATTEMPTS from
    their stored payloads. Stripe also redelivers on its own schedule;
    whichever gets there first applies the event.

    Returns:
        Dict with counts of events retried and applied
    """
    failed_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        attempt_count__lt=settings.STRIPE_WEBHOOK_MAX_ATTEMPTS,
    ).order_by("created_at")[:RETRY_BATCH_SIZE]

    processor = WebhookProcessor()
    retried_count = 0
    applied_count = 0
    for webhook in failed_webhooks:
        retried_count += 1
        result = processor.process(webhook)
        if result.success:
            applied_count += 1
        logger.info(
            "Retried failed webhook",
            extra={
                "stripe_event_id": webhook.stripe_event_id,
                "applied": result.success,
            },
        )

    logger.info(
        f"Retried {retried_count} failed webhooks, {applied_count} applied",
        extra={"retried_count": retried_count, "applied_count": applied_count},
    )

    return {"retried_count": retried_count, "applied_count": applied_count}


@shared_task
def cleanup_old_webhooks(days: int = 90) -> dict:
    """
    Periodic task to clean up old applied webhook events.

    Failed events are kept for debugging.

    Args:
        days: Delete applied events older than this many days

    Returns:
        Dict with count of webhooks deleted
    """
    cutoff = timezone.now() - timedelta(days=days)

    deleted_count, _ = WebhookEvent.objects.filter(
        status=WebhookEventStatus.APPLIED,
        processed_at__lt=cutoff,
    ).delete()

    if deleted_count > 0:
        logger.info(
            f"Deleted {deleted_count} old webhook events",
            extra={
                "deleted_count": deleted_count,
                "cutoff_date": cutoff.isoformat(),
            },
        )

    return {"deleted_count": deleted_count}


# =============================================================================
# Payment Intent Tasks
# =============================================================================


@shared_task
def reconcile_orphaned_captures() -> dict:
    """
    Retry booking creation for captured intents that have no booking.

    Intents without a stored draft (flagged from a webhook) cannot be
    rebuilt automatically and stay flagged for manual follow-up.

    Returns:
        Dict with counts of intents attempted and bookings created
    """
    cutoff = timezone.now() - ORPHAN_GRACE_PERIOD
    orphans = PaymentIntent.objects.filter(
        status=PaymentIntentStatus.SUCCEEDED,
        needs_reconciliation=True,
        booking_draft__isnull=False,
        updated_at__lt=cutoff,
    ).order_by("created_at")[:RETRY_BATCH_SIZE]

    coordinator = EscrowCaptureCoordinator()
    attempted = 0
    recovered = 0
    for intent in orphans:
        attempted += 1
        result = coordinator.retry_orphaned_capture(intent.pk)
        if result.success:
            recovered += 1
        else:
            logger.error(
                "Orphaned capture still has no booking",
                extra={
                    "payment_intent_id": intent.stripe_payment_intent_id,
                    "error_code": str(result.error_code),
                },
            )

    if attempted:
        logger.info(f"Reconciled {recovered}/{attempted} orphaned captures")
    return {"attempted": attempted, "recovered": recovered}


@shared_task
def expire_abandoned_payment_intents() -> dict:
    """Cancel intents the customer never confirmed."""
    result = PaymentIntentService().expire_abandoned_intents()
    return {"canceled_count": result.data if result.success else 0}


# =============================================================================
# Payout Tasks
# =============================================================================


@shared_task
def retry_stalled_payout_transfers() -> dict:
    """Re-send transfers for payouts stuck in processing without a transfer id."""
    result = PayoutService().resume_stalled_transfers()
    return {"resumed_count": result.data if result.success else 0}

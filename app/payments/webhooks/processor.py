"""
Webhook processing pipeline.

Lifecycle of one delivery:

    received -> signature_verified -> dispatched -> applied | failed

1. Verify the Stripe-Signature header before looking at the body
2. Parse into a typed event (unknown types become UnhandledEvent)
3. Record the event by Stripe event id; an applied event is acknowledged
   without dispatching again
4. Dispatch inside a transaction with the event row locked, so handler
   writes are rolled back together when the handler fails

A failed event is answered with a non-2xx status so Stripe redelivers it,
and retry_failed_webhooks re-dispatches it from the stored payload.
"""

from __future__ import annotations

from django.db import transaction

from core.services import BaseService, ServiceResult

from payments.adapters import StripeAdapter
from payments.exceptions import (
    ErrorKind,
    InvalidSignatureError,
    PaymentProcessingError,
    PaymentValidationError,
)
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus
from payments.webhooks.events import StripeEvent, parse_event
from payments.webhooks.handlers import dispatch_webhook


class WebhookProcessor(BaseService):
    """
    Verifies, records and applies Stripe webhook events.

    Methods:
        handle_event: Entry point for an HTTP delivery
        process: Dispatch a stored event (used for retries)
    """

    def __init__(self, stripe_adapter=None):
        self.stripe = stripe_adapter or StripeAdapter

    def handle_event(
        self, raw_body: bytes, signature: str | None
    ) -> ServiceResult[WebhookEvent]:
        """
        Handle one webhook delivery.

        Args:
            raw_body: Request body exactly as received
            signature: Stripe-Signature header value

        Returns:
            ServiceResult with the WebhookEvent

        Error codes:
            INVALID_SIGNATURE: Signature missing, stale or wrong
            VALIDATION_ERROR: Verified payload is not a Stripe event
            WEBHOOK_HANDLER_FAILED: Handler raised or reported failure
        """
        logger = self.get_logger()

        try:
            payload = self.stripe.verify_webhook_signature(raw_body, signature)
        except InvalidSignatureError as e:
            logger.warning(
                "Webhook signature verification failed",
                extra={"error": str(e)},
            )
            return ServiceResult.failure(
                "Invalid signature",
                error_code=ErrorKind.INVALID_SIGNATURE,
            )

        try:
            event = parse_event(payload)
        except PaymentValidationError as e:
            logger.warning("Webhook payload rejected", extra={"error": str(e)})
            return ServiceResult.from_exception(e)

        logger.info(
            f"Received Stripe webhook: {event.event_type}",
            extra={"stripe_event_id": event.event_id, "event_type": event.event_type},
        )

        webhook_event, created = WebhookEvent.objects.get_or_create(
            stripe_event_id=event.event_id,
            defaults={
                "event_type": event.event_type,
                "payload": payload,
                "status": WebhookEventStatus.SIGNATURE_VERIFIED,
            },
        )

        if not created and webhook_event.is_applied:
            logger.info(
                "Webhook already applied, acknowledging",
                extra={"stripe_event_id": event.event_id},
            )
            return ServiceResult.success(webhook_event)

        return self.process(webhook_event, event)

    def process(
        self,
        webhook_event: WebhookEvent,
        event: StripeEvent | None = None,
    ) -> ServiceResult[WebhookEvent]:
        """
        Dispatch a recorded event and store the outcome.

        Args:
            webhook_event: Stored event row
            event: Parsed event; parsed from the stored payload when omitted
        """
        logger = self.get_logger()

        try:
            event = event or parse_event(webhook_event.payload)
            with transaction.atomic():
                locked = WebhookEvent.objects.select_for_update().get(pk=webhook_event.pk)
                if locked.is_applied:
                    return ServiceResult.success(locked)

                locked.mark_dispatched()
                locked.save(update_fields=["status", "attempt_count", "updated_at"])

                result = dispatch_webhook(event)
                if not result.success:
                    raise PaymentProcessingError(
                        result.error or "Webhook handler failed",
                        error_code=result.error_code,
                    )

                locked.mark_applied()
                locked.save(
                    update_fields=["status", "processed_at", "error_message", "updated_at"]
                )
        except Exception as e:
            logger.error(
                f"Webhook handler failed: {type(e).__name__}: {e}",
                extra={
                    "stripe_event_id": webhook_event.stripe_event_id,
                    "event_type": webhook_event.event_type,
                },
                exc_info=True,
            )
            return self._record_failure(webhook_event, str(e))

        logger.info(
            "Webhook applied",
            extra={
                "stripe_event_id": locked.stripe_event_id,
                "event_type": locked.event_type,
                "attempt_count": locked.attempt_count,
            },
        )
        return ServiceResult.success(locked)

    def _record_failure(
        self, webhook_event: WebhookEvent, message: str
    ) -> ServiceResult[WebhookEvent]:
        # The dispatch transaction rolled back, so start from the stored row
        failed = WebhookEvent.objects.get(pk=webhook_event.pk)
        failed.mark_dispatched()
        failed.mark_failed(message)
        failed.save(
            update_fields=["status", "attempt_count", "error_message", "updated_at"]
        )
        return ServiceResult.failure(
            "Webhook handler failed",
            error_code=ErrorKind.WEBHOOK_HANDLER_FAILED,
            details={"stripe_event_id": failed.stripe_event_id},
        )

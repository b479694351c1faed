"""
WebhookEvent model for Stripe webhook event tracking.

Stores every signature-verified webhook event received from Stripe for
idempotent processing and audit trails. The unique stripe_event_id
constraint ensures duplicate deliveries are detected.

Usage:
    from payments.models import WebhookEvent
    from payments.state_machines import WebhookEventStatus

    event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id="evt_1234567890",
        defaults={
            "event_type": "payment_intent.succeeded",
            "payload": webhook_payload,
        },
    )

    if not created and event.is_applied:
        # Duplicate webhook - already applied
        return
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import WebhookEventStatus


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks Stripe webhook events for idempotent processing.

    Processing Flow:
        1. Webhook arrives, verify Stripe signature (nothing stored on failure)
        2. Get or create WebhookEvent by stripe_event_id (SIGNATURE_VERIFIED)
        3. If it exists and is APPLIED -> acknowledge without re-dispatch
        4. Mark DISPATCHED and route to the registered handler
        5. Mark APPLIED, or FAILED with the error message
        6. FAILED events are re-dispatched by the retry task

    Fields:
        stripe_event_id: Unique Stripe Event ID (evt_xxx)
        event_type: Type of webhook event
        payload: Full JSON payload from Stripe
        status: Processing status
        processed_at: When the event was applied
        error_message: Error details if processing failed
        attempt_count: Number of dispatch attempts
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    stripe_event_id = models.CharField(
        max_length=255,
        unique=True,
        db_index=True,
        help_text="Stripe Event ID (evt_xxx) - unique constraint for idempotency",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Stripe event type (e.g., 'payment_intent.succeeded')",
    )

    # ==========================================================================
    # Payload
    # ==========================================================================

    payload = models.JSONField(
        help_text="Full webhook payload from Stripe (JSON)",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.SIGNATURE_VERIFIED,
        db_index=True,
        help_text="Current processing status",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the event was successfully applied",
    )

    # ==========================================================================
    # Error Handling
    # ==========================================================================

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Error message if processing failed",
    )

    attempt_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of dispatch attempts",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        db_table = "webhook_events"
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
            models.Index(fields=["event_type", "created_at"], name="webhook_type_created_idx"),
            models.Index(fields=["status", "attempt_count"], name="webhook_status_attempts_idx"),
        ]

    def __str__(self) -> str:
        """Return string representation with event ID and type."""
        return f"WebhookEvent({self.stripe_event_id}, {self.event_type})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_applied(self) -> bool:
        """Check if event has been successfully applied."""
        return self.status == WebhookEventStatus.APPLIED

    @property
    def is_failed(self) -> bool:
        return self.status == WebhookEventStatus.FAILED

    @property
    def can_retry(self) -> bool:
        """Check if event can be retried (failed with attempts below the cap)."""
        return (
            self.is_failed
            and self.attempt_count < settings.STRIPE_WEBHOOK_MAX_ATTEMPTS
        )

    # ==========================================================================
    # Helper Methods
    # ==========================================================================

    def mark_dispatched(self) -> None:
        """
        Mark event as handed to its handler.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.DISPATCHED
        self.attempt_count += 1

    def mark_applied(self) -> None:
        """
        Mark event as successfully applied.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.APPLIED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        """
        Mark event as failed with error message.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message

    def get_object_id(self) -> str | None:
        """
        Extract the primary object ID from the webhook payload.

        For most Stripe webhooks, the object ID is in payload.data.object.id
        """
        try:
            return self.payload.get("data", {}).get("object", {}).get("id")
        except (AttributeError, TypeError):
            return None

"""
PaymentIntent model, the local record of a Stripe PaymentIntent.

One PaymentIntent is created per checkout attempt. It carries the amount
split computed at creation time, and after capture it is linked 1:1 to the
Booking that was created from it.

Usage:
    from payments.models import PaymentIntent
    from payments.state_machines import PaymentIntentStatus

    intent = PaymentIntent.objects.get(stripe_payment_intent_id="pi_123")
    if intent.status == PaymentIntentStatus.REQUIRES_CAPTURE:
        ...

Status changes go through ``transition_status`` (compare-and-set) so a
webhook and a request racing on the same intent cannot overwrite each
other.
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import PaymentIntentStatus


class PaymentIntent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Local mirror of a manual-capture Stripe PaymentIntent.

    Fields:
        stripe_payment_intent_id: Stripe PaymentIntent ID (pi_xxx)
        customer: Paying customer profile
        provider: Provider profile the service belongs to
        service: Service being booked
        base_amount / platform_fee / total_amount: The split, in minor units
        currency: ISO 4217 currency code (lowercase)
        status: Last known Stripe status
        idempotency_key: Client-supplied key for create_intent replays
        client_secret: Secret handed to the client to confirm the payment
        captured_at: When the funds were captured
        booking_draft: Booking details kept for orphaned-capture recovery
        needs_reconciliation: True while a captured intent has no booking
        reconciliation_error: Last error raised while creating the booking
        reconciliation_attempts: Number of booking creation retries

    Note:
        Rows are never deleted. An intent with status SUCCEEDED and no
        booking is an orphaned capture and must have needs_reconciliation
        set.
    """

    # ==========================================================================
    # Stripe Integration
    # ==========================================================================

    stripe_payment_intent_id = models.CharField(
        max_length=255,
        unique=True,
        db_index=True,
        help_text="Stripe PaymentIntent ID (pi_xxx)",
    )

    client_secret = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Client secret used by the app to confirm the payment",
    )

    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Idempotency key supplied by the client for intent creation",
    )

    # ==========================================================================
    # Relationships
    # ==========================================================================

    customer = models.ForeignKey(
        "authentication.Profile",
        on_delete=models.PROTECT,
        related_name="payment_intents",
        help_text="Customer being charged",
    )

    provider = models.ForeignKey(
        "authentication.Profile",
        on_delete=models.PROTECT,
        related_name="received_payment_intents",
        help_text="Provider whose service is being paid for",
    )

    service = models.ForeignKey(
        "bookings.Service",
        on_delete=models.PROTECT,
        related_name="payment_intents",
        help_text="Service being booked",
    )

    # ==========================================================================
    # Amounts (minor units)
    # ==========================================================================

    base_amount = models.PositiveBigIntegerField(
        help_text="Provider's price in minor units",
    )

    platform_fee = models.PositiveBigIntegerField(
        help_text="Platform fee in minor units",
    )

    total_amount = models.PositiveBigIntegerField(
        help_text="Amount charged to the customer (base + fee) in minor units",
    )

    currency = models.CharField(
        max_length=3,
        default="gbp",
        help_text="ISO 4217 currency code (lowercase)",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = models.CharField(
        max_length=32,
        choices=PaymentIntentStatus.choices,
        default=PaymentIntentStatus.REQUIRES_PAYMENT_METHOD,
        db_index=True,
        help_text="Last known Stripe PaymentIntent status",
    )

    captured_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment was captured",
    )

    # ==========================================================================
    # Reconciliation
    # ==========================================================================

    booking_draft = models.JSONField(
        null=True,
        blank=True,
        help_text="Booking details stored when booking creation failed after capture",
    )

    needs_reconciliation = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Captured but no booking recorded yet",
    )

    reconciliation_error = models.TextField(
        null=True,
        blank=True,
        help_text="Last error raised while creating the booking",
    )

    reconciliation_attempts = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of booking creation retries for an orphaned capture",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Metadata sent to Stripe with the intent",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        db_table = "payment_intents"
        ordering = ["-created_at"]
        verbose_name = "Payment Intent"
        verbose_name_plural = "Payment Intents"
        indexes = [
            models.Index(fields=["status", "created_at"], name="pi_status_created_idx"),
            models.Index(fields=["customer", "status"], name="pi_customer_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(
                    total_amount=models.F("base_amount") + models.F("platform_fee")
                ),
                name="payment_intent_total_is_base_plus_fee",
            ),
            models.CheckConstraint(
                condition=models.Q(base_amount__gt=0),
                name="payment_intent_base_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with Stripe ID, status and total."""
        amount_display = f"{self.total_amount / 100:.2f} {self.currency.upper()}"
        return f"PaymentIntent({self.stripe_payment_intent_id}, {self.status}, {amount_display})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_captured(self) -> bool:
        return self.status == PaymentIntentStatus.SUCCEEDED

    @property
    def has_booking(self) -> bool:
        """True once a Booking points at this intent."""
        return hasattr(self, "booking")

    # ==========================================================================
    # Status Updates
    # ==========================================================================

    def transition_status(
        self,
        target: str,
        expected: list[str] | tuple[str, ...] | None = None,
        **fields,
    ) -> bool:
        """
        Compare-and-set the status column.

        Updates the row only if its current status is in ``expected`` (or
        any status other than ``target`` when ``expected`` is omitted).
        The in-memory instance is updated when the write lands.

        Args:
            target: New PaymentIntentStatus
            expected: Statuses the row must currently have
            **fields: Extra columns to write in the same UPDATE

        Returns:
            True if this call changed the row
        """
        queryset = PaymentIntent.objects.filter(pk=self.pk)
        if expected is not None:
            queryset = queryset.filter(status__in=list(expected))
        else:
            queryset = queryset.exclude(status=target)

        updated = queryset.update(status=target, updated_at=timezone.now(), **fields)
        if updated:
            self.status = target
            for name, value in fields.items():
                setattr(self, name, value)
        return bool(updated)

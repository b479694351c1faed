"""
PayoutRecord model for provider transfers.

A PayoutRecord represents the provider's share of one completed booking
leaving the platform balance for the provider's Stripe Connect account.
At most one non-failed record exists per booking; a failed record is kept
for audit and a retry creates a new one.

Usage:
    from payments.models import PayoutRecord

    payout = PayoutRecord.objects.create(
        provider=booking.provider,
        booking=booking,
        gross_amount=booking.total_amount,
        platform_fee=booking.platform_fee,
        net_amount=booking.base_amount,
        idempotency_key=IdempotencyKeyGenerator.generate("transfer", booking.id),
        expected_payout_date=config.next_payout_date(today),
    )

    # State transitions using django-fsm
    payout.complete()  # processing -> completed
    payout.save()
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from django_fsm import ConcurrentTransitionMixin, FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import PayoutStatus


class PayoutRecord(ConcurrentTransitionMixin, UUIDPrimaryKeyMixin, BaseModel):
    """
    Provider payout for a single completed booking.

    State Flow:
        PROCESSING -> COMPLETED (payout.paid webhook)
        PROCESSING -> FAILED (transfer rejected or payout.failed webhook)

    ConcurrentTransitionMixin turns every save() into a compare-and-set on
    the status column: if another writer moved the row first the save
    raises ``ConcurrentTransition`` instead of overwriting it.

    Fields:
        provider: Provider profile being paid
        booking: Booking this payout settles
        gross_amount: Amount the customer paid (booking total)
        platform_fee: Platform's share withheld
        net_amount: Amount transferred (gross - fee, equals booking base)
        currency: ISO 4217 currency code (lowercase)
        status: Current FSM state
        expected_payout_date: Next weekly payout day after the booking completed
        actual_payout_date: When Stripe reported the funds paid out
        stripe_transfer_id: Stripe Transfer ID (tr_xxx)
        idempotency_key: Key sent with the transfer request
        failure_reason: Error details if failed
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    provider = models.ForeignKey(
        "authentication.Profile",
        on_delete=models.PROTECT,
        related_name="payout_records",
        help_text="Provider receiving the payout",
    )

    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="payout_records",
        help_text="Booking this payout settles",
    )

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    gross_amount = models.PositiveBigIntegerField(
        help_text="Amount paid by the customer in minor units",
    )

    platform_fee = models.PositiveBigIntegerField(
        help_text="Platform fee withheld in minor units",
    )

    net_amount = models.PositiveBigIntegerField(
        help_text="Amount transferred to the provider in minor units",
    )

    currency = models.CharField(
        max_length=3,
        default="gbp",
        help_text="ISO 4217 currency code (lowercase)",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PayoutStatus.PROCESSING,
        choices=PayoutStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the payout (managed by FSM)",
    )

    # ==========================================================================
    # Stripe Integration
    # ==========================================================================

    stripe_transfer_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        db_index=True,
        help_text="Stripe Transfer ID (tr_xxx)",
    )

    idempotency_key = models.CharField(
        max_length=255,
        help_text="Idempotency key used for the Stripe transfer",
    )

    # ==========================================================================
    # Scheduling & Timestamps
    # ==========================================================================

    expected_payout_date = models.DateField(
        help_text="Weekly payout day on which funds are expected to arrive",
    )

    actual_payout_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When Stripe reported the payout as paid",
    )

    failed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payout failed",
    )

    # ==========================================================================
    # Error Info
    # ==========================================================================

    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Detailed reason if the payout failed",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        db_table = "provider_payouts"
        ordering = ["-created_at"]
        verbose_name = "Payout Record"
        verbose_name_plural = "Payout Records"
        indexes = [
            models.Index(fields=["provider", "status"], name="payout_provider_status_idx"),
            models.Index(fields=["status", "expected_payout_date"], name="payout_status_expected_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(
                    net_amount=models.F("gross_amount") - models.F("platform_fee")
                ),
                name="payout_net_is_gross_minus_fee",
            ),
            models.UniqueConstraint(
                fields=["booking"],
                condition=~models.Q(status=PayoutStatus.FAILED),
                name="payout_one_active_per_booking",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with ID, status, and net amount."""
        amount_display = f"{self.net_amount / 100:.2f} {self.currency.upper()}"
        return f"PayoutRecord({self.id}, {self.status}, {amount_display})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PayoutStatus.PROCESSING,
        target=PayoutStatus.COMPLETED,
    )
    def complete(self, paid_at=None):
        """
        Mark payout as completed.

        Transition: PROCESSING -> COMPLETED

        Called when Stripe confirms the funds reached the provider
        (payout.paid webhook).

        Args:
            paid_at: Arrival time reported by Stripe, defaults to now
        """
        self.actual_payout_date = paid_at or timezone.now()

    @transition(
        field=status,
        source=PayoutStatus.PROCESSING,
        target=PayoutStatus.FAILED,
    )
    def fail(self, reason: str | None = None):
        """
        Mark payout as failed.

        Transition: PROCESSING -> FAILED

        Args:
            reason: Optional failure reason for debugging
        """
        self.failed_at = timezone.now()
        if reason:
            self.failure_reason = reason

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_complete(self) -> bool:
        return self.status == PayoutStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status == PayoutStatus.FAILED

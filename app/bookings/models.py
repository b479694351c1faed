"""
Booking domain models.

Models:
    Service: Something a provider offers at a base price
    Booking: A paid appointment created from a captured PaymentIntent

Design Notes:
    - Bookings are only created by the escrow capture coordinator, after
      the customer's payment has been captured, so every row starts in
      status PENDING with payment_status PAID
    - The amount split is copied from the PaymentIntent and never
      recomputed; a check constraint keeps total = base + fee
    - Status changes go through bookings.state_machine.transition()
    - Rows are never deleted
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from bookings.state_machine import BookingStatus, PaymentStatus


class Service(UUIDPrimaryKeyMixin, BaseModel):
    """
    A service a provider offers to customers.

    Fields:
        provider: Provider profile offering the service
        title: Short display name
        description: Longer description shown to customers
        base_price: Provider's price in minor units
        currency: ISO 4217 currency code (lowercase)
        is_active: Whether the service can currently be booked
    """

    provider = models.ForeignKey(
        "authentication.Profile",
        on_delete=models.CASCADE,
        related_name="services",
        help_text="Provider offering this service",
    )

    title = models.CharField(
        max_length=200,
        help_text="Service name",
    )

    description = models.TextField(
        blank=True,
        default="",
        help_text="Service description",
    )

    base_price = models.PositiveBigIntegerField(
        help_text="Provider's price in minor units",
    )

    currency = models.CharField(
        max_length=3,
        default="gbp",
        help_text="ISO 4217 currency code (lowercase)",
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Inactive services cannot be booked",
    )

    class Meta:
        db_table = "provider_services"
        ordering = ["title"]
        verbose_name = "Service"
        verbose_name_plural = "Services"

    def __str__(self):
        return f"{self.title} ({self.provider_id})"


class Booking(UUIDPrimaryKeyMixin, BaseModel):
    """
    A booking between a customer and a provider for one service.

    Fields:
        customer / provider / service: Parties and the booked service
        scheduled_date, start_time, end_time: When the service happens
        status: BookingStatus, changed only through the state machine
        payment_status: PaymentStatus of the captured funds
        base_amount / platform_fee / total_amount: Split copied from the intent
        fee_rate: Fee rate in force when the intent was created
        currency: ISO 4217 currency code (lowercase)
        payment_intent: The captured PaymentIntent (1:1)
        stripe_payment_intent_id: Stripe PaymentIntent ID, unique
        stripe_refund_id: Stripe Refund ID when the booking was refunded
        customer_notes / declined_reason / cancellation_reason: Free text
        cancelled_by: Profile that cancelled the booking
        *_at: When each transition happened
    """

    # ==========================================================================
    # Parties
    # ==========================================================================

    customer = models.ForeignKey(
        "authentication.Profile",
        on_delete=models.PROTECT,
        related_name="customer_bookings",
        help_text="Customer who booked and paid",
    )

    provider = models.ForeignKey(
        "authentication.Profile",
        on_delete=models.PROTECT,
        related_name="provider_bookings",
        help_text="Provider delivering the service",
    )

    service = models.ForeignKey(
        Service,
        on_delete=models.PROTECT,
        related_name="bookings",
        help_text="Service being booked",
    )

    # ==========================================================================
    # Schedule
    # ==========================================================================

    scheduled_date = models.DateField(
        help_text="Date of the appointment",
    )

    start_time = models.TimeField(
        null=True,
        blank=True,
        help_text="Appointment start time",
    )

    end_time = models.TimeField(
        null=True,
        blank=True,
        help_text="Appointment end time",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=BookingStatus.choices,
        default=BookingStatus.PENDING,
        db_index=True,
        help_text="Booking lifecycle state",
    )

    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        db_index=True,
        help_text="State of the captured payment",
    )

    # ==========================================================================
    # Amounts (minor units)
    # ==========================================================================

    base_amount = models.PositiveBigIntegerField(
        help_text="Provider's share in minor units",
    )

    platform_fee = models.PositiveBigIntegerField(
        help_text="Platform fee in minor units",
    )

    total_amount = models.PositiveBigIntegerField(
        help_text="Amount charged to the customer in minor units",
    )

    fee_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        help_text="Platform fee rate applied when the payment was set up",
    )

    currency = models.CharField(
        max_length=3,
        default="gbp",
        help_text="ISO 4217 currency code (lowercase)",
    )

    # ==========================================================================
    # Payment Links
    # ==========================================================================

    payment_intent = models.OneToOneField(
        "payments.PaymentIntent",
        on_delete=models.PROTECT,
        related_name="booking",
        help_text="Captured PaymentIntent this booking was created from",
    )

    stripe_payment_intent_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe PaymentIntent ID (pi_xxx)",
    )

    stripe_refund_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Stripe Refund ID (re_xxx) if the booking was refunded",
    )

    # ==========================================================================
    # Notes & Reasons
    # ==========================================================================

    customer_notes = models.TextField(blank=True, default="")

    declined_reason = models.TextField(blank=True, default="")

    cancellation_reason = models.TextField(blank=True, default="")

    cancelled_by = models.ForeignKey(
        "authentication.Profile",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="cancelled_bookings",
        help_text="Profile that cancelled the booking",
    )

    # ==========================================================================
    # Transition Timestamps
    # ==========================================================================

    confirmed_at = models.DateTimeField(null=True, blank=True)
    declined_at = models.DateTimeField(null=True, blank=True)
    expired_at = models.DateTimeField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        db_table = "bookings"
        ordering = ["-created_at"]
        verbose_name = "Booking"
        verbose_name_plural = "Bookings"
        indexes = [
            models.Index(fields=["customer", "status"], name="booking_customer_status_idx"),
            models.Index(fields=["provider", "status"], name="booking_provider_status_idx"),
            models.Index(fields=["status", "created_at"], name="booking_status_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(
                    total_amount=models.F("base_amount") + models.F("platform_fee")
                ),
                name="booking_total_is_base_plus_fee",
            ),
        ]

    def __str__(self):
        return f"Booking({self.id}, {self.status}, {self.scheduled_date})"

    def is_party(self, profile) -> bool:
        """True if the profile is this booking's customer or provider."""
        return profile.pk in (self.customer_id, self.provider_id)

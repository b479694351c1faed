"""
Subscription model for provider plans.

Providers pay a recurring platform subscription through Stripe Billing.
The row mirrors the Stripe Subscription and is written only by the
customer.subscription.* and invoice.* webhook handlers.

Usage:
    from payments.models import Subscription

    subscription = Subscription.objects.filter(
        stripe_subscription_id="sub_xxx"
    ).first()
    if subscription and subscription.is_active:
        ...
"""

from __future__ import annotations

from django.db import models
from django.db.models import F

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import SubscriptionStatus


class Subscription(UUIDPrimaryKeyMixin, BaseModel):
    """
    Local mirror of a provider's Stripe Subscription.

    Status is not a local state machine: Stripe owns the lifecycle and the
    webhook handlers copy whatever status it reports.

    Fields:
        profile: Provider profile that owns the subscription
        stripe_subscription_id: Stripe Subscription ID (sub_xxx)
        stripe_customer_id: Stripe Customer ID (cus_xxx)
        stripe_price_id: Stripe Price ID of the plan
        status: Last known Stripe status
        current_period_end: End of the paid period
        trial_ends_at: End of the trial, if any
        cancel_at_period_end: Whether the subscription stops at period end
        canceled_at: When the subscription was canceled
        last_invoice_id: Last invoice seen on an invoice.* webhook
        version: Optimistic locking version field
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    profile = models.ForeignKey(
        "authentication.Profile",
        on_delete=models.PROTECT,
        related_name="subscriptions",
        help_text="Provider profile that owns the subscription",
    )

    # ==========================================================================
    # Stripe Integration
    # ==========================================================================

    stripe_subscription_id = models.CharField(
        max_length=255,
        unique=True,
        db_index=True,
        help_text="Stripe Subscription ID (sub_xxx)",
    )

    stripe_customer_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Stripe Customer ID (cus_xxx)",
    )

    stripe_price_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Stripe Price ID (price_xxx)",
    )

    # ==========================================================================
    # Status & Billing Period
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=SubscriptionStatus.choices,
        default=SubscriptionStatus.INCOMPLETE,
        db_index=True,
        help_text="Last known Stripe subscription status",
    )

    current_period_end = models.DateTimeField(
        null=True,
        blank=True,
        help_text="End of the current billing period",
    )

    trial_ends_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the trial ends",
    )

    cancel_at_period_end = models.BooleanField(
        default=False,
        help_text="Whether to cancel at the end of the current period",
    )

    canceled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the subscription was canceled",
    )

    last_invoice_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Stripe Invoice ID of the last invoice event",
    )

    # ==========================================================================
    # Concurrency Control
    # ==========================================================================

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    class Meta:
        db_table = "provider_subscriptions"
        ordering = ["-created_at"]
        verbose_name = "Subscription"
        verbose_name_plural = "Subscriptions"
        indexes = [
            models.Index(fields=["profile", "status"], name="sub_profile_status_idx"),
            models.Index(fields=["status", "current_period_end"], name="sub_status_period_end_idx"),
        ]

    def __str__(self) -> str:
        return f"Subscription({self.stripe_subscription_id}, {self.status})"

    def save(self, *args, **kwargs):
        """Save with version auto-increment for optimistic locking."""
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    @property
    def is_active(self) -> bool:
        """Trialing subscriptions count as active."""
        return self.status in (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING)

"""
State enums for payment models.

These are Django TextChoices for database storage and admin integration.

State Machines Overview:

PaymentIntent Status (mirrors Stripe's PaymentIntent.status):
    requires_payment_method → requires_confirmation → requires_action
        → processing → requires_capture → succeeded
    any non-terminal → canceled
    failed is recorded from payment_intent.payment_failed webhooks

PayoutRecord Status:
    processing → completed
    processing → failed

WebhookEvent Status:
    signature_verified → dispatched → applied
    signature_verified → dispatched → failed → dispatched (retry)
"""

from django.db import models


class PaymentIntentStatus(models.TextChoices):
    """
    Local mirror of the Stripe PaymentIntent status.

    Terminal states: SUCCEEDED, CANCELED
    """

    REQUIRES_PAYMENT_METHOD = "requires_payment_method", "Requires Payment Method"
    REQUIRES_CONFIRMATION = "requires_confirmation", "Requires Confirmation"
    REQUIRES_ACTION = "requires_action", "Requires Action"
    PROCESSING = "processing", "Processing"
    REQUIRES_CAPTURE = "requires_capture", "Requires Capture"
    SUCCEEDED = "succeeded", "Succeeded"
    CANCELED = "canceled", "Canceled"
    FAILED = "failed", "Failed"


# Intents in these states are waiting on the customer and may be abandoned
AWAITING_CUSTOMER_STATUSES = (
    PaymentIntentStatus.REQUIRES_PAYMENT_METHOD,
    PaymentIntentStatus.REQUIRES_CONFIRMATION,
    PaymentIntentStatus.REQUIRES_ACTION,
)


class PayoutStatus(models.TextChoices):
    """
    States for the PayoutRecord lifecycle.

    At most one non-failed record may exist per booking. A failed record
    is terminal; retrying creates a new record.
    """

    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class ProviderAccountStatus(models.TextChoices):
    """
    Stripe Connect account status for a provider.

    ACTIVE once Stripe reports charges_enabled; only active providers can
    accept bookings.
    """

    PENDING = "pending", "Pending"
    ACTIVE = "active", "Active"


class SubscriptionStatus(models.TextChoices):
    """Mirror of the Stripe Subscription status."""

    TRIALING = "trialing", "Trialing"
    ACTIVE = "active", "Active"
    PAST_DUE = "past_due", "Past Due"
    CANCELED = "canceled", "Canceled"
    INCOMPLETE = "incomplete", "Incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired", "Incomplete Expired"
    UNPAID = "unpaid", "Unpaid"
    PAUSED = "paused", "Paused"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    Events are only persisted after their signature has been verified, so
    SIGNATURE_VERIFIED is the first stored state.
    """

    SIGNATURE_VERIFIED = "signature_verified", "Signature Verified"
    DISPATCHED = "dispatched", "Dispatched"
    APPLIED = "applied", "Applied"
    FAILED = "failed", "Failed"


__all__ = [
    "AWAITING_CUSTOMER_STATUSES",
    "PaymentIntentStatus",
    "PayoutStatus",
    "ProviderAccountStatus",
    "SubscriptionStatus",
    "WebhookEventStatus",
]

"""
Notification models.

Notifications are the in-app record of payment and booking events for a
customer or provider. Delivery (push, email) is out of scope for this
service; clients poll the inbox endpoint.

Design Decisions:
    - Notification inherits from BaseModel (timestamps, ordering)
    - notification_type is a fixed set of choices; titles and bodies are
      rendered from NOTIFICATION_TEMPLATES at creation time
    - dedupe_key makes webhook-driven notifications idempotent: Stripe
      redelivers events, and the second delivery must not notify twice

Usage:
    from notifications.models import Notification, NotificationType

    unread = Notification.objects.filter(recipient=user, is_read=False)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel


class NotificationType(models.TextChoices):
    """Kinds of notification the payment and booking flows emit."""

    BOOKING_REQUESTED = "booking_requested", "Booking Requested"
    BOOKING_CONFIRMED = "booking_confirmed", "Booking Confirmed"
    BOOKING_DECLINED = "booking_declined", "Booking Declined"
    BOOKING_CANCELLED = "booking_cancelled", "Booking Cancelled"
    BOOKING_EXPIRED = "booking_expired", "Booking Expired"
    SERVICE_STARTED = "service_started", "Service Started"
    SERVICE_COMPLETED = "service_completed", "Service Completed"
    PAYMENT_RECEIVED = "payment_received", "Payment Received"
    PAYMENT_FAILED = "payment_failed", "Payment Failed"
    PAYMENT_REFUNDED = "payment_refunded", "Payment Refunded"
    PAYOUT_RELEASED = "payout_released", "Payout Released"
    PAYOUT_COMPLETED = "payout_completed", "Payout Completed"
    PAYOUT_FAILED = "payout_failed", "Payout Failed"
    ACCOUNT_UPDATED = "account_updated", "Account Updated"
    SUBSCRIPTION_UPDATED = "subscription_updated", "Subscription Updated"


# (title_template, body_template) rendered with str.format(**data).
# Amounts are passed pre-formatted in major units (e.g. "110.00").
NOTIFICATION_TEMPLATES: dict[str, tuple[str, str]] = {
    NotificationType.BOOKING_REQUESTED: (
        "New booking request",
        "You have a new booking request for {scheduled_date}.",
    ),
    NotificationType.BOOKING_CONFIRMED: (
        "Booking confirmed",
        "Your booking for {scheduled_date} has been confirmed.",
    ),
    NotificationType.BOOKING_DECLINED: (
        "Booking declined",
        "Your booking for {scheduled_date} was declined. A full refund is on its way.",
    ),
    NotificationType.BOOKING_CANCELLED: (
        "Booking cancelled",
        "The booking for {scheduled_date} has been cancelled.",
    ),
    NotificationType.BOOKING_EXPIRED: (
        "Booking expired",
        "Your booking request for {scheduled_date} expired without a response. "
        "A full refund is on its way.",
    ),
    NotificationType.SERVICE_STARTED: (
        "Service started",
        "Your provider has started the service booked for {scheduled_date}.",
    ),
    NotificationType.SERVICE_COMPLETED: (
        "Service completed",
        "Your service for {scheduled_date} has been marked as completed.",
    ),
    NotificationType.PAYMENT_RECEIVED: (
        "Payment received",
        "A payment of {amount} {currency} has been received.",
    ),
    NotificationType.PAYMENT_FAILED: (
        "Payment failed",
        "Your payment of {amount} {currency} could not be processed. Please try again.",
    ),
    NotificationType.PAYMENT_REFUNDED: (
        "Payment refunded",
        "{amount} {currency} has been refunded to your original payment method.",
    ),
    NotificationType.PAYOUT_RELEASED: (
        "Payout released",
        "{amount} {currency} has been released for your completed service.",
    ),
    NotificationType.PAYOUT_COMPLETED: (
        "Payout completed",
        "{amount} {currency} has been paid out to your bank account.",
    ),
    NotificationType.PAYOUT_FAILED: (
        "Payout failed",
        "Your payout of {amount} {currency} failed: {reason}",
    ),
    NotificationType.ACCOUNT_UPDATED: (
        "Account updated",
        "Your payout account status is now {status}.",
    ),
    NotificationType.SUBSCRIPTION_UPDATED: (
        "Subscription updated",
        "Your subscription status is now {status}.",
    ),
}


class Notification(BaseModel):
    """
    Individual notification record for a user.

    Notifications are immutable once created apart from read status.

    Fields:
        recipient: User receiving the notification (scopes all queries)
        notification_type: Kind of event this notification reports
        title: Fully rendered title string
        message: Fully rendered body string
        data: JSON context (booking_id, payout_id, amounts)
        is_read: Whether recipient has read this notification
        read_at: When the notification was first marked read
        dedupe_key: Unique key for notifications that must be emitted at
            most once (e.g. "payout_completed:<payout id>")
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        help_text="User receiving this notification",
    )

    notification_type = models.CharField(
        max_length=40,
        choices=NotificationType.choices,
        db_index=True,
        help_text="Kind of event this notification reports",
    )

    title = models.CharField(
        max_length=255,
        help_text="Fully rendered notification title",
    )

    message = models.TextField(
        blank=True,
        default="",
        help_text="Fully rendered notification body",
    )

    data = models.JSONField(
        default=dict,
        blank=True,
        help_text="Context data (booking_id, payout_id, amounts)",
    )

    is_read = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether recipient has read this notification",
    )

    read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the notification was first marked read",
    )

    dedupe_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Key that prevents the same event notifying twice",
    )

    class Meta:
        db_table = "notifications"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
        ]

    def __str__(self) -> str:
        read_status = "read" if self.is_read else "unread"
        return (
            f"Notification({self.notification_type}) -> "
            f"User {self.recipient_id} [{read_status}]"
        )

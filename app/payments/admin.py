"""
Payment admin configuration.

Registers the escrow payment models with the Django admin. Amounts and
statuses are read-only: changes go through the service layer, which the
admin actions call.
"""

from django.contrib import admin, messages

from payments.models import (
    PaymentIntent,
    PayoutRecord,
    ProviderAccount,
    Subscription,
    WebhookEvent,
)
from payments.money import to_major_units
from payments.services import EscrowCaptureCoordinator, PayoutService
from payments.webhooks.processor import WebhookProcessor

__all__ = [
    "PaymentIntentAdmin",
    "PayoutRecordAdmin",
    "ProviderAccountAdmin",
    "SubscriptionAdmin",
    "WebhookEventAdmin",
]


@admin.register(ProviderAccount)
class ProviderAccountAdmin(admin.ModelAdmin):
    """
    Admin configuration for ProviderAccount.

    Provides visibility into Stripe Connect account status.
    """

    list_display = [
        "id",
        "profile",
        "stripe_account_id",
        "account_status",
        "charges_enabled",
        "payouts_enabled",
        "created_at",
    ]
    list_filter = ["account_status", "charges_enabled", "payouts_enabled"]
    search_fields = ["id", "stripe_account_id", "profile__user__email"]
    readonly_fields = ["id", "created_at", "updated_at", "version"]
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "profile", "stripe_account_id"),
            },
        ),
        (
            "Status",
            {
                "fields": (
                    "account_status",
                    "charges_enabled",
                    "details_submitted",
                    "payouts_enabled",
                ),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("metadata", "version"),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )


@admin.register(PaymentIntent)
class PaymentIntentAdmin(admin.ModelAdmin):
    """
    Admin configuration for PaymentIntent.

    The reconciliation filter lists captured payments that have no booking.
    """

    list_display = [
        "id",
        "stripe_payment_intent_id",
        "customer",
        "total_display",
        "status",
        "needs_reconciliation",
        "created_at",
    ]
    list_filter = ["status", "needs_reconciliation", "currency", "created_at"]
    search_fields = [
        "id",
        "stripe_payment_intent_id",
        "idempotency_key",
        "customer__user__email",
    ]
    readonly_fields = [
        "id",
        "stripe_payment_intent_id",
        "client_secret",
        "idempotency_key",
        "base_amount",
        "platform_fee",
        "total_amount",
        "currency",
        "status",
        "captured_at",
        "booking_draft",
        "reconciliation_error",
        "reconciliation_attempts",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["retry_orphaned_capture"]

    fieldsets = (
        (
            None,
            {
                "fields": (
                    "id",
                    "stripe_payment_intent_id",
                    "customer",
                    "provider",
                    "service",
                    "status",
                ),
            },
        ),
        (
            "Amount",
            {
                "fields": ("base_amount", "platform_fee", "total_amount", "currency"),
            },
        ),
        (
            "Reconciliation",
            {
                "fields": (
                    "needs_reconciliation",
                    "reconciliation_error",
                    "reconciliation_attempts",
                    "booking_draft",
                ),
            },
        ),
        (
            "Stripe",
            {
                "fields": ("idempotency_key", "client_secret", "captured_at", "metadata"),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    def total_display(self, obj: PaymentIntent) -> str:
        """Display the total formatted in major units."""
        return f"{to_major_units(obj.total_amount)} {obj.currency.upper()}"

    total_display.short_description = "Total"

    @admin.action(description="Retry booking creation for orphaned captures")
    def retry_orphaned_capture(self, request, queryset):
        coordinator = EscrowCaptureCoordinator()
        for intent in queryset.filter(needs_reconciliation=True):
            result = coordinator.retry_orphaned_capture(intent.pk)
            if result.success:
                self.message_user(
                    request, f"Booking created for {intent.stripe_payment_intent_id}"
                )
            else:
                self.message_user(
                    request,
                    f"{intent.stripe_payment_intent_id}: {result.error}",
                    level=messages.ERROR,
                )

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for payment intents (audit trail)."""
        return False


@admin.register(PayoutRecord)
class PayoutRecordAdmin(admin.ModelAdmin):
    """Admin configuration for PayoutRecord."""

    list_display = [
        "id",
        "provider",
        "booking",
        "net_display",
        "status",
        "expected_payout_date",
        "actual_payout_date",
    ]
    list_filter = ["status", "expected_payout_date"]
    search_fields = ["id", "stripe_transfer_id", "booking__id", "provider__user__email"]
    readonly_fields = [
        "id",
        "provider",
        "booking",
        "gross_amount",
        "platform_fee",
        "net_amount",
        "currency",
        "status",
        "stripe_transfer_id",
        "idempotency_key",
        "expected_payout_date",
        "actual_payout_date",
        "failed_at",
        "failure_reason",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]
    actions = ["retry_failed_payouts"]

    def net_display(self, obj: PayoutRecord) -> str:
        return f"{to_major_units(obj.net_amount)} {obj.currency.upper()}"

    net_display.short_description = "Net"

    @admin.action(description="Start a new payout for failed records")
    def retry_failed_payouts(self, request, queryset):
        service = PayoutService()
        for payout in queryset.filter(status="failed").select_related("booking"):
            result = service.retry_failed_payout(payout.booking)
            level = messages.INFO if result.success else messages.ERROR
            self.message_user(
                request,
                f"Booking {payout.booking_id}: {'payout started' if result.success else result.error}",
                level=level,
            )

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "profile",
        "stripe_subscription_id",
        "status",
        "current_period_end",
        "cancel_at_period_end",
    ]
    list_filter = ["status", "cancel_at_period_end"]
    search_fields = ["stripe_subscription_id", "stripe_customer_id", "profile__user__email"]
    readonly_fields = ["id", "created_at", "updated_at", "version"]
    ordering = ["-created_at"]


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into webhook processing status.
    Webhook events are immutable once received.
    """

    list_display = [
        "id",
        "stripe_event_id",
        "event_type",
        "status",
        "attempt_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "stripe_event_id", "event_type"]
    readonly_fields = [
        "id",
        "created_at",
        "updated_at",
        "stripe_event_id",
        "event_type",
        "status",
        "payload",
        "processed_at",
        "error_message",
        "attempt_count",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["reprocess_events"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "stripe_event_id", "event_type", "status"),
            },
        ),
        (
            "Processing",
            {
                "fields": ("processed_at", "attempt_count"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    @admin.action(description="Re-dispatch selected failed events")
    def reprocess_events(self, request, queryset):
        processor = WebhookProcessor()
        applied = 0
        for event in queryset.filter(status="failed"):
            if processor.process(event).success:
                applied += 1
        self.message_user(request, f"{applied} event(s) applied")

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for webhook events (audit trail)."""
        return False

    def has_add_permission(self, request) -> bool:
        """Disable adding webhook events through admin."""
        return False

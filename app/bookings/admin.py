"""
Booking admin configuration.

Bookings are read-only in the admin; status changes go through
BookingService so refunds and payouts are never skipped.
"""

from django.contrib import admin

from bookings.models import Booking, Service
from payments.money import to_major_units


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ["id", "title", "provider", "base_price", "currency", "is_active"]
    list_filter = ["is_active", "currency"]
    search_fields = ["id", "title", "provider__user__email"]
    readonly_fields = ["id", "created_at", "updated_at"]
    ordering = ["title"]


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """
    Admin configuration for Booking.

    Provides visibility into booking status and the captured amount split.
    """

    list_display = [
        "id",
        "customer",
        "provider",
        "scheduled_date",
        "status",
        "payment_status",
        "total_display",
        "created_at",
    ]
    list_filter = ["status", "payment_status", "scheduled_date"]
    search_fields = [
        "id",
        "stripe_payment_intent_id",
        "customer__user__email",
        "provider__user__email",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "customer", "provider", "service", "status", "payment_status"),
            },
        ),
        (
            "Schedule",
            {
                "fields": ("scheduled_date", "start_time", "end_time"),
            },
        ),
        (
            "Amount",
            {
                "fields": ("base_amount", "platform_fee", "total_amount", "fee_rate", "currency"),
            },
        ),
        (
            "Payment",
            {
                "fields": ("payment_intent", "stripe_payment_intent_id", "stripe_refund_id"),
            },
        ),
        (
            "Notes",
            {
                "fields": (
                    "customer_notes",
                    "declined_reason",
                    "cancellation_reason",
                    "cancelled_by",
                ),
                "classes": ("collapse",),
            },
        ),
        (
            "State Timestamps",
            {
                "fields": (
                    "confirmed_at",
                    "declined_at",
                    "expired_at",
                    "started_at",
                    "cancelled_at",
                    "completed_at",
                    "refunded_at",
                ),
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

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def total_display(self, obj: Booking) -> str:
        """Display the total formatted in major units."""
        return f"{to_major_units(obj.total_amount)} {obj.currency.upper()}"

    total_display.short_description = "Total"

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for bookings (audit trail)."""
        return False

"""
Django admin configuration for notification models.
"""

from django.contrib import admin

from notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """
    Admin configuration for Notification.

    Read-only view of notifications for support staff investigating
    payment and payout questions.
    """

    list_display = [
        "id",
        "recipient",
        "notification_type",
        "title",
        "is_read",
        "created_at",
    ]
    list_filter = ["notification_type", "is_read", "created_at"]
    search_fields = ["recipient__email", "title", "dedupe_key"]
    raw_id_fields = ["recipient"]
    readonly_fields = [
        "recipient",
        "notification_type",
        "title",
        "message",
        "data",
        "dedupe_key",
        "read_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

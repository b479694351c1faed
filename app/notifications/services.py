"""
Notification service layer.

Services:
    NotificationService: Notification creation and read status management

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure()
    - Template rendering raises KeyError on missing placeholders
    - A dedupe_key turns creation into an at-most-once operation; a repeat
      returns failure with error_code DUPLICATE, which callers driven by
      webhook redelivery treat as success

Usage:
    from notifications.services import NotificationService

    result = NotificationService.create_notification(
        recipient=provider.user,
        notification_type=NotificationType.PAYOUT_COMPLETED,
        data={"amount": "100.00", "currency": "GBP", "payout_id": str(payout.id)},
        dedupe_key=f"payout_completed:{payout.id}",
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.utils import timezone

from core.services import BaseService, ServiceResult
from notifications.models import NOTIFICATION_TEMPLATES, Notification

if TYPE_CHECKING:
    from authentication.models import User


class NotificationService(BaseService):
    """
    Service for notification operations.

    Methods:
        create_notification: Create a notification with template rendering
        mark_as_read: Mark a single notification as read
        mark_all_as_read: Mark all user's unread notifications as read
    """

    @classmethod
    def create_notification(
        cls,
        recipient: User,
        notification_type: str,
        data: dict | None = None,
        title: str | None = None,
        message: str | None = None,
        dedupe_key: str | None = None,
    ) -> ServiceResult[Notification]:
        """
        Create a new notification for a user.

        If title/message are not provided, the templates registered for the
        notification type are rendered with the data dict.

        Args:
            recipient: User receiving the notification
            notification_type: NotificationType value
            data: Dict for template rendering and client context
            title: Explicit title (overrides template)
            message: Explicit body (overrides template)
            dedupe_key: Optional key to prevent duplicate notifications

        Returns:
            ServiceResult with created Notification if successful

        Error codes:
            UNKNOWN_TYPE: No template registered for the type
            DUPLICATE: Notification with this dedupe_key already exists

        Raises:
            KeyError: If template placeholder is missing from data
        """
        data = data or {}

        templates = NOTIFICATION_TEMPLATES.get(notification_type)
        if templates is None and (title is None or message is None):
            cls.get_logger().warning(f"Unknown notification type: {notification_type}")
            return ServiceResult.failure(
                f"Unknown notification type: {notification_type}",
                error_code="UNKNOWN_TYPE",
            )

        if dedupe_key and Notification.objects.filter(dedupe_key=dedupe_key).exists():
            cls.get_logger().info(
                f"Duplicate notification prevented: dedupe_key={dedupe_key}"
            )
            return ServiceResult.failure(
                f"Notification already sent: {dedupe_key}",
                error_code="DUPLICATE",
            )

        rendered_title = title or templates[0].format(**data)
        rendered_message = message or templates[1].format(**data)

        try:
            # Savepoint so a lost race does not poison the caller's transaction
            with transaction.atomic():
                notification = Notification.objects.create(
                    recipient=recipient,
                    notification_type=notification_type,
                    title=rendered_title,
                    message=rendered_message,
                    data=data,
                    dedupe_key=dedupe_key,
                )
        except IntegrityError:
            if dedupe_key is None:
                raise
            cls.get_logger().info(
                f"Duplicate notification prevented (race): dedupe_key={dedupe_key}"
            )
            return ServiceResult.failure(
                f"Notification already sent: {dedupe_key}",
                error_code="DUPLICATE",
            )

        cls.get_logger().info(
            f"Created notification {notification.id} of type {notification_type} "
            f"for user {recipient.pk}"
        )
        return ServiceResult.success(notification)

    @classmethod
    def mark_as_read(
        cls,
        notification: Notification,
        user: User,
    ) -> ServiceResult[Notification]:
        """
        Mark a single notification as read.

        Idempotent: marking an already-read notification succeeds and keeps
        the original read_at.

        Error codes:
            NOT_OWNER: User doesn't own the notification
        """
        if notification.recipient_id != user.pk:
            cls.get_logger().warning(
                f"User {user.pk} attempted to mark notification {notification.id} "
                f"owned by user {notification.recipient_id}"
            )
            return ServiceResult.failure(
                "Cannot mark notification you don't own",
                error_code="NOT_OWNER",
            )

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = timezone.now()
            notification.save(update_fields=["is_read", "read_at", "updated_at"])

        return ServiceResult.success(notification)

    @classmethod
    def mark_all_as_read(cls, user: User) -> ServiceResult[int]:
        """
        Mark all user's unread notifications as read in one query.

        Returns:
            ServiceResult with count of notifications marked as read
        """
        now = timezone.now()
        count = Notification.objects.filter(
            recipient=user,
            is_read=False,
        ).update(is_read=True, read_at=now, updated_at=now)

        cls.get_logger().info(f"Marked {count} notifications as read for user {user.pk}")

        return ServiceResult.success(count)

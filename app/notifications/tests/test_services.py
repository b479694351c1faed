"""
Tests for NotificationService.

Test Classes:
    TestCreateNotification: Template rendering and dedupe behaviour
    TestMarkAsRead: Ownership and idempotency
    TestMarkAllAsRead: Bulk update
"""

from notifications.models import Notification, NotificationType
from notifications.services import NotificationService


class TestCreateNotification:
    """Tests for NotificationService.create_notification()."""

    def test_renders_registered_templates(self, user):
        """Title and message come from the type's templates."""
        result = NotificationService.create_notification(
            recipient=user,
            notification_type=NotificationType.PAYOUT_COMPLETED,
            data={"amount": "100.00", "currency": "GBP"},
        )

        assert result.success
        assert result.data.title == "Payout completed"
        assert result.data.message == "100.00 GBP has been paid out to your bank account."
        assert result.data.data == {"amount": "100.00", "currency": "GBP"}

    def test_explicit_title_and_message_override_templates(self, user):
        result = NotificationService.create_notification(
            recipient=user,
            notification_type=NotificationType.PAYMENT_FAILED,
            title="Custom",
            message="Custom body",
        )

        assert result.success
        assert result.data.title == "Custom"
        assert result.data.message == "Custom body"

    def test_unknown_type_without_explicit_text_fails(self, user):
        result = NotificationService.create_notification(
            recipient=user,
            notification_type="not_a_type",
        )

        assert not result.success
        assert result.error_code == "UNKNOWN_TYPE"

    def test_same_dedupe_key_creates_one_notification(self, user):
        """
        Given a notification was created with a dedupe key
        When the same key is used again
        Then DUPLICATE is returned and only one row exists
        """
        kwargs = {
            "recipient": user,
            "notification_type": NotificationType.PAYOUT_COMPLETED,
            "data": {"amount": "100.00", "currency": "GBP"},
            "dedupe_key": "payout_completed:abc",
        }

        first = NotificationService.create_notification(**kwargs)
        second = NotificationService.create_notification(**kwargs)

        assert first.success
        assert not second.success
        assert second.error_code == "DUPLICATE"
        assert Notification.objects.filter(dedupe_key="payout_completed:abc").count() == 1

    def test_lost_insert_race_reports_duplicate(self, user, mocker):
        """An IntegrityError on insert is reported as DUPLICATE, not raised."""
        from django.db import IntegrityError

        mocker.patch.object(
            Notification.objects, "create", side_effect=IntegrityError("dup")
        )

        result = NotificationService.create_notification(
            recipient=user,
            notification_type=NotificationType.PAYMENT_RECEIVED,
            data={"amount": "1.00", "currency": "GBP"},
            dedupe_key="payment_received:pi_1",
        )

        assert result.error_code == "DUPLICATE"

    def test_notifications_without_dedupe_key_are_not_deduplicated(self, user):
        for _ in range(2):
            NotificationService.create_notification(
                recipient=user,
                notification_type=NotificationType.PAYMENT_RECEIVED,
                data={"amount": "1.00", "currency": "GBP"},
            )

        assert Notification.objects.filter(recipient=user).count() == 2


class TestMarkAsRead:
    """Tests for NotificationService.mark_as_read()."""

    def test_marks_notification_read(self, user, unread_notification):
        result = NotificationService.mark_as_read(unread_notification, user)

        assert result.success
        unread_notification.refresh_from_db()
        assert unread_notification.is_read is True
        assert unread_notification.read_at is not None

    def test_rejects_other_users_notification(self, other_user, unread_notification):
        result = NotificationService.mark_as_read(unread_notification, other_user)

        assert not result.success
        assert result.error_code == "NOT_OWNER"


class TestMarkAllAsRead:
    """Tests for NotificationService.mark_all_as_read()."""

    def test_marks_only_unread_notifications(
        self, user, unread_notification, read_notification
    ):
        result = NotificationService.mark_all_as_read(user)

        assert result.data == 1
        assert not Notification.objects.filter(recipient=user, is_read=False).exists()

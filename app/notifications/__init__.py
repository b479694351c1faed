"""
Notifications app for in-app payment and booking notifications.

This app provides:
- Notification model with a dedupe key for at-most-once emission
- NotificationService for centralized notification creation
- REST API for listing and managing notifications

Usage:
    from notifications.services import NotificationService

    result = NotificationService.create_notification(
        recipient=customer.user,
        notification_type=NotificationType.PAYMENT_RECEIVED,
        data={"amount": "110.00", "currency": "GBP"},
    )
"""

"""
Factory Boy factories for notification models.

Usage:
    from notifications.tests.factories import NotificationFactory

    notification = NotificationFactory(recipient=user)
    read = NotificationFactory(recipient=user, is_read=True)
"""

import factory

from authentication.tests.factories import UserFactory
from notifications.models import Notification, NotificationType


class NotificationFactory(factory.django.DjangoModelFactory):
    """Factory for Notification model. Unread payment_received by default."""

    class Meta:
        model = Notification

    recipient = factory.SubFactory(UserFactory)
    notification_type = NotificationType.PAYMENT_RECEIVED
    title = "Payment received"
    message = factory.Sequence(lambda n: f"A payment of {n}.00 GBP has been received.")
    data = factory.LazyFunction(dict)
    is_read = False

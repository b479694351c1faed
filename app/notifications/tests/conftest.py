"""
Test configuration and fixtures for notification tests.
"""

import pytest

from authentication.tests.factories import UserFactory
from notifications.tests.factories import NotificationFactory


@pytest.fixture
def user(db):
    """User who receives notifications."""
    return UserFactory()


@pytest.fixture
def other_user(db):
    """Another user for ownership checks."""
    return UserFactory()


@pytest.fixture
def unread_notification(user):
    return NotificationFactory(recipient=user)


@pytest.fixture
def read_notification(user):
    return NotificationFactory(recipient=user, is_read=True)


@pytest.fixture
def user_client(authenticated_client_factory, user):
    return authenticated_client_factory(user)

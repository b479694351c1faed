"""
Project-wide pytest configuration and fixtures.

Tunes settings for fast, hermetic tests and provides the fixtures every app
needs: a customer, a provider, and authenticated API clients.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import pytest


def pytest_configure():
    """Tune Django settings before tests run."""
    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    # Use fast password hasher for tests
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]

    # No Redis in the test environment
    settings.CACHES = {
        "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"}
    }
    settings.SESSION_ENGINE = "django.contrib.sessions.backends.db"

    settings.SECURE_SSL_REDIRECT = False
    settings.CELERY_TASK_ALWAYS_EAGER = True


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_scenarios.py → e2e (full checkout-to-payout journeys)
    - test_views.py, test_*_service.py, test_tasks.py, etc. → integration
    - test_models.py, test_money.py, test_events.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_scenarios.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_handlers.py",
        "test_processor.py",
        "test_intent_service.py",
        "test_capture_coordinator.py",
        "test_payout_service.py",
        "test_account_service.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_money.py",
        "test_conf.py",
        "test_events.py",
        "test_state_machine.py",
        "test_managers.py",
        "test_signals.py",
        "test_stripe_adapter.py",
        "test_exceptions.py",
        "test_service_result.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)


# =============================================================================
# Marketplace Identity Fixtures
# =============================================================================


@pytest.fixture
def customer(db):
    """Profile of a customer who books services."""
    from authentication.tests.factories import UserFactory

    return UserFactory().profile


@pytest.fixture
def other_customer(db):
    """A second customer, for ownership checks."""
    from authentication.tests.factories import UserFactory

    return UserFactory().profile


@pytest.fixture
def provider(db):
    """Profile of a provider who offers services."""
    from authentication.tests.factories import ProviderUserFactory

    return ProviderUserFactory().profile


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client for public endpoints."""
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def authenticated_client_factory(db):
    """
    Factory to create authenticated clients for any user.

    Usage:
        def test_example(authenticated_client_factory, customer):
            client = authenticated_client_factory(customer.user)
    """
    from rest_framework.test import APIClient
    from rest_framework_simplejwt.tokens import RefreshToken

    def _make_client(user):
        client = APIClient()
        refresh = RefreshToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
        return client

    return _make_client


# =============================================================================
# Payments Fixtures
# =============================================================================


@pytest.fixture
def payments_config():
    """
    Configuration used by service tests.

    10% fee, GBP, Friday payouts and a 1.00 minimum transfer.
    """
    from datetime import timedelta
    from decimal import Decimal

    from payments.conf import PaymentsConfig

    return PaymentsConfig(
        fee_rate=Decimal("0.10"),
        currency="gbp",
        payout_weekday=4,
        minimum_payout_amount=100,
        intent_abandon_after=timedelta(hours=24),
        booking_pending_expiry=timedelta(hours=48),
        auto_confirm_bookings=False,
        connect_refresh_url="https://app.example.com/payouts/refresh",
        connect_return_url="https://app.example.com/payouts/done",
    )


@pytest.fixture
def fake_stripe():
    """Recording in-memory Stripe adapter (see payments.tests.fakes)."""
    from payments.tests.fakes import FakeStripeAdapter

    return FakeStripeAdapter()


@pytest.fixture
def stripe_everywhere(mocker, fake_stripe):
    """
    Route every service's default adapter to ``fake_stripe``.

    For views and tasks, which build services without arguments.
    """
    for module in (
        "payments.services.intent_service",
        "payments.services.capture_coordinator",
        "payments.services.payout_service",
        "payments.services.account_service",
        "payments.webhooks.processor",
        "payments.webhooks.handlers",
        "bookings.services",
    ):
        mocker.patch(f"{module}.StripeAdapter", fake_stripe)
    return fake_stripe


@pytest.fixture
def provider_account(db, provider):
    """Onboarded Connect account for the ``provider`` fixture."""
    from payments.tests.factories import ProviderAccountFactory

    return ProviderAccountFactory(profile=provider)


@pytest.fixture
def service(db, provider, provider_account):
    """Active 100.00 GBP service offered by the onboarded ``provider``."""
    from payments.tests.factories import ServiceFactory

    return ServiceFactory(provider=provider, base_price=10000, currency="gbp")


@pytest.fixture
def booking_factory(db, customer, service):
    """
    Build paid bookings between ``customer`` and ``provider`` in any status.

    Usage:
        def test_example(booking_factory):
            booking = booking_factory(BookingStatus.IN_PROGRESS)
    """
    from payments.tests.factories import BookingFactory

    def _make(status="pending", **kwargs):
        return BookingFactory(
            status=status,
            payment_intent__customer=customer,
            payment_intent__service=service,
            **kwargs,
        )

    return _make

"""
Pytest fixtures for payment tests.

Fixtures provide payment intents and payouts in the states the services
act on. Identity, service and adapter fixtures (customer, provider,
service, fake_stripe, payments_config) come from app/conftest.py.

Usage:
    def test_capture(coordinator, authorized_intent, booking_draft):
        result = coordinator.capture_and_create_booking(
            authorized_intent.stripe_payment_intent_id,
            booking_draft,
            authorized_intent.customer,
        )
"""

from datetime import timedelta

import pytest
from django.utils import timezone

from bookings.state_machine import BookingStatus
from payments.services import (
    EscrowCaptureCoordinator,
    PaymentIntentService,
    PayoutService,
    ProviderAccountService,
)
from payments.state_machines import PaymentIntentStatus
from payments.tests.factories import PaymentIntentFactory, PayoutRecordFactory


# =============================================================================
# Services wired to the fake adapter
# =============================================================================


@pytest.fixture
def intent_service(fake_stripe, payments_config):
    return PaymentIntentService(stripe_adapter=fake_stripe, config=payments_config)


@pytest.fixture
def coordinator(fake_stripe, payments_config):
    return EscrowCaptureCoordinator(stripe_adapter=fake_stripe, config=payments_config)


@pytest.fixture
def payout_service(fake_stripe, payments_config):
    return PayoutService(stripe_adapter=fake_stripe, config=payments_config)


@pytest.fixture
def account_service(fake_stripe, payments_config):
    return ProviderAccountService(stripe_adapter=fake_stripe, config=payments_config)


# =============================================================================
# PaymentIntent Fixtures
# =============================================================================


@pytest.fixture
def authorized_intent(db, customer, service):
    """Intent the customer has confirmed; funds held, awaiting capture."""
    return PaymentIntentFactory(
        customer=customer,
        service=service,
        status=PaymentIntentStatus.REQUIRES_CAPTURE,
    )


@pytest.fixture
def unconfirmed_intent(db, customer, service):
    """Intent still waiting for the customer's card."""
    return PaymentIntentFactory(
        customer=customer,
        service=service,
        status=PaymentIntentStatus.REQUIRES_PAYMENT_METHOD,
    )


@pytest.fixture
def booking_draft(service):
    """Booking details as the app submits them with the capture request."""
    return {
        "service_id": str(service.pk),
        "provider_id": str(service.provider_id),
        "scheduled_date": (timezone.localdate() + timedelta(days=7)).isoformat(),
        "start_time": "10:00",
        "end_time": "11:00",
        "customer_notes": "Ground floor flat",
    }


# =============================================================================
# Booking & Payout Fixtures
# =============================================================================


@pytest.fixture
def completed_booking(booking_factory):
    """Paid booking the provider has completed, no payout yet."""
    return booking_factory(BookingStatus.COMPLETED)


@pytest.fixture
def processing_payout(db, completed_booking):
    """Payout whose transfer has been sent and awaits payout.paid."""
    return PayoutRecordFactory(booking=completed_booking)

"""
Pytest fixtures for booking tests.

Bookings are built with the ``booking_factory`` fixture from
app/conftest.py; this module wires BookingService to the fake adapter.
"""

import pytest

from bookings.services import BookingService


@pytest.fixture
def booking_service(fake_stripe, payments_config):
    return BookingService(stripe_adapter=fake_stripe, config=payments_config)

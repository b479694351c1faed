"""
Payments configuration snapshot.

Settings are read once per process into an immutable PaymentsConfig and
passed to services, so a fee rate or payout day cannot change underneath a
running request.

Usage:
    from payments.conf import get_payments_config

    config = get_payments_config()
    split = compute_split(base_amount, config.fee_rate)

Tests that override settings call ``get_payments_config.cache_clear()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from functools import lru_cache

from django.conf import settings


@dataclass(frozen=True)
class PaymentsConfig:
    """
    Payment, payout and booking lifecycle configuration.

    Attributes:
        fee_rate: Platform fee as a fraction (PLATFORM_FEE_PERCENT / 100)
        currency: Lowercase ISO currency code for every charge
        payout_weekday: Weekly payout day, 0=Monday ... 6=Sunday
        minimum_payout_amount: Smallest transfer attempted, in minor units
        intent_abandon_after: Age after which unconfirmed intents are canceled
        booking_pending_expiry: Age after which unanswered bookings expire
        auto_confirm_bookings: Confirm bookings immediately after capture
        connect_refresh_url: Stripe onboarding refresh redirect
        connect_return_url: Stripe onboarding completion redirect
    """

    fee_rate: Decimal
    currency: str
    payout_weekday: int
    minimum_payout_amount: int
    intent_abandon_after: timedelta
    booking_pending_expiry: timedelta
    auto_confirm_bookings: bool
    connect_refresh_url: str
    connect_return_url: str

    def __post_init__(self):
        if not Decimal("0") <= self.fee_rate < Decimal("1"):
            raise ValueError("PLATFORM_FEE_PERCENT must be between 0 and 99")
        if not 0 <= self.payout_weekday <= 6:
            raise ValueError("PAYOUT_WEEKDAY must be between 0 (Monday) and 6 (Sunday)")

    def next_payout_date(self, today: date) -> date:
        """
        Next configured payout weekday strictly after ``today``.

        Example:
            With payout_weekday=4 (Friday), Friday 2026-10-16 -> 2026-10-23
            and Wednesday 2026-10-14 -> 2026-10-16.
        """
        days_ahead = (self.payout_weekday - today.weekday()) % 7
        if days_ahead == 0:
            days_ahead = 7
        return today + timedelta(days=days_ahead)


@lru_cache(maxsize=1)
def get_payments_config() -> PaymentsConfig:
    """Build the configuration from Django settings (cached per process)."""
    return PaymentsConfig(
        fee_rate=Decimal(settings.PLATFORM_FEE_PERCENT) / Decimal(100),
        currency=settings.PAYMENTS_CURRENCY.lower(),
        payout_weekday=settings.PAYOUT_WEEKDAY,
        minimum_payout_amount=settings.MINIMUM_PAYOUT_AMOUNT,
        intent_abandon_after=timedelta(
            hours=settings.PAYMENT_INTENT_ABANDON_AFTER_HOURS
        ),
        booking_pending_expiry=timedelta(hours=settings.BOOKING_PENDING_EXPIRY_HOURS),
        auto_confirm_bookings=settings.BOOKINGS_AUTO_CONFIRM,
        connect_refresh_url=settings.STRIPE_CONNECT_REFRESH_URL,
        connect_return_url=settings.STRIPE_CONNECT_RETURN_URL,
    )

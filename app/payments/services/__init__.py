"""
Payment services for the escrow flow.

This module provides:
- PaymentIntentService: Authorizes the booking total at checkout
- EscrowCaptureCoordinator: Captures funds and records the booking
- PayoutService: Transfers the provider's share after completion
- ProviderAccountService: Connect onboarding for providers

Usage:
    from payments.services import EscrowCaptureCoordinator, PaymentIntentService

    created = PaymentIntentService().create_intent(
        customer=profile,
        service_id=service.id,
        provider_id=service.provider_id,
        base_amount=10000,
        currency="gbp",
        idempotency_key=key,
    )

    result = EscrowCaptureCoordinator().capture_and_create_booking(
        payment_intent_id=created.data.payment_intent_id,
        booking_draft=draft,
        customer=profile,
    )
"""

from payments.services.account_service import OnboardingLink, ProviderAccountService
from payments.services.capture_coordinator import BookingDraft, EscrowCaptureCoordinator
from payments.services.intent_service import CreatedIntent, PaymentIntentService
from payments.services.payout_service import PayoutService

__all__ = [
    "BookingDraft",
    "CreatedIntent",
    "EscrowCaptureCoordinator",
    "OnboardingLink",
    "PaymentIntentService",
    "PayoutService",
    "ProviderAccountService",
]

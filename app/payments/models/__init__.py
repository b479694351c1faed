"""
Payment domain models.

This module contains all payment-related models:
- PaymentIntent: Local record of a manual-capture Stripe PaymentIntent
- PayoutRecord: Provider's share of a completed booking sent via Stripe Connect
- ProviderAccount: Stripe Connect accounts for providers
- Subscription: Provider platform subscriptions
- WebhookEvent: Stripe webhook event tracking for idempotent processing
"""

from payments.models.payment_intent import PaymentIntent
from payments.models.payout_record import PayoutRecord
from payments.models.provider_account import ProviderAccount
from payments.models.subscription import Subscription
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "PaymentIntent",
    "PayoutRecord",
    "ProviderAccount",
    "Subscription",
    "WebhookEvent",
]

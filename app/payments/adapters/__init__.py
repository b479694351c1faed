"""
Payment adapters for external services.

All external payment API calls go through these adapters to ensure
consistent error handling, timeouts, idempotency, and observability.

Usage:
    from payments.adapters import StripeAdapter, CreatePaymentIntentParams

    result = StripeAdapter.create_payment_intent(
        CreatePaymentIntentParams(
            amount=11000,
            currency="gbp",
            idempotency_key="checkout-7f3a",
        )
    )
"""

from payments.adapters.stripe_adapter import (
    AccountResult,
    CreatePaymentIntentParams,
    IdempotencyKeyGenerator,
    PaymentIntentResult,
    RefundResult,
    StripeAdapter,
    TransferResult,
    backoff_delay,
    is_retryable_stripe_error,
    retry_on_transient,
)

__all__ = [
    "AccountResult",
    "CreatePaymentIntentParams",
    "IdempotencyKeyGenerator",
    "PaymentIntentResult",
    "RefundResult",
    "StripeAdapter",
    "TransferResult",
    "backoff_delay",
    "is_retryable_stripe_error",
    "retry_on_transient",
]

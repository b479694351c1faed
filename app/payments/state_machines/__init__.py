"""
State enums for payment models.

PayoutRecord uses these with django-fsm; the other models store them in
plain choice fields updated with compare-and-set queries.
"""

from payments.state_machines.states import (
    AWAITING_CUSTOMER_STATUSES,
    PaymentIntentStatus,
    PayoutStatus,
    ProviderAccountStatus,
    SubscriptionStatus,
    WebhookEventStatus,
)

__all__ = [
    "AWAITING_CUSTOMER_STATUSES",
    "PaymentIntentStatus",
    "PayoutStatus",
    "ProviderAccountStatus",
    "SubscriptionStatus",
    "WebhookEventStatus",
]

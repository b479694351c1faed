"""
Typed Stripe webhook events.

Verified payloads are parsed once into frozen dataclasses so handlers work
with named fields instead of digging through nested dicts. Every event type
we act on has its own class; anything else becomes UnhandledEvent, which is
logged and acknowledged.

Usage:
    from payments.webhooks.events import PayoutPaid, parse_event

    event = parse_event(payload)
    if isinstance(event, PayoutPaid):
        ...
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Union

from payments.exceptions import PaymentValidationError


def _timestamp(value: int | None) -> datetime | None:
    """Stripe sends unix seconds; None stays None."""
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


# =============================================================================
# Base
# =============================================================================


@dataclass(frozen=True)
class StripeEvent:
    """
    Fields common to every event.

    Attributes:
        event_id: Stripe Event ID (evt_xxx), the idempotency key
        event_type: Stripe event type string
        account_id: Connected account the event belongs to (Connect events)
        created: When Stripe created the event
    """

    event_id: str
    event_type: str
    account_id: str | None = None
    created: datetime | None = None


# =============================================================================
# Payment Intents
# =============================================================================


@dataclass(frozen=True)
class PaymentIntentEvent(StripeEvent):
    payment_intent_id: str = ""
    status: str = ""
    amount: int = 0
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentIntentSucceeded(PaymentIntentEvent):
    amount_received: int = 0


@dataclass(frozen=True)
class PaymentIntentFailed(PaymentIntentEvent):
    failure_code: str = ""
    failure_message: str = ""


@dataclass(frozen=True)
class PaymentIntentCanceled(PaymentIntentEvent):
    cancellation_reason: str = ""


@dataclass(frozen=True)
class PaymentIntentRequiresAction(PaymentIntentEvent):
    pass


# =============================================================================
# Connect Accounts
# =============================================================================


@dataclass(frozen=True)
class AccountUpdated(StripeEvent):
    """account.updated; ``account`` is the raw Account object."""

    stripe_account_id: str = ""
    account: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CapabilityUpdated(StripeEvent):
    """capability.updated; ``capability`` is e.g. card_payments or transfers."""

    stripe_account_id: str = ""
    capability: str = ""
    status: str = ""


# =============================================================================
# Subscriptions & Invoices
# =============================================================================


@dataclass(frozen=True)
class SubscriptionChanged(StripeEvent):
    """customer.subscription.created / updated / deleted."""

    subscription_id: str = ""
    customer_id: str = ""
    status: str = ""
    price_id: str = ""
    current_period_end: datetime | None = None
    trial_end: datetime | None = None
    cancel_at_period_end: bool = False
    canceled_at: datetime | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    deleted: bool = False


@dataclass(frozen=True)
class InvoicePaymentSucceeded(StripeEvent):
    invoice_id: str = ""
    subscription_id: str | None = None
    customer_id: str = ""


@dataclass(frozen=True)
class InvoicePaymentFailed(StripeEvent):
    invoice_id: str = ""
    subscription_id: str | None = None
    customer_id: str = ""


# =============================================================================
# Payouts (connected account bank payouts)
# =============================================================================


@dataclass(frozen=True)
class PayoutEvent(StripeEvent):
    payout_id: str = ""
    amount: int = 0
    arrival_date: datetime | None = None
    payout_created: datetime | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PayoutPaid(PayoutEvent):
    pass


@dataclass(frozen=True)
class PayoutFailed(PayoutEvent):
    failure_code: str = ""
    failure_message: str = ""


# =============================================================================
# Fallback
# =============================================================================


@dataclass(frozen=True)
class UnhandledEvent(StripeEvent):
    """Any event type without a parser; acknowledged without side effects."""

    raw_type: str = ""


WebhookEventType = Union[
    PaymentIntentSucceeded,
    PaymentIntentFailed,
    PaymentIntentCanceled,
    PaymentIntentRequiresAction,
    AccountUpdated,
    CapabilityUpdated,
    SubscriptionChanged,
    InvoicePaymentSucceeded,
    InvoicePaymentFailed,
    PayoutPaid,
    PayoutFailed,
    UnhandledEvent,
]


# =============================================================================
# Parsers
# =============================================================================


def _payment_intent_fields(obj: dict[str, Any]) -> dict[str, Any]:
    return {
        "payment_intent_id": obj.get("id", ""),
        "status": obj.get("status") or "",
        "amount": obj.get("amount") or 0,
        "metadata": obj.get("metadata") or {},
    }


def _parse_payment_intent_succeeded(base, obj):
    return PaymentIntentSucceeded(
        **base,
        **_payment_intent_fields(obj),
        amount_received=obj.get("amount_received") or 0,
    )


def _parse_payment_intent_failed(base, obj):
    error = obj.get("last_payment_error") or {}
    return PaymentIntentFailed(
        **base,
        **_payment_intent_fields(obj),
        failure_code=error.get("code") or "",
        failure_message=error.get("message") or "",
    )


def _parse_payment_intent_canceled(base, obj):
    return PaymentIntentCanceled(
        **base,
        **_payment_intent_fields(obj),
        cancellation_reason=obj.get("cancellation_reason") or "",
    )


def _parse_payment_intent_requires_action(base, obj):
    return PaymentIntentRequiresAction(**base, **_payment_intent_fields(obj))


def _parse_account_updated(base, obj):
    return AccountUpdated(**base, stripe_account_id=obj.get("id", ""), account=obj)


def _parse_capability_updated(base, obj):
    return CapabilityUpdated(
        **base,
        stripe_account_id=obj.get("account") or base.get("account_id") or "",
        capability=obj.get("id", ""),
        status=obj.get("status") or "",
    )


def _subscription_price_id(obj: dict[str, Any]) -> str:
    items = (obj.get("items") or {}).get("data") or []
    if not items:
        return ""
    return (items[0].get("price") or {}).get("id", "")


def _parse_subscription(base, obj):
    deleted = base["event_type"] == "customer.subscription.deleted"
    return SubscriptionChanged(
        **base,
        subscription_id=obj.get("id", ""),
        customer_id=obj.get("customer") or "",
        status=obj.get("status") or "",
        price_id=_subscription_price_id(obj),
        current_period_end=_timestamp(obj.get("current_period_end")),
        trial_end=_timestamp(obj.get("trial_end")),
        cancel_at_period_end=bool(obj.get("cancel_at_period_end")),
        canceled_at=_timestamp(obj.get("canceled_at")),
        metadata=obj.get("metadata") or {},
        deleted=deleted,
    )


def _parse_invoice_succeeded(base, obj):
    return InvoicePaymentSucceeded(
        **base,
        invoice_id=obj.get("id", ""),
        subscription_id=obj.get("subscription"),
        customer_id=obj.get("customer") or "",
    )


def _parse_invoice_failed(base, obj):
    return InvoicePaymentFailed(
        **base,
        invoice_id=obj.get("id", ""),
        subscription_id=obj.get("subscription"),
        customer_id=obj.get("customer") or "",
    )


def _payout_fields(obj: dict[str, Any]) -> dict[str, Any]:
    return {
        "payout_id": obj.get("id", ""),
        "amount": obj.get("amount") or 0,
        "arrival_date": _timestamp(obj.get("arrival_date")),
        "payout_created": _timestamp(obj.get("created")),
        "metadata": obj.get("metadata") or {},
    }


def _parse_payout_paid(base, obj):
    return PayoutPaid(**base, **_payout_fields(obj))


def _parse_payout_failed(base, obj):
    return PayoutFailed(
        **base,
        **_payout_fields(obj),
        failure_code=obj.get("failure_code") or "",
        failure_message=obj.get("failure_message") or "",
    )


EVENT_PARSERS: dict[str, Callable[[dict[str, Any], dict[str, Any]], StripeEvent]] = {
    "payment_intent.succeeded": _parse_payment_intent_succeeded,
    "payment_intent.payment_failed": _parse_payment_intent_failed,
    "payment_intent.canceled": _parse_payment_intent_canceled,
    "payment_intent.requires_action": _parse_payment_intent_requires_action,
    "account.updated": _parse_account_updated,
    "capability.updated": _parse_capability_updated,
    "customer.subscription.created": _parse_subscription,
    "customer.subscription.updated": _parse_subscription,
    "customer.subscription.deleted": _parse_subscription,
    "invoice.payment_succeeded": _parse_invoice_succeeded,
    "invoice.payment_failed": _parse_invoice_failed,
    "payout.paid": _parse_payout_paid,
    "payout.failed": _parse_payout_failed,
}


def parse_event(payload: dict[str, Any]) -> WebhookEventType:
    """
    Parse a verified Stripe event payload.

    Args:
        payload: Event dict as returned by signature verification

    Returns:
        The typed event, or UnhandledEvent for types we do not act on

    Raises:
        PaymentValidationError: Payload has no id, no type, or no data.object
    """
    event_id = payload.get("id")
    event_type = payload.get("type")
    if not event_id or not event_type:
        raise PaymentValidationError(
            "Webhook event is missing id or type",
            details={"event_id": event_id, "event_type": event_type},
        )

    base = {
        "event_id": event_id,
        "event_type": event_type,
        "account_id": payload.get("account"),
        "created": _timestamp(payload.get("created")),
    }

    parser = EVENT_PARSERS.get(event_type)
    if parser is None:
        return UnhandledEvent(**base, raw_type=event_type)

    obj = (payload.get("data") or {}).get("object")
    if not isinstance(obj, dict):
        raise PaymentValidationError(
            "Webhook event has no data.object",
            details={"event_id": event_id, "event_type": event_type},
        )
    return parser(base, obj)

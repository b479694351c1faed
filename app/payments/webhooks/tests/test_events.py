"""
Tests for parsing Stripe payloads into typed events.
"""

from datetime import datetime, timezone

import pytest

from payments.exceptions import PaymentValidationError
from payments.webhooks.events import (
    AccountUpdated,
    CapabilityUpdated,
    InvoicePaymentFailed,
    PaymentIntentFailed,
    PaymentIntentSucceeded,
    PayoutFailed,
    PayoutPaid,
    SubscriptionChanged,
    UnhandledEvent,
    parse_event,
)


class TestParseEvent:
    def test_payment_intent_succeeded(self, stripe_event):
        event = parse_event(
            stripe_event(
                "payment_intent.succeeded",
                {
                    "id": "pi_123",
                    "status": "succeeded",
                    "amount": 11000,
                    "amount_received": 11000,
                    "metadata": {"service_id": "svc"},
                },
                event_id="evt_1",
            )
        )

        assert isinstance(event, PaymentIntentSucceeded)
        assert event.event_id == "evt_1"
        assert event.payment_intent_id == "pi_123"
        assert event.amount_received == 11000
        assert event.metadata == {"service_id": "svc"}

    def test_payment_failed_reads_last_error(self, stripe_event):
        event = parse_event(
            stripe_event(
                "payment_intent.payment_failed",
                {
                    "id": "pi_123",
                    "last_payment_error": {
                        "code": "card_declined",
                        "message": "Your card was declined.",
                    },
                },
            )
        )

        assert isinstance(event, PaymentIntentFailed)
        assert event.failure_code == "card_declined"
        assert event.failure_message == "Your card was declined."

    def test_account_updated_keeps_raw_account(self, stripe_event):
        obj = {"id": "acct_1", "charges_enabled": True}

        event = parse_event(stripe_event("account.updated", obj))

        assert isinstance(event, AccountUpdated)
        assert event.stripe_account_id == "acct_1"
        assert event.account == obj

    def test_capability_updated_uses_event_account(self, stripe_event):
        event = parse_event(
            stripe_event(
                "capability.updated",
                {"id": "transfers", "status": "active"},
                account="acct_1",
            )
        )

        assert isinstance(event, CapabilityUpdated)
        assert event.stripe_account_id == "acct_1"
        assert event.capability == "transfers"

    def test_subscription_deleted(self, stripe_event):
        event = parse_event(
            stripe_event(
                "customer.subscription.deleted",
                {
                    "id": "sub_1",
                    "customer": "cus_1",
                    "status": "canceled",
                    "items": {"data": [{"price": {"id": "price_pro"}}]},
                    "current_period_end": 1790000000,
                },
            )
        )

        assert isinstance(event, SubscriptionChanged)
        assert event.deleted is True
        assert event.price_id == "price_pro"
        assert event.current_period_end == datetime.fromtimestamp(
            1790000000, tz=timezone.utc
        )

    def test_invoice_payment_failed(self, stripe_event):
        event = parse_event(
            stripe_event(
                "invoice.payment_failed",
                {"id": "in_1", "subscription": "sub_1", "customer": "cus_1"},
            )
        )

        assert isinstance(event, InvoicePaymentFailed)
        assert event.subscription_id == "sub_1"

    def test_payout_paid(self, stripe_event):
        event = parse_event(
            stripe_event(
                "payout.paid",
                {
                    "id": "po_1",
                    "amount": 10000,
                    "arrival_date": 1792000000,
                    "created": 1791900000,
                    "metadata": {"payout_id": "abc"},
                },
                account="acct_1",
            )
        )

        assert isinstance(event, PayoutPaid)
        assert event.account_id == "acct_1"
        assert event.payout_id == "po_1"
        assert event.metadata == {"payout_id": "abc"}
        assert event.payout_created == datetime.fromtimestamp(1791900000, tz=timezone.utc)

    def test_payout_failed(self, stripe_event):
        event = parse_event(
            stripe_event(
                "payout.failed",
                {"id": "po_1", "failure_code": "account_closed"},
            )
        )

        assert isinstance(event, PayoutFailed)
        assert event.failure_code == "account_closed"

    def test_unknown_type_is_unhandled(self, stripe_event):
        """Unknown types parse even without data.object."""
        event = parse_event(stripe_event("customer.created", None, event_id="evt_x"))

        assert isinstance(event, UnhandledEvent)
        assert event.raw_type == "customer.created"
        assert event.event_id == "evt_x"

    @pytest.mark.parametrize("missing", ["id", "type"])
    def test_missing_id_or_type(self, stripe_event, missing):
        payload = stripe_event("payout.paid", {"id": "po_1"})
        del payload[missing]

        with pytest.raises(PaymentValidationError):
            parse_event(payload)

    def test_known_type_without_object(self, stripe_event):
        with pytest.raises(PaymentValidationError):
            parse_event(stripe_event("payout.paid", None))

    def test_events_are_immutable(self, stripe_event):
        event = parse_event(stripe_event("payout.paid", {"id": "po_1"}))

        with pytest.raises(AttributeError):
            event.payout_id = "po_2"

"""
Pytest fixtures for webhook tests.

Provides Stripe event payload builders and a client helper that posts
signed deliveries to the webhook endpoint.
"""

import json
import time

import pytest
from django.urls import reverse

from payments.tests.fakes import sign_payload


WEBHOOK_SECRET = "whsec_test_secret"


# =============================================================================
# Payload Builders
# =============================================================================


@pytest.fixture
def stripe_event():
    """
    Build a Stripe event payload.

    Usage:
        payload = stripe_event("payout.paid", {"id": "po_1"}, account="acct_1")
    """
    counter = {"n": 0}

    def _create(event_type: str, obj: dict | None, event_id: str | None = None, **extra):
        counter["n"] += 1
        payload = {
            "id": event_id or f"evt_test_{counter['n']:04d}",
            "object": "event",
            "type": event_type,
            "created": int(time.time()),
            "data": {"object": obj},
            **extra,
        }
        if obj is None:
            del payload["data"]
        return payload

    return _create


@pytest.fixture
def intent_event(stripe_event):
    """Build a payment_intent.* event for a local intent."""

    def _create(event_type: str, intent, event_id: str | None = None, **fields):
        obj = {
            "id": intent.stripe_payment_intent_id,
            "object": "payment_intent",
            "amount": intent.total_amount,
            "metadata": {},
            **fields,
        }
        return stripe_event(event_type, obj, event_id=event_id)

    return _create


# =============================================================================
# Delivery Helpers
# =============================================================================


@pytest.fixture
def deliver(client, settings):
    """
    POST a payload to the webhook endpoint with a valid signature.

    Pass ``signature`` to override the header (e.g. to send a bad one).
    """
    settings.STRIPE_WEBHOOK_SECRET = WEBHOOK_SECRET
    settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS = 300

    def _deliver(payload: dict, signature: str | None = None):
        body = json.dumps(payload).encode()
        header = signature if signature is not None else sign_payload(body, WEBHOOK_SECRET)
        return client.post(
            reverse("payments:stripe_webhook"),
            data=body,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=header,
        )

    return _deliver

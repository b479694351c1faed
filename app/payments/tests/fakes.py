"""
In-memory Stripe adapter for service tests.

FakeStripeAdapter has the same method signatures as StripeAdapter and is
passed to services through their ``stripe_adapter`` argument. It records
every call, honours idempotency keys the way Stripe does (same key, same
object) and can be told to raise for any method.

Usage:
    stripe = FakeStripeAdapter()
    stripe.fail("create_transfer", StripeInvalidAccountError("No such account"))

    result = PayoutService(stripe_adapter=stripe).initiate_payout(booking)
    assert stripe.call_count("create_transfer") == 1
"""

from __future__ import annotations

import hashlib
import hmac
import itertools
import json
import time
from collections import defaultdict
from typing import Any

from payments.adapters import (
    AccountResult,
    CreatePaymentIntentParams,
    PaymentIntentResult,
    RefundResult,
    TransferResult,
)
from payments.exceptions import InvalidSignatureError

VALID_SIGNATURE = "t=1,v1=valid"


def sign_payload(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header the real StripeAdapter accepts."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


class FakeStripeAdapter:
    """
    Recording stand-in for StripeAdapter.

    Attributes:
        calls: Method name -> list of keyword arguments per call
        errors: Method name -> exception raised on every call
        capture_status: Status returned by capture_payment_intent
        retrieve_status: Status returned by retrieve_payment_intent
        account_flags: Capability flags returned for connected accounts
        payout_transfers: Bank payout id -> transfer ids it settled
    """

    def __init__(self):
        self.calls: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.errors: dict[str, Exception] = {}
        self.capture_status = "succeeded"
        self.retrieve_status = "requires_capture"
        self.account_flags = {
            "charges_enabled": False,
            "details_submitted": False,
            "payouts_enabled": False,
        }
        self.payout_transfers: dict[str, list[str]] = {}
        self._ids = itertools.count(1)
        self._by_key: dict[tuple[str, str], Any] = {}

    # =========================================================================
    # Test Helpers
    # =========================================================================

    def fail(self, method: str, error: Exception) -> None:
        self.errors[method] = error

    def succeed(self, method: str) -> None:
        self.errors.pop(method, None)

    def call_count(self, method: str) -> int:
        return len(self.calls[method])

    def last_call(self, method: str) -> dict[str, Any]:
        return self.calls[method][-1]

    def _record(self, method: str, **kwargs) -> None:
        self.calls[method].append(kwargs)
        error = self.errors.get(method)
        if error is not None:
            raise error

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}_fake{next(self._ids)}"

    def _idempotent(self, method: str, key: str, build):
        """Return the object created earlier with this key, like Stripe does."""
        if (method, key) not in self._by_key:
            self._by_key[(method, key)] = build()
        return self._by_key[(method, key)]

    # =========================================================================
    # Adapter Interface
    # =========================================================================

    def create_customer(self, email, idempotency_key, name="", metadata=None) -> str:
        self._record(
            "create_customer",
            email=email,
            idempotency_key=idempotency_key,
            name=name,
            metadata=metadata,
        )
        return self._idempotent(
            "create_customer", idempotency_key, lambda: self._next_id("cus")
        )

    def create_payment_intent(
        self, params: CreatePaymentIntentParams, trace_id=None
    ) -> PaymentIntentResult:
        self._record("create_payment_intent", params=params)

        def build():
            intent_id = self._next_id("pi")
            return PaymentIntentResult(
                id=intent_id,
                status="requires_payment_method",
                amount=params.amount,
                currency=params.currency,
                client_secret=f"{intent_id}_secret_fake",
                metadata=dict(params.metadata),
            )

        return self._idempotent("create_payment_intent", params.idempotency_key, build)

    def capture_payment_intent(
        self, payment_intent_id, idempotency_key, trace_id=None
    ) -> PaymentIntentResult:
        self._record(
            "capture_payment_intent",
            payment_intent_id=payment_intent_id,
            idempotency_key=idempotency_key,
        )
        return PaymentIntentResult(
            id=payment_intent_id,
            status=self.capture_status,
            amount=0,
            currency="gbp",
            captured=self.capture_status == "succeeded",
        )

    def retrieve_payment_intent(self, payment_intent_id, trace_id=None):
        self._record("retrieve_payment_intent", payment_intent_id=payment_intent_id)
        return PaymentIntentResult(
            id=payment_intent_id, status=self.retrieve_status, amount=0, currency="gbp"
        )

    def cancel_payment_intent(
        self, payment_intent_id, idempotency_key, reason="abandoned", trace_id=None
    ) -> PaymentIntentResult:
        self._record(
            "cancel_payment_intent",
            payment_intent_id=payment_intent_id,
            idempotency_key=idempotency_key,
            reason=reason,
        )
        return PaymentIntentResult(
            id=payment_intent_id, status="canceled", amount=0, currency="gbp"
        )

    def create_transfer(
        self,
        amount,
        destination_account,
        idempotency_key,
        currency,
        transfer_group=None,
        metadata=None,
        trace_id=None,
    ) -> TransferResult:
        self._record(
            "create_transfer",
            amount=amount,
            destination_account=destination_account,
            idempotency_key=idempotency_key,
            currency=currency,
            transfer_group=transfer_group,
            metadata=metadata,
        )
        return self._idempotent(
            "create_transfer",
            idempotency_key,
            lambda: TransferResult(
                id=self._next_id("tr"),
                amount=amount,
                currency=currency,
                destination_account=destination_account,
                transfer_group=transfer_group,
                metadata=dict(metadata or {}),
            ),
        )

    def create_refund(
        self,
        payment_intent_id,
        idempotency_key,
        amount=None,
        reason=None,
        metadata=None,
        trace_id=None,
    ) -> RefundResult:
        self._record(
            "create_refund",
            payment_intent_id=payment_intent_id,
            idempotency_key=idempotency_key,
            amount=amount,
            reason=reason,
            metadata=metadata,
        )
        return self._idempotent(
            "create_refund",
            idempotency_key,
            lambda: RefundResult(
                id=self._next_id("re"),
                amount=amount or 0,
                currency="gbp",
                status="succeeded",
                payment_intent_id=payment_intent_id,
            ),
        )

    def create_express_account(
        self, email, idempotency_key, country="GB", metadata=None
    ) -> AccountResult:
        self._record(
            "create_express_account",
            email=email,
            idempotency_key=idempotency_key,
            country=country,
            metadata=metadata,
        )
        return self._idempotent(
            "create_express_account",
            idempotency_key,
            lambda: AccountResult(id=self._next_id("acct"), **self.account_flags),
        )

    def create_account_link(self, account_id, refresh_url, return_url) -> str:
        self._record(
            "create_account_link",
            account_id=account_id,
            refresh_url=refresh_url,
            return_url=return_url,
        )
        return f"https://connect.stripe.com/setup/e/{account_id}/fake"

    def retrieve_account(self, account_id) -> AccountResult:
        self._record("retrieve_account", account_id=account_id)
        return AccountResult(id=account_id, **self.account_flags)

    def list_payout_transfer_ids(self, payout_id, account_id) -> list[str]:
        self._record("list_payout_transfer_ids", payout_id=payout_id, account_id=account_id)
        return list(self.payout_transfers.get(payout_id, []))

    def verify_webhook_signature(self, payload: bytes, signature: str) -> dict[str, Any]:
        self._record("verify_webhook_signature", signature=signature)
        if signature != VALID_SIGNATURE:
            raise InvalidSignatureError("Invalid webhook signature")
        return json.loads(payload)

"""
Tests for Stripe adapter.

Tests cover:
- CreatePaymentIntentParams validation
- Idempotency key generation
- Error translation for each Stripe exception type
- Retry of transient errors on idempotent calls
- Successful API operations and the parameters sent to Stripe
- Webhook signature verification with real HMAC signatures
"""

import json
import time
import uuid

import pytest
import stripe
from django.test import override_settings

from payments.adapters import (
    CreatePaymentIntentParams,
    IdempotencyKeyGenerator,
    StripeAdapter,
    backoff_delay,
    is_retryable_stripe_error,
)
from payments.exceptions import (
    InvalidSignatureError,
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeInsufficientFundsError,
    StripeInvalidAccountError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
)
from payments.tests.fakes import sign_payload


def intent_params(**overrides):
    values = {
        "amount": 11000,
        "currency": "gbp",
        "idempotency_key": "checkout-abc",
    }
    values.update(overrides)
    return CreatePaymentIntentParams(**values)


# =============================================================================
# CreatePaymentIntentParams Tests
# =============================================================================


class TestCreatePaymentIntentParams:
    def test_defaults_to_manual_capture(self):
        params = intent_params()

        assert params.capture_method == "manual"
        assert params.payment_method_types == ["card"]
        assert params.metadata == {}

    @pytest.mark.parametrize("amount", [0, -100])
    def test_amount_must_be_positive(self, amount):
        with pytest.raises(ValueError, match="amount must be positive"):
            intent_params(amount=amount)

    def test_idempotency_key_required(self):
        with pytest.raises(ValueError, match="idempotency_key is required"):
            intent_params(idempotency_key="")

    def test_currency_required(self):
        with pytest.raises(ValueError, match="currency is required"):
            intent_params(currency="")


# =============================================================================
# IdempotencyKeyGenerator Tests
# =============================================================================


class TestIdempotencyKeyGenerator:
    def test_key_format(self):
        entity_id = uuid.uuid4()

        key = IdempotencyKeyGenerator.generate("transfer", entity_id)

        operation, entity, attempt, digest = key.split(":")
        assert operation == "transfer"
        assert entity == str(entity_id)
        assert attempt == "1"
        assert len(digest) == 8

    def test_same_inputs_produce_same_key(self):
        """A retried operation must replay the original Stripe response."""
        entity_id = uuid.uuid4()

        assert IdempotencyKeyGenerator.generate(
            "refund", entity_id
        ) == IdempotencyKeyGenerator.generate("refund", entity_id)

    def test_attempt_changes_key(self):
        entity_id = uuid.uuid4()

        first = IdempotencyKeyGenerator.generate("transfer", entity_id, attempt=1)
        second = IdempotencyKeyGenerator.generate("transfer", entity_id, attempt=2)

        assert first != second
        assert second.startswith(f"transfer:{entity_id}:2:")

    def test_operation_changes_key(self):
        entity_id = uuid.uuid4()

        assert IdempotencyKeyGenerator.generate(
            "capture", entity_id
        ) != IdempotencyKeyGenerator.generate("refund", entity_id)


# =============================================================================
# Retry Helper Tests
# =============================================================================


class TestIsRetryableStripeError:
    @pytest.mark.parametrize(
        "error_class",
        [StripeRateLimitError, StripeAPIUnavailableError, StripeTimeoutError],
    )
    def test_transient_errors(self, error_class):
        assert is_retryable_stripe_error(error_class("x")) is True

    @pytest.mark.parametrize(
        "error_class",
        [
            StripeCardDeclinedError,
            StripeInsufficientFundsError,
            StripeInvalidAccountError,
            StripeInvalidRequestError,
        ],
    )
    def test_permanent_errors(self, error_class):
        assert is_retryable_stripe_error(error_class("x")) is False

    def test_non_stripe_errors(self):
        assert is_retryable_stripe_error(ValueError("x")) is False


class TestBackoffDelay:
    def test_exponential_growth(self, mocker):
        mocker.patch("payments.adapters.stripe_adapter.random.uniform", return_value=0)

        assert [backoff_delay(n) for n in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_respects_max_delay(self, mocker):
        mocker.patch("payments.adapters.stripe_adapter.random.uniform", return_value=0)

        assert backoff_delay(10, max_delay=30.0) == 30.0

    def test_jitter_is_at_most_a_quarter(self):
        for _ in range(20):
            assert 4.0 <= backoff_delay(2) <= 5.0


# =============================================================================
# Error Translation Tests
# =============================================================================


class TestStripeAdapterErrorTranslation:
    """Stripe SDK exceptions become payment domain exceptions."""

    def test_card_declined(self, mock_stripe_payment_intent, card_error):
        mock_stripe_payment_intent.create.side_effect = card_error()

        with pytest.raises(StripeCardDeclinedError) as exc_info:
            StripeAdapter.create_payment_intent(intent_params())

        assert exc_info.value.decline_code == "generic_decline"
        assert exc_info.value.is_retryable is False

    def test_insufficient_funds(self, mock_stripe_payment_intent, card_error):
        mock_stripe_payment_intent.create.side_effect = card_error(
            message="Your card has insufficient funds.",
            decline_code="insufficient_funds",
        )

        with pytest.raises(StripeInsufficientFundsError):
            StripeAdapter.create_payment_intent(intent_params())

    def test_invalid_request(self, mock_stripe_payment_intent, invalid_request_error):
        mock_stripe_payment_intent.capture.side_effect = invalid_request_error()

        with pytest.raises(StripeInvalidRequestError) as exc_info:
            StripeAdapter.capture_payment_intent("pi_missing", "capture-key")

        assert exc_info.value.stripe_code == "resource_missing"

    def test_invalid_destination_account(
        self, mock_stripe_transfer, invalid_request_error
    ):
        mock_stripe_transfer.create.side_effect = invalid_request_error(
            message="No such destination: 'acct_gone'",
            param="destination",
        )

        with pytest.raises(StripeInvalidAccountError):
            StripeAdapter.create_transfer(
                amount=10000,
                destination_account="acct_gone",
                idempotency_key="transfer-key",
                currency="gbp",
            )

    @override_settings(STRIPE_MAX_RETRIES=1)
    def test_rate_limit(self, mock_stripe_payment_intent, rate_limit_error):
        mock_stripe_payment_intent.create.side_effect = rate_limit_error

        with pytest.raises(StripeRateLimitError) as exc_info:
            StripeAdapter.create_payment_intent(intent_params())

        assert exc_info.value.is_retryable is True

    @override_settings(STRIPE_MAX_RETRIES=1)
    def test_connection_error(self, mock_stripe_payment_intent, api_connection_error):
        mock_stripe_payment_intent.create.side_effect = api_connection_error

        with pytest.raises(StripeAPIUnavailableError):
            StripeAdapter.create_payment_intent(intent_params())

    @override_settings(STRIPE_MAX_RETRIES=1)
    def test_timeout(self, mock_stripe_payment_intent):
        mock_stripe_payment_intent.create.side_effect = stripe.APIConnectionError(
            message="Request timed out"
        )

        with pytest.raises(StripeTimeoutError):
            StripeAdapter.create_payment_intent(intent_params())

    @override_settings(STRIPE_MAX_RETRIES=1)
    def test_api_error(self, mock_stripe_payment_intent, api_error):
        mock_stripe_payment_intent.create.side_effect = api_error

        with pytest.raises(StripeAPIUnavailableError):
            StripeAdapter.create_payment_intent(intent_params())

    def test_authentication_error_is_permanent(
        self, mock_stripe_payment_intent, authentication_error
    ):
        mock_stripe_payment_intent.create.side_effect = authentication_error

        with pytest.raises(StripeInvalidRequestError):
            StripeAdapter.create_payment_intent(intent_params())

        assert mock_stripe_payment_intent.create.call_count == 1

    @override_settings(STRIPE_MAX_RETRIES=1)
    def test_unknown_error(self, mock_stripe_payment_intent):
        mock_stripe_payment_intent.create.side_effect = RuntimeError("surprise")

        with pytest.raises(StripeAPIUnavailableError, match="surprise"):
            StripeAdapter.create_payment_intent(intent_params())


# =============================================================================
# Retry Tests
# =============================================================================


class TestRetryOnTransient:
    @override_settings(STRIPE_MAX_RETRIES=3)
    def test_transient_error_is_retried_until_success(
        self,
        mock_stripe_transfer,
        mock_transfer,
        api_connection_error,
        no_backoff_sleep,
    ):
        mock_stripe_transfer.create.side_effect = [api_connection_error, mock_transfer()]

        result = StripeAdapter.create_transfer(
            amount=10000,
            destination_account="acct_dest123",
            idempotency_key="transfer-key",
            currency="gbp",
        )

        assert result.id == "tr_test123456"
        assert mock_stripe_transfer.create.call_count == 2
        keys = {c.kwargs["idempotency_key"] for c in mock_stripe_transfer.create.call_args_list}
        assert keys == {"transfer-key"}
        no_backoff_sleep.assert_called_once()

    @override_settings(STRIPE_MAX_RETRIES=3)
    def test_gives_up_after_max_attempts(self, mock_stripe_refund, api_error):
        mock_stripe_refund.create.side_effect = api_error

        with pytest.raises(StripeAPIUnavailableError):
            StripeAdapter.create_refund("pi_test123456", "refund-key")

        assert mock_stripe_refund.create.call_count == 3

    @override_settings(STRIPE_MAX_RETRIES=3)
    def test_permanent_error_is_not_retried(self, mock_stripe_payment_intent, card_error):
        mock_stripe_payment_intent.capture.side_effect = card_error()

        with pytest.raises(StripeCardDeclinedError):
            StripeAdapter.capture_payment_intent("pi_test123456", "capture-key")

        assert mock_stripe_payment_intent.capture.call_count == 1

    @override_settings(STRIPE_MAX_RETRIES=3)
    def test_account_links_are_not_retried(self, mock_stripe_account, api_error):
        mock_stripe_account.link.create.side_effect = api_error

        with pytest.raises(StripeAPIUnavailableError):
            StripeAdapter.create_account_link(
                "acct_test123456",
                refresh_url="https://app.example.com/refresh",
                return_url="https://app.example.com/return",
            )

        assert mock_stripe_account.link.create.call_count == 1


# =============================================================================
# Operation Tests
# =============================================================================


class TestStripeAdapterPaymentIntents:
    def test_create_sends_manual_capture(self, mock_stripe_payment_intent):
        result = StripeAdapter.create_payment_intent(
            intent_params(customer_id="cus_123", metadata={"platform_fee": "1000"})
        )

        kwargs = mock_stripe_payment_intent.create.call_args.kwargs
        assert kwargs["amount"] == 11000
        assert kwargs["capture_method"] == "manual"
        assert kwargs["customer"] == "cus_123"
        assert kwargs["idempotency_key"] == "checkout-abc"
        assert result.id == "pi_test123456"
        assert result.client_secret == "pi_test123456_secret_abc123"
        assert result.captured is False

    def test_capture(self, mock_stripe_payment_intent):
        result = StripeAdapter.capture_payment_intent("pi_test123456", "capture-key")

        mock_stripe_payment_intent.capture.assert_called_once_with(
            "pi_test123456", idempotency_key="capture-key"
        )
        assert result.status == "succeeded"
        assert result.captured is True

    def test_cancel_passes_reason(self, mock_stripe_payment_intent):
        result = StripeAdapter.cancel_payment_intent(
            "pi_test123456", "cancel-key", reason="abandoned"
        )

        kwargs = mock_stripe_payment_intent.cancel.call_args.kwargs
        assert kwargs["cancellation_reason"] == "abandoned"
        assert result.status == "canceled"

    def test_retrieve(self, mock_stripe_payment_intent):
        result = StripeAdapter.retrieve_payment_intent("pi_test123456")

        mock_stripe_payment_intent.retrieve.assert_called_once_with("pi_test123456")
        assert result.amount == 11000


class TestStripeAdapterTransfersAndRefunds:
    def test_create_transfer(self, mock_stripe_transfer):
        result = StripeAdapter.create_transfer(
            amount=10000,
            destination_account="acct_dest123",
            idempotency_key="transfer-key",
            currency="gbp",
            transfer_group="booking_123",
            metadata={"booking_id": "123"},
        )

        kwargs = mock_stripe_transfer.create.call_args.kwargs
        assert kwargs["destination"] == "acct_dest123"
        assert kwargs["transfer_group"] == "booking_123"
        assert kwargs["metadata"] == {"booking_id": "123"}
        assert result.destination_account == "acct_dest123"
        assert result.amount == 10000

    def test_full_refund_omits_amount(self, mock_stripe_refund):
        result = StripeAdapter.create_refund(
            "pi_test123456", "refund-key", reason="requested_by_customer"
        )

        kwargs = mock_stripe_refund.create.call_args.kwargs
        assert "amount" not in kwargs
        assert kwargs["reason"] == "requested_by_customer"
        assert result.status == "succeeded"
        assert result.payment_intent_id == "pi_test123456"


class TestStripeAdapterAccounts:
    def test_create_customer(self, mock_stripe_customer):
        customer_id = StripeAdapter.create_customer(
            email="sam@example.com", idempotency_key="customer-key"
        )

        assert customer_id == "cus_test123"
        assert mock_stripe_customer.create.call_args.kwargs["email"] == "sam@example.com"

    def test_create_express_account(self, mock_stripe_account):
        result = StripeAdapter.create_express_account(
            email="provider@example.com", idempotency_key="account-key"
        )

        kwargs = mock_stripe_account.create.call_args.kwargs
        assert kwargs["type"] == "express"
        assert kwargs["capabilities"]["transfers"] == {"requested": True}
        assert result.id == "acct_test123456"
        assert result.charges_enabled is False

    def test_create_account_link(self, mock_stripe_account):
        url = StripeAdapter.create_account_link(
            "acct_test123456",
            refresh_url="https://app.example.com/refresh",
            return_url="https://app.example.com/return",
        )

        assert url.startswith("https://connect.stripe.com/")
        kwargs = mock_stripe_account.link.create.call_args.kwargs
        assert kwargs["type"] == "account_onboarding"

    def test_retrieve_account(self, mock_stripe_account):
        result = StripeAdapter.retrieve_account("acct_test123456")

        assert result.charges_enabled is True
        assert result.payouts_enabled is True

    def test_list_payout_transfer_ids(self, mock_stripe_balance_transaction):
        transfer_ids = StripeAdapter.list_payout_transfer_ids("po_123", "acct_test123456")

        assert transfer_ids == ["tr_1", "tr_2"]
        kwargs = mock_stripe_balance_transaction.list.call_args.kwargs
        assert kwargs["payout"] == "po_123"
        assert kwargs["stripe_account"] == "acct_test123456"
        assert kwargs["expand"] == ["data.source"]

    @override_settings(STRIPE_MAX_RETRIES=1)
    def test_list_payout_transfer_ids_translates_errors(
        self, mock_stripe_balance_transaction, api_connection_error
    ):
        mock_stripe_balance_transaction.list.side_effect = api_connection_error

        with pytest.raises(StripeAPIUnavailableError):
            StripeAdapter.list_payout_transfer_ids("po_123", "acct_test123456")


# =============================================================================
# Webhook Verification Tests
# =============================================================================


class TestStripeAdapterVerifyWebhookSignature:
    @pytest.fixture(autouse=True)
    def webhook_settings(self, settings):
        settings.STRIPE_WEBHOOK_SECRET = "whsec_test_secret"
        settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS = 300

    payload = json.dumps(
        {
            "id": "evt_test123",
            "object": "event",
            "type": "payout.paid",
            "data": {"object": {"id": "po_123", "object": "payout"}},
        }
    ).encode()

    def test_valid_signature_returns_event(self):
        signature = sign_payload(self.payload, "whsec_test_secret")

        event = StripeAdapter.verify_webhook_signature(self.payload, signature)

        assert event["id"] == "evt_test123"
        assert event["type"] == "payout.paid"
        assert event["data"]["object"]["id"] == "po_123"

    def test_wrong_secret_is_rejected(self):
        signature = sign_payload(self.payload, "whsec_other")

        with pytest.raises(InvalidSignatureError):
            StripeAdapter.verify_webhook_signature(self.payload, signature)

    def test_tampered_body_is_rejected(self):
        signature = sign_payload(self.payload, "whsec_test_secret")

        with pytest.raises(InvalidSignatureError):
            StripeAdapter.verify_webhook_signature(
                self.payload.replace(b"po_123", b"po_999"), signature
            )

    def test_stale_timestamp_is_rejected(self):
        signature = sign_payload(
            self.payload, "whsec_test_secret", timestamp=int(time.time()) - 600
        )

        with pytest.raises(InvalidSignatureError):
            StripeAdapter.verify_webhook_signature(self.payload, signature)

    @pytest.mark.parametrize("signature", [None, ""])
    def test_missing_header_is_rejected(self, signature):
        with pytest.raises(InvalidSignatureError, match="Missing"):
            StripeAdapter.verify_webhook_signature(self.payload, signature)


# =============================================================================
# Configuration Tests
# =============================================================================


class TestStripeAdapterConfiguration:
    @override_settings(STRIPE_SECRET_KEY="sk_test_custom")
    def test_uses_settings_api_key(self, mock_stripe_payment_intent):
        StripeAdapter.create_payment_intent(intent_params())

        assert stripe.api_key == "sk_test_custom"

    @override_settings(STRIPE_API_TIMEOUT_SECONDS=30)
    def test_uses_settings_timeout(self, mock_stripe_payment_intent, mock_stripe_http_client):
        StripeAdapter.create_payment_intent(intent_params())

        mock_stripe_http_client.assert_called_with(timeout=30)

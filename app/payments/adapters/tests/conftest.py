"""
Pytest fixtures for Stripe adapter tests.

The Stripe SDK resources are patched so no request leaves the process;
each fixture returns the patched resource so tests can set return
values and side effects.

Sections:
    - Mock Stripe Response Fixtures
    - Mock Stripe Error Fixtures
    - Mock Stripe Client Fixtures
"""

from dataclasses import dataclass
from typing import Any
from unittest.mock import patch

import pytest
import stripe


# =============================================================================
# Mock Stripe Response Fixtures
# =============================================================================


@dataclass
class MockStripeObject:
    """Mock Stripe API object with attribute access and to_dict support."""

    data: dict[str, Any]

    def __getattr__(self, name: str) -> Any:
        if name == "data":
            return self.__dict__["data"]
        return self.data.get(name)

    def to_dict(self) -> dict[str, Any]:
        return self.data


@pytest.fixture
def mock_payment_intent():
    """Create a mock PaymentIntent response."""

    def _create(
        id: str = "pi_test123456",
        status: str = "requires_payment_method",
        amount: int = 11000,
        currency: str = "gbp",
        client_secret: str = "pi_test123456_secret_abc123",
        amount_received: int = 0,
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "payment_intent",
                "status": status,
                "amount": amount,
                "currency": currency,
                "client_secret": client_secret,
                "amount_received": amount_received,
                "metadata": metadata or {},
            }
        )

    return _create


@pytest.fixture
def mock_transfer():
    """Create a mock Transfer response."""

    def _create(
        id: str = "tr_test123456",
        amount: int = 10000,
        currency: str = "gbp",
        destination: str = "acct_dest123",
        transfer_group: str | None = "booking_123",
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "transfer",
                "amount": amount,
                "currency": currency,
                "destination": destination,
                "transfer_group": transfer_group,
                "metadata": metadata or {},
            }
        )

    return _create


@pytest.fixture
def mock_refund():
    """Create a mock Refund response."""

    def _create(
        id: str = "re_test123456",
        amount: int = 11000,
        currency: str = "gbp",
        status: str = "succeeded",
        payment_intent: str = "pi_test123456",
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "refund",
                "amount": amount,
                "currency": currency,
                "status": status,
                "payment_intent": payment_intent,
            }
        )

    return _create


@pytest.fixture
def mock_account():
    """Create a mock Connect Account response."""

    def _create(
        id: str = "acct_test123456",
        charges_enabled: bool = False,
        details_submitted: bool = False,
        payouts_enabled: bool = False,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "account",
                "charges_enabled": charges_enabled,
                "details_submitted": details_submitted,
                "payouts_enabled": payouts_enabled,
            }
        )

    return _create


# =============================================================================
# Mock Stripe Error Fixtures
# =============================================================================


@pytest.fixture
def card_error():
    """Create a Stripe CardError with a decline code."""

    def _create(
        message: str = "Your card was declined.",
        code: str = "card_declined",
        decline_code: str | None = "generic_decline",
    ) -> stripe.CardError:
        error = stripe.CardError(message=message, param=None, code=code)
        error.decline_code = decline_code
        return error

    return _create


@pytest.fixture
def invalid_request_error():
    """Create a Stripe InvalidRequestError."""

    def _create(
        message: str = "No such payment_intent: 'pi_missing'",
        param: str | None = "intent",
        code: str = "resource_missing",
    ) -> stripe.InvalidRequestError:
        return stripe.InvalidRequestError(message=message, param=param, code=code)

    return _create


@pytest.fixture
def rate_limit_error():
    return stripe.RateLimitError(message="Too many requests hit the API too quickly.")


@pytest.fixture
def api_connection_error():
    return stripe.APIConnectionError(message="Could not connect to Stripe.")


@pytest.fixture
def api_error():
    return stripe.APIError(message="Something went wrong on Stripe's end.")


@pytest.fixture
def authentication_error():
    return stripe.AuthenticationError(message="Invalid API Key provided.")


# =============================================================================
# Mock Stripe Client Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def mock_stripe_http_client():
    """Keep _configure_stripe from building a real HTTP client."""
    with patch("stripe.RequestsClient") as mock:
        yield mock


@pytest.fixture(autouse=True)
def no_backoff_sleep():
    """Retries happen immediately in tests."""
    with patch("payments.adapters.stripe_adapter.time.sleep") as mock:
        yield mock


@pytest.fixture
def mock_stripe_customer():
    with patch("stripe.Customer") as mock:
        mock.create.return_value = MockStripeObject({"id": "cus_test123"})
        yield mock


@pytest.fixture
def mock_stripe_payment_intent(mock_payment_intent):
    """Mock stripe.PaymentIntent API."""
    with patch("stripe.PaymentIntent") as mock:
        mock.create.return_value = mock_payment_intent()
        mock.capture.return_value = mock_payment_intent(
            status="succeeded", amount_received=11000
        )
        mock.retrieve.return_value = mock_payment_intent()
        mock.cancel.return_value = mock_payment_intent(status="canceled")
        yield mock


@pytest.fixture
def mock_stripe_transfer(mock_transfer):
    with patch("stripe.Transfer") as mock:
        mock.create.return_value = mock_transfer()
        yield mock


@pytest.fixture
def mock_stripe_refund(mock_refund):
    with patch("stripe.Refund") as mock:
        mock.create.return_value = mock_refund()
        yield mock


@pytest.fixture
def mock_stripe_account(mock_account):
    """Mock stripe.Account and stripe.AccountLink APIs."""
    with patch("stripe.Account") as account, patch("stripe.AccountLink") as link:
        account.create.return_value = mock_account()
        account.retrieve.return_value = mock_account(
            charges_enabled=True, details_submitted=True, payouts_enabled=True
        )
        link.create.return_value = MockStripeObject(
            {"url": "https://connect.stripe.com/setup/e/acct_test123456/abc"}
        )
        account.link = link
        yield account


@pytest.fixture
def mock_stripe_balance_transaction():
    """
    Mock stripe.BalanceTransaction.list for a payout on a connected account.

    Two transfers from the platform and one payment with no source transfer.
    """
    transactions = [
        MockStripeObject({"id": "txn_1", "source": MockStripeObject({"source_transfer": "tr_1"})}),
        MockStripeObject({"id": "txn_2", "source": MockStripeObject({"source_transfer": "tr_2"})}),
        MockStripeObject({"id": "txn_3", "source": MockStripeObject({"id": "ch_direct"})}),
    ]
    with patch("stripe.BalanceTransaction") as balance_transaction:
        balance_transaction.list.return_value.auto_paging_iter.return_value = iter(transactions)
        yield balance_transaction

"""
Stripe API adapter for payment operations.

This module provides the StripeAdapter class which encapsulates all
Stripe API interactions. All Stripe calls go through this adapter to
ensure consistent error handling, timeouts, idempotency, and
observability.

Services receive the adapter as a constructor argument (``stripe_adapter``)
so tests can substitute a fake without patching the SDK.

Features:
- Configurable timeouts on all API calls
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- Idempotency keys on every mutating call
- Bounded retry with backoff for transient errors on idempotent calls

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_WEBHOOK_TOLERANCE_SECONDS: Accepted signature age (default: 300)
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- STRIPE_MAX_RETRIES: Max attempts for transient failures (default: 3)

Usage:
    from payments.adapters import StripeAdapter, CreatePaymentIntentParams

    result = StripeAdapter.create_payment_intent(
        CreatePaymentIntentParams(
            amount=11000,
            currency="gbp",
            idempotency_key="checkout-7f3a",
            metadata={"service_id": str(service.id)},
        )
    )

    result = StripeAdapter.capture_payment_intent(
        payment_intent_id="pi_xxx",
        idempotency_key=IdempotencyKeyGenerator.generate("capture", intent.id),
    )
"""

from __future__ import annotations

import functools
import hashlib
import logging
import random
import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import stripe
from django.conf import settings

from payments.exceptions import (
    InvalidSignatureError,
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeError,
    StripeInsufficientFundsError,
    StripeInvalidAccountError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
)

if TYPE_CHECKING:
    from collections.abc import Callable


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreatePaymentIntentParams:
    """
    Parameters for creating a Stripe PaymentIntent.

    Attributes:
        amount: Amount to authorize in minor units (booking total)
        currency: ISO 4217 currency code (lowercase)
        idempotency_key: Unique key for idempotent creation
        metadata: Key-value pairs to attach to the PaymentIntent
        customer_id: Optional Stripe Customer ID
        payment_method_types: Allowed payment methods (default: ['card'])
        capture_method: 'manual' holds funds until capture (escrow)
    """

    amount: int
    currency: str
    idempotency_key: str
    metadata: dict[str, str] = field(default_factory=dict)
    customer_id: str | None = None
    payment_method_types: list[str] = field(default_factory=lambda: ["card"])
    capture_method: str = "manual"

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
        if not self.currency:
            raise ValueError("currency is required")


@dataclass
class PaymentIntentResult:
    """
    Result from Stripe PaymentIntent operations.

    Attributes:
        id: PaymentIntent ID (pi_xxx)
        status: Current status (requires_payment_method, succeeded, etc.)
        amount: Amount in minor units
        currency: Currency code
        client_secret: Secret for client-side confirmation
        captured: Whether the payment has been captured
        metadata: Attached metadata
        raw_response: Full Stripe response dict (for debugging)
    """

    id: str
    status: str
    amount: int
    currency: str
    client_secret: str | None = None
    captured: bool = False
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class TransferResult:
    """
    Result from Stripe Transfer operations.

    Attributes:
        id: Transfer ID (tr_xxx)
        amount: Amount transferred in minor units
        currency: Currency code
        destination_account: Destination Stripe account ID
        transfer_group: Group tying the transfer to its booking
        metadata: Attached metadata
        raw_response: Full Stripe response dict
    """

    id: str
    amount: int
    currency: str
    destination_account: str
    transfer_group: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class RefundResult:
    """
    Result from Stripe Refund operations.

    Attributes:
        id: Refund ID (re_xxx)
        amount: Refunded amount in minor units
        currency: Currency code
        status: Refund status (succeeded, pending, failed)
        payment_intent_id: Original PaymentIntent ID
        raw_response: Full Stripe response dict
    """

    id: str
    amount: int
    currency: str
    status: str
    payment_intent_id: str
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class AccountResult:
    """
    Result from Stripe Connect Account operations.

    Attributes:
        id: Account ID (acct_xxx)
        charges_enabled: Whether the account can take charges
        details_submitted: Whether onboarding details were submitted
        payouts_enabled: Whether the account can receive payouts
        raw_response: Full Stripe response dict
    """

    id: str
    charges_enabled: bool = False
    details_submitted: bool = False
    payouts_enabled: bool = False
    raw_response: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for Stripe API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    Keys are deterministic: the same operation on the same entity always
    produces the same key, so a retried request replays the original
    Stripe response instead of repeating the operation.

    Example:
        key = IdempotencyKeyGenerator.generate(
            operation="transfer",
            entity_id=booking.id,
        )
        # Result: "transfer:550e8400-e29b-41d4-a716-446655440000:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        """
        Generate an idempotency key.

        Args:
            operation: The Stripe operation (capture, transfer, refund, etc.)
            entity_id: The domain entity ID (payment intent, booking, etc.)
            attempt: Attempt number, bumped only for a deliberate new operation

        Returns:
            Formatted idempotency key string
        """
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]

        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


# =============================================================================
# Retry Logic Helpers
# =============================================================================


def is_retryable_stripe_error(error: Exception) -> bool:
    """
    Check if a Stripe error is retryable.

    Args:
        error: The exception to check

    Returns:
        True if the error is a transient Stripe error that can be retried
    """
    if isinstance(error, StripeError):
        return getattr(error, "is_retryable", False)
    return False


def backoff_delay(attempt: int, base: float = 1.0, max_delay: float = 60.0) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Jitter prevents thundering herd when multiple workers retry simultaneously.

    Args:
        attempt: Current attempt number (0-indexed)
        base: Base delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 60.0)

    Returns:
        Delay in seconds with jitter (0-25% of calculated delay)

    Example:
        # Attempt 0: 1.0 - 1.25 seconds
        # Attempt 1: 2.0 - 2.5 seconds
        # Attempt 2: 4.0 - 5.0 seconds
        delay = backoff_delay(attempt=2)
    """
    delay = min(base * (2**attempt), max_delay)
    jitter = delay * random.uniform(0, 0.25)
    return delay + jitter


def retry_on_transient(func: Callable) -> Callable:
    """
    Retry an idempotent adapter call on transient Stripe errors.

    Makes at most STRIPE_MAX_RETRIES attempts, sleeping backoff_delay()
    between them. Permanent errors propagate immediately. Only apply this
    to calls that are idempotency-keyed or read-only.
    """

    @functools.wraps(func)
    def wrapper(cls, *args, **kwargs):
        max_attempts = max(1, getattr(settings, "STRIPE_MAX_RETRIES", 3))
        for attempt in range(max_attempts):
            try:
                return func(cls, *args, **kwargs)
            except StripeError as e:
                if not e.is_retryable or attempt == max_attempts - 1:
                    raise
                delay = backoff_delay(attempt)
                cls.get_logger().warning(
                    "Retrying Stripe operation after transient error",
                    extra={
                        "operation": func.__name__,
                        "attempt": attempt + 1,
                        "max_attempts": max_attempts,
                        "error_code": e.error_code,
                        "delay_seconds": round(delay, 2),
                    },
                )
                time.sleep(delay)

    return wrapper


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    All methods are classmethods - no instance state is maintained.
    Thread-safe for use from Celery workers.

    Usage:
        result = StripeAdapter.create_payment_intent(params)
        result = StripeAdapter.capture_payment_intent(pi_id, idem_key)
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _configure_stripe() -> None:
        """Configure Stripe client with API key and timeout."""
        stripe.api_key = settings.STRIPE_SECRET_KEY
        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def _execute(
        cls,
        log_context: dict[str, Any],
        call: Callable[[], Any],
        level: int = logging.INFO,
    ) -> Any:
        """
        Run one SDK call with timing logs and error translation.

        Args:
            log_context: Structured logging context (must include "operation")
            call: Zero-argument callable performing the SDK request
            level: Log level for the start/completion lines

        Returns:
            The raw Stripe object returned by ``call``
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        start_time = time.time()
        logger.log(level, "Starting Stripe operation", extra=log_context)

        try:
            obj = call()
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise  # Never reached, but satisfies type checker

        duration_ms = (time.time() - start_time) * 1000
        logger.log(
            level,
            "Stripe operation completed",
            extra={
                **log_context,
                "stripe_object_id": getattr(obj, "id", None),
                "duration_ms": duration_ms,
            },
        )
        return obj

    @staticmethod
    def _intent_result(intent: Any) -> PaymentIntentResult:
        return PaymentIntentResult(
            id=intent.id,
            status=intent.status,
            amount=intent.amount,
            currency=intent.currency,
            client_secret=intent.client_secret,
            captured=(intent.amount_received or 0) > 0,
            metadata=dict(intent.metadata or {}),
            raw_response=intent.to_dict(),
        )

    @staticmethod
    def _account_result(account: Any) -> AccountResult:
        return AccountResult(
            id=account.id,
            charges_enabled=bool(account.charges_enabled),
            details_submitted=bool(account.details_submitted),
            payouts_enabled=bool(account.payouts_enabled),
            raw_response=account.to_dict(),
        )

    # =========================================================================
    # Customers
    # =========================================================================

    @classmethod
    @retry_on_transient
    def create_customer(
        cls,
        email: str,
        idempotency_key: str,
        name: str = "",
        metadata: dict[str, str] | None = None,
    ) -> str:
        """
        Create a Stripe Customer for a paying profile.

        Returns:
            The Stripe Customer ID (cus_xxx)
        """
        log_context = {
            "operation": "create_customer",
            "idempotency_key": idempotency_key,
        }

        customer = cls._execute(
            log_context,
            lambda: stripe.Customer.create(
                email=email,
                name=name or None,
                metadata=metadata or {},
                idempotency_key=idempotency_key,
            ),
        )
        return customer.id

    # =========================================================================
    # PaymentIntents
    # =========================================================================

    @classmethod
    @retry_on_transient
    def create_payment_intent(
        cls,
        params: CreatePaymentIntentParams,
        trace_id: str | None = None,
    ) -> PaymentIntentResult:
        """
        Create a Stripe PaymentIntent.

        Args:
            params: Parameters for creating the PaymentIntent
            trace_id: Optional trace ID for distributed tracing

        Returns:
            PaymentIntentResult with PaymentIntent details including client_secret

        Raises:
            StripeCardDeclinedError: Card was declined
            StripeInvalidRequestError: Invalid parameters
            StripeAPIUnavailableError: Stripe service unavailable
        """
        log_context = {
            "operation": "create_payment_intent",
            "amount": params.amount,
            "currency": params.currency,
            "idempotency_key": params.idempotency_key,
            "trace_id": trace_id,
        }

        intent = cls._execute(
            log_context,
            lambda: stripe.PaymentIntent.create(
                amount=params.amount,
                currency=params.currency,
                metadata=params.metadata,
                customer=params.customer_id,
                payment_method_types=params.payment_method_types,
                capture_method=params.capture_method,
                idempotency_key=params.idempotency_key,
            ),
        )
        return cls._intent_result(intent)

    @classmethod
    @retry_on_transient
    def capture_payment_intent(
        cls,
        payment_intent_id: str,
        idempotency_key: str,
        trace_id: str | None = None,
    ) -> PaymentIntentResult:
        """
        Capture the full authorized amount of a PaymentIntent.

        Args:
            payment_intent_id: Stripe PaymentIntent ID (pi_xxx)
            idempotency_key: Unique key for idempotent capture
            trace_id: Optional trace ID for distributed tracing

        Raises:
            StripeInvalidRequestError: PaymentIntent not capturable
            StripeAPIUnavailableError: Stripe service unavailable
        """
        log_context = {
            "operation": "capture_payment_intent",
            "payment_intent_id": payment_intent_id,
            "idempotency_key": idempotency_key,
            "trace_id": trace_id,
        }

        intent = cls._execute(
            log_context,
            lambda: stripe.PaymentIntent.capture(
                payment_intent_id,
                idempotency_key=idempotency_key,
            ),
        )
        result = cls._intent_result(intent)
        result.captured = True
        return result

    @classmethod
    @retry_on_transient
    def retrieve_payment_intent(
        cls,
        payment_intent_id: str,
        trace_id: str | None = None,
    ) -> PaymentIntentResult:
        """
        Retrieve a PaymentIntent by ID.

        Raises:
            StripeInvalidRequestError: PaymentIntent not found
        """
        log_context = {
            "operation": "retrieve_payment_intent",
            "payment_intent_id": payment_intent_id,
            "trace_id": trace_id,
        }

        intent = cls._execute(
            log_context,
            lambda: stripe.PaymentIntent.retrieve(payment_intent_id),
            level=logging.DEBUG,
        )
        return cls._intent_result(intent)

    @classmethod
    @retry_on_transient
    def cancel_payment_intent(
        cls,
        payment_intent_id: str,
        idempotency_key: str,
        reason: str = "abandoned",
        trace_id: str | None = None,
    ) -> PaymentIntentResult:
        """
        Cancel an uncaptured PaymentIntent, releasing the authorization.

        Args:
            payment_intent_id: Stripe PaymentIntent ID (pi_xxx)
            idempotency_key: Unique key for idempotent cancellation
            reason: Stripe cancellation_reason (abandoned, requested_by_customer)
        """
        log_context = {
            "operation": "cancel_payment_intent",
            "payment_intent_id": payment_intent_id,
            "idempotency_key": idempotency_key,
            "reason": reason,
            "trace_id": trace_id,
        }

        intent = cls._execute(
            log_context,
            lambda: stripe.PaymentIntent.cancel(
                payment_intent_id,
                cancellation_reason=reason,
                idempotency_key=idempotency_key,
            ),
        )
        return cls._intent_result(intent)

    # =========================================================================
    # Transfers & Refunds
    # =========================================================================

    @classmethod
    @retry_on_transient
    def create_transfer(
        cls,
        amount: int,
        destination_account: str,
        idempotency_key: str,
        currency: str,
        transfer_group: str | None = None,
        metadata: dict[str, str] | None = None,
        trace_id: str | None = None,
    ) -> TransferResult:
        """
        Create a transfer from the platform balance to a connected account.

        Args:
            amount: Amount to transfer in minor units
            destination_account: Stripe Connect account ID (acct_xxx)
            idempotency_key: Unique key for idempotent transfer
            currency: Currency code
            transfer_group: Groups the transfer with its booking's charge
            metadata: Optional metadata dict
            trace_id: Optional trace ID for distributed tracing

        Raises:
            StripeInvalidAccountError: Invalid destination account
            StripeInvalidRequestError: Insufficient platform balance or bad params
        """
        log_context = {
            "operation": "create_transfer",
            "amount": amount,
            "destination_account": destination_account,
            "transfer_group": transfer_group,
            "idempotency_key": idempotency_key,
            "trace_id": trace_id,
        }

        transfer_params: dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "destination": destination_account,
            "metadata": metadata or {},
        }
        if transfer_group:
            transfer_params["transfer_group"] = transfer_group

        transfer = cls._execute(
            log_context,
            lambda: stripe.Transfer.create(
                idempotency_key=idempotency_key,
                **transfer_params,
            ),
        )
        return TransferResult(
            id=transfer.id,
            amount=transfer.amount,
            currency=transfer.currency,
            destination_account=transfer.destination,
            transfer_group=getattr(transfer, "transfer_group", None),
            metadata=dict(transfer.metadata or {}),
            raw_response=transfer.to_dict(),
        )

    @classmethod
    @retry_on_transient
    def create_refund(
        cls,
        payment_intent_id: str,
        idempotency_key: str,
        amount: int | None = None,
        reason: str | None = None,
        metadata: dict[str, str] | None = None,
        trace_id: str | None = None,
    ) -> RefundResult:
        """
        Refund a captured PaymentIntent.

        Args:
            payment_intent_id: Stripe PaymentIntent ID (pi_xxx)
            idempotency_key: Unique key for idempotent refund
            amount: Amount to refund (None for full refund)
            reason: Refund reason (duplicate, fraudulent, requested_by_customer)
            metadata: Optional metadata dict

        Raises:
            StripeInvalidRequestError: Refund not possible
        """
        log_context = {
            "operation": "create_refund",
            "payment_intent_id": payment_intent_id,
            "amount": amount,
            "idempotency_key": idempotency_key,
            "trace_id": trace_id,
        }

        refund_params: dict[str, Any] = {
            "payment_intent": payment_intent_id,
            "metadata": metadata or {},
        }
        if amount is not None:
            refund_params["amount"] = amount
        if reason:
            refund_params["reason"] = reason

        refund = cls._execute(
            log_context,
            lambda: stripe.Refund.create(
                idempotency_key=idempotency_key,
                **refund_params,
            ),
        )
        return RefundResult(
            id=refund.id,
            amount=refund.amount,
            currency=refund.currency,
            status=refund.status,
            payment_intent_id=refund.payment_intent,
            raw_response=refund.to_dict(),
        )

    # =========================================================================
    # Connect Accounts
    # =========================================================================

    @classmethod
    @retry_on_transient
    def create_express_account(
        cls,
        email: str,
        idempotency_key: str,
        country: str = "GB",
        metadata: dict[str, str] | None = None,
    ) -> AccountResult:
        """
        Create an Express connected account for a provider.

        Requests card_payments and transfers capabilities so the account
        can receive platform transfers.
        """
        log_context = {
            "operation": "create_express_account",
            "country": country,
            "idempotency_key": idempotency_key,
        }

        account = cls._execute(
            log_context,
            lambda: stripe.Account.create(
                type="express",
                country=country,
                email=email,
                capabilities={
                    "card_payments": {"requested": True},
                    "transfers": {"requested": True},
                },
                metadata=metadata or {},
                idempotency_key=idempotency_key,
            ),
        )
        return cls._account_result(account)

    @classmethod
    def create_account_link(
        cls,
        account_id: str,
        refresh_url: str,
        return_url: str,
    ) -> str:
        """
        Create a single-use hosted onboarding link.

        Not retried: each call mints a new link and links expire quickly.

        Returns:
            The onboarding URL
        """
        log_context = {
            "operation": "create_account_link",
            "account_id": account_id,
        }

        link = cls._execute(
            log_context,
            lambda: stripe.AccountLink.create(
                account=account_id,
                refresh_url=refresh_url,
                return_url=return_url,
                type="account_onboarding",
            ),
        )
        return link.url

    @classmethod
    @retry_on_transient
    def retrieve_account(cls, account_id: str) -> AccountResult:
        """Retrieve a connected account's current capability flags."""
        log_context = {
            "operation": "retrieve_account",
            "account_id": account_id,
        }

        account = cls._execute(
            log_context,
            lambda: stripe.Account.retrieve(account_id),
            level=logging.DEBUG,
        )
        return cls._account_result(account)

    @classmethod
    @retry_on_transient
    def list_payout_transfer_ids(cls, payout_id: str, account_id: str) -> list[str]:
        """
        List the platform transfers a connected account's bank payout settled.

        Each transfer lands on the connected account as a ``payment``
        balance transaction whose source charge carries ``source_transfer``.

        Args:
            payout_id: Bank payout ID on the connected account (po_xxx)
            account_id: Stripe Connect account ID (acct_xxx)

        Returns:
            Transfer IDs (tr_xxx) included in the payout
        """
        log_context = {
            "operation": "list_payout_transfer_ids",
            "payout_id": payout_id,
            "account_id": account_id,
        }

        def collect() -> list[str]:
            transactions = stripe.BalanceTransaction.list(
                payout=payout_id,
                type="payment",
                expand=["data.source"],
                limit=100,
                stripe_account=account_id,
            )
            transfer_ids = []
            for txn in transactions.auto_paging_iter():
                source_transfer = getattr(txn.source, "source_transfer", None)
                if source_transfer:
                    transfer_ids.append(getattr(source_transfer, "id", source_transfer))
            return transfer_ids

        return cls._execute(log_context, collect, level=logging.DEBUG)

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @classmethod
    def verify_webhook_signature(
        cls,
        payload: bytes,
        signature: str,
    ) -> dict[str, Any]:
        """
        Verify and parse a Stripe webhook event.

        Checks the Stripe-Signature header (HMAC-SHA256 of
        "{timestamp}.{payload}" with STRIPE_WEBHOOK_SECRET) and rejects
        timestamps older than STRIPE_WEBHOOK_TOLERANCE_SECONDS.

        Args:
            payload: Raw webhook payload bytes
            signature: Stripe-Signature header value

        Returns:
            Parsed event data dict

        Raises:
            InvalidSignatureError: Missing, malformed or invalid signature
        """
        if not signature:
            raise InvalidSignatureError("Missing Stripe-Signature header")

        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                settings.STRIPE_WEBHOOK_SECRET,
                tolerance=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
            )
        except stripe.SignatureVerificationError as e:
            raise InvalidSignatureError(
                "Invalid webhook signature",
                details={"error": str(e)},
            ) from e
        except ValueError as e:
            # Signature checked out but the body is not JSON
            raise InvalidSignatureError(
                "Invalid webhook payload",
                details={"error": str(e)},
            ) from e
        return event.to_dict()

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to domain exceptions.

        Maps Stripe SDK errors to appropriate domain exceptions
        with proper error categorization for retry decisions.

        Raises:
            StripeCardDeclinedError: Card was declined
            StripeInsufficientFundsError: Insufficient funds
            StripeInvalidAccountError: Invalid Connect account
            StripeInvalidRequestError: Invalid request parameters
            StripeRateLimitError: Rate limited
            StripeAPIUnavailableError: API unavailable
            StripeTimeoutError: Request timed out
        """
        logger = cls.get_logger()

        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, StripeError):
            # Already translated (e.g. raised by a nested adapter call)
            raise error

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )

            if decline_code == "insufficient_funds":
                raise StripeInsufficientFundsError(
                    str(error.user_message or error),
                    stripe_code=error.code,
                    decline_code=decline_code,
                )

            raise StripeCardDeclinedError(
                str(error.user_message or error),
                stripe_code=error.code,
                decline_code=decline_code,
            )

        elif isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )

            if error.param == "destination" or "account" in str(error).lower():
                raise StripeInvalidAccountError(
                    str(error),
                    stripe_code=error.code,
                )

            raise StripeInvalidRequestError(
                str(error),
                stripe_code=error.code,
            )

        elif isinstance(error, stripe.RateLimitError):
            logger.warning(
                "Rate limited by Stripe",
                extra=log_context,
            )
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            )

        elif isinstance(error, stripe.APIConnectionError):
            logger.error(
                "Connection error to Stripe",
                extra=log_context,
                exc_info=True,
            )
            if "timed out" in str(error).lower():
                raise StripeTimeoutError(
                    "Stripe request timed out. Please retry.",
                    stripe_code="timeout",
                )
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            )

        elif isinstance(error, stripe.APIError):
            logger.error(
                "Stripe API error",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            )

        elif isinstance(error, stripe.AuthenticationError):
            # Invalid API key - permanent, operational issue
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise StripeInvalidRequestError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            )

        else:
            logger.error(
                f"Unexpected error from Stripe: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                f"Unexpected Stripe error: {error}",
                stripe_code="unknown_error",
            )

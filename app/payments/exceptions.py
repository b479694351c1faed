"""
Payment-specific exceptions and error codes.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentNotFoundError - Payment entity lookup failures
    ├── PaymentValidationError - Payment validation failures
    ├── InvalidSignatureError - Webhook signature verification failed
    └── PaymentProcessingError - Payment processing failures
        ├── PaymentSetupFailedError - Intent creation failed at the processor
        ├── CaptureFailedError - Capturing an authorized intent failed
        ├── OrphanedCaptureError - Captured, but the booking was not recorded
        ├── TransferFailedError - Provider transfer failed
        └── StripeError - Base for all Stripe errors
            ├── StripeCardDeclinedError - Card declined (permanent)
            ├── StripeInsufficientFundsError - Insufficient funds (permanent)
            ├── StripeInvalidAccountError - Invalid Stripe account (permanent)
            ├── StripeInvalidRequestError - Invalid request params (permanent)
            ├── StripeRateLimitError - Rate limited (transient, retry)
            ├── StripeAPIUnavailableError - API unavailable (transient, retry)
            └── StripeTimeoutError - Request timeout (transient, retry)
    InvalidStateTransitionError - Status change not allowed (inherits ConflictError)

Services return these as ``ServiceResult.failure(error_code=ErrorKind.X)``
for expected outcomes; the exception classes are raised from adapters and
state machines and converted at service boundaries.

Usage:
    from payments.exceptions import ErrorKind, InvalidStateTransitionError

    raise InvalidStateTransitionError(
        "Cannot move booking from 'completed' to 'cancelled'",
        details={"current_state": "completed", "target_state": "cancelled"},
    )
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError

if TYPE_CHECKING:
    from typing import Any


class ErrorKind(str, Enum):
    """Machine-readable error codes returned by payment and booking services."""

    PAYMENT_SETUP_FAILED = "PAYMENT_SETUP_FAILED"
    CAPTURE_FAILED = "CAPTURE_FAILED"
    ORPHANED_CAPTURE = "ORPHANED_CAPTURE"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    DUPLICATE_PAYOUT = "DUPLICATE_PAYOUT"
    TRANSFER_FAILED = "TRANSFER_FAILED"
    REFUND_FAILED = "REFUND_FAILED"
    NOT_FOUND = "NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    WEBHOOK_HANDLER_FAILED = "WEBHOOK_HANDLER_FAILED"

    def __str__(self) -> str:
        return self.value


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    Example:
        try:
            coordinator.capture_and_create_booking(...)
        except PaymentError as e:
            logger.error(f"Payment operation failed: {e}")
            return Response(e.to_dict(), status=e.http_status)
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError):
    """Raised when a payment intent, booking or payout cannot be found."""

    default_error_code: str = ErrorKind.NOT_FOUND.value
    http_status: int = 404


class PaymentValidationError(PaymentError):
    """
    Raised when payment validation fails.

    Use for:
    - Non-positive amounts or fee rates outside [0, 1)
    - Unsupported currency
    - Booking drafts that do not match the authorized intent
    """

    default_error_code: str = ErrorKind.VALIDATION_ERROR.value


class InvalidSignatureError(PaymentError):
    """
    Webhook payload failed Stripe-Signature verification.

    Nothing in the payload may be trusted or persisted when this is raised.
    """

    default_error_code: str = ErrorKind.INVALID_SIGNATURE.value


class PaymentProcessingError(PaymentError):
    """Raised when payment processing fails."""

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"
    http_status: int = 402


class PaymentSetupFailedError(PaymentProcessingError):
    """The processor refused to create the payment intent."""

    default_error_code: str = ErrorKind.PAYMENT_SETUP_FAILED.value


class CaptureFailedError(PaymentProcessingError):
    """Capturing the authorized amount failed; no booking was created."""

    default_error_code: str = ErrorKind.CAPTURE_FAILED.value


class OrphanedCaptureError(PaymentProcessingError):
    """
    Funds were captured but the booking could not be written.

    The intent is flagged for reconciliation with the draft stored on it.
    Clients should show a "we're confirming your booking" state rather
    than a payment failure.
    """

    default_error_code: str = ErrorKind.ORPHANED_CAPTURE.value
    http_status: int = 202


class TransferFailedError(PaymentProcessingError):
    """The provider transfer was rejected; the payout record is failed."""

    default_error_code: str = ErrorKind.TRANSFER_FAILED.value


# =============================================================================
# Stripe-Specific Exceptions
# =============================================================================


class StripeError(PaymentProcessingError):
    """
    Base exception for all Stripe-related errors.

    Attributes:
        stripe_code: Stripe's internal error code
        decline_code: Card decline code (if applicable)
        is_retryable: Whether the operation can be retried

    Use is_retryable to determine retry behavior:
    - True: Transient error, safe to retry with backoff on idempotent calls
    - False: Permanent error, do not retry
    """

    default_error_code: str = "STRIPE_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        if decline_code:
            details["decline_code"] = decline_code

        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code
        self.decline_code = decline_code


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class StripeCardDeclinedError(StripeError):
    """
    Card was declined by the issuing bank.

    Permanent: do not retry with the same card. decline_code carries the
    issuer's reason (generic_decline, expired_card, incorrect_cvc, ...).
    """

    default_error_code: str = "CARD_DECLINED"
    is_retryable: bool = False


class StripeInsufficientFundsError(StripeError):
    """Insufficient funds on the payment method. User action is required."""

    default_error_code: str = "INSUFFICIENT_FUNDS"
    is_retryable: bool = False


class StripeInvalidAccountError(StripeError):
    """
    Invalid Stripe Connect account.

    Raised when the destination account for a transfer is missing,
    restricted, or not fully onboarded.
    """

    default_error_code: str = "INVALID_STRIPE_ACCOUNT"
    is_retryable: bool = False


class StripeInvalidRequestError(StripeError):
    """
    Invalid request parameters sent to Stripe.

    Note:
        This usually indicates a bug in our code, not a user error.
    """

    default_error_code: str = "INVALID_STRIPE_REQUEST"
    is_retryable: bool = False


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry with backoff)
# -----------------------------------------------------------------------------


class StripeRateLimitError(StripeError):
    """Rate limited by Stripe API."""

    default_error_code: str = "STRIPE_RATE_LIMITED"
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError):
    """Stripe API is temporarily unavailable (network or 5xx)."""

    default_error_code: str = "STRIPE_UNAVAILABLE"
    is_retryable: bool = True


class StripeTimeoutError(StripeError):
    """
    Stripe API call timed out.

    IMPORTANT: The operation may have succeeded on Stripe's side. Retry
    only with the same idempotency key so Stripe replays the original
    response instead of repeating the operation.
    """

    default_error_code: str = "STRIPE_TIMEOUT"
    is_retryable: bool = True


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a status change is not permitted from the current state.

    Also raised when a compare-and-set update finds the row already moved
    to a different state by a concurrent writer.

    Example:
        raise InvalidStateTransitionError(
            "Cannot start booking in 'pending' state",
            details={"current_state": "pending", "target_state": "in_progress"},
        )
    """

    default_error_code: str = ErrorKind.INVALID_STATE_TRANSITION.value

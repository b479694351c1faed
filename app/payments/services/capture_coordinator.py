"""
Escrow capture coordinator.

Captures an authorized PaymentIntent and records the Booking. The two
writes cannot share a transaction (one is at Stripe), so the coordinator
orders them to make the only partial outcome recoverable:

    1. Capture at Stripe (idempotency key derived from the intent id)
    2. Mark the local intent SUCCEEDED
    3. Create the Booking (PENDING, payment_status PAID)

If step 3 fails the customer has paid but has no booking. That is an
orphaned capture: it is logged at CRITICAL, the intent is flagged with
``needs_reconciliation`` and the draft, and ``retry_orphaned_capture``
(run by the reconcile_orphaned_captures task) finishes the job.

Usage:
    from payments.services import EscrowCaptureCoordinator

    result = EscrowCaptureCoordinator().capture_and_create_booking(
        payment_intent_id="pi_123",
        booking_draft={"service_id": ..., "provider_id": ..., "scheduled_date": "2026-11-02"},
        customer=request.user.profile,
    )
    if result.error_code == ErrorKind.ORPHANED_CAPTURE:
        # Show "we're confirming your booking"
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from core.exceptions import BaseApplicationError
from core.services import BaseService, ServiceResult

from bookings.models import Booking
from bookings.state_machine import BookingStatus, PaymentStatus, transition
from notifications.models import NotificationType
from notifications.services import NotificationService
from payments.adapters import IdempotencyKeyGenerator, StripeAdapter
from payments.conf import get_payments_config
from payments.exceptions import ErrorKind, PaymentValidationError, StripeError
from payments.models import PaymentIntent
from payments.money import to_major_units
from payments.state_machines import PaymentIntentStatus

if TYPE_CHECKING:
    from authentication.models import Profile
    from payments.conf import PaymentsConfig


# =============================================================================
# Booking Draft
# =============================================================================


@dataclass(frozen=True)
class BookingDraft:
    """
    Booking details submitted with the capture request.

    Stored as JSON on the intent when booking creation fails, so every
    field must round-trip through ``as_dict``/``from_dict``.
    """

    service_id: str
    provider_id: str
    scheduled_date: date
    start_time: time | None = None
    end_time: time | None = None
    customer_notes: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BookingDraft:
        """
        Build a draft from request or stored JSON data.

        Raises:
            PaymentValidationError: Missing or malformed fields
        """
        if not isinstance(data, dict):
            raise PaymentValidationError("Booking details are required")

        missing = [
            name
            for name in ("service_id", "provider_id", "scheduled_date")
            if not data.get(name)
        ]
        if missing:
            raise PaymentValidationError(
                "Booking details are incomplete",
                details={"missing": missing},
            )

        try:
            scheduled_date = _parse(date, data["scheduled_date"])
            start_time = _parse(time, data.get("start_time"))
            end_time = _parse(time, data.get("end_time"))
        except ValueError as e:
            raise PaymentValidationError(
                "Booking date or time is invalid",
                details={"error": str(e)},
            ) from e

        if start_time and end_time and end_time <= start_time:
            raise PaymentValidationError("Booking must end after it starts")

        return cls(
            service_id=str(data["service_id"]),
            provider_id=str(data["provider_id"]),
            scheduled_date=scheduled_date,
            start_time=start_time,
            end_time=end_time,
            customer_notes=data.get("customer_notes") or "",
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "service_id": self.service_id,
            "provider_id": self.provider_id,
            "scheduled_date": self.scheduled_date.isoformat(),
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "customer_notes": self.customer_notes,
        }


def _parse(kind, value):
    if value in (None, ""):
        return None
    if isinstance(value, kind):
        return value
    return kind.fromisoformat(str(value))


# =============================================================================
# Escrow Capture Coordinator
# =============================================================================


class EscrowCaptureCoordinator(BaseService):
    """
    Captures payments and creates bookings, recovering orphaned captures.

    Methods:
        capture_and_create_booking: Capture then record the booking
        retry_orphaned_capture: Re-create the booking from the stored draft
    """

    def __init__(
        self,
        stripe_adapter=None,
        config: PaymentsConfig | None = None,
    ):
        self.stripe = stripe_adapter or StripeAdapter
        self.config = config or get_payments_config()

    def capture_and_create_booking(
        self,
        payment_intent_id: str,
        booking_draft: dict[str, Any] | BookingDraft,
        customer: Profile,
    ) -> ServiceResult[Booking]:
        """
        Capture the authorized amount and create the booking.

        Args:
            payment_intent_id: Stripe PaymentIntent ID (pi_xxx)
            booking_draft: Booking details (dict or BookingDraft)
            customer: Profile making the request; must own the intent

        Returns:
            ServiceResult with the created (or previously created) Booking

        Error codes:
            NOT_FOUND: Unknown payment intent
            PERMISSION_DENIED: Intent belongs to another customer
            VALIDATION_ERROR: Draft does not match the intent
            CAPTURE_FAILED: Stripe refused the capture; nothing recorded
            ORPHANED_CAPTURE: Funds captured, booking not yet recorded
        """
        logger = self.get_logger()

        intent = (
            PaymentIntent.objects.filter(stripe_payment_intent_id=payment_intent_id)
            .select_related("service")
            .first()
        )
        if intent is None:
            return ServiceResult.failure(
                "Payment not found",
                error_code=ErrorKind.NOT_FOUND,
                details={"payment_intent_id": payment_intent_id},
            )
        if intent.customer_id != customer.pk:
            logger.warning(
                "Capture attempted by non-owner",
                extra={
                    "payment_intent_id": payment_intent_id,
                    "customer_id": str(customer.pk),
                },
            )
            return ServiceResult.failure(
                "You do not have permission to use this payment",
                error_code=ErrorKind.PERMISSION_DENIED,
            )

        existing = Booking.objects.filter(payment_intent=intent).first()
        if existing is not None:
            logger.info(
                "Booking already exists for payment intent",
                extra={"payment_intent_id": payment_intent_id, "booking_id": str(existing.pk)},
            )
            return ServiceResult.success(existing)

        try:
            draft = (
                booking_draft
                if isinstance(booking_draft, BookingDraft)
                else BookingDraft.from_dict(booking_draft)
            )
            self._check_draft_matches(intent, draft)
        except PaymentValidationError as e:
            return ServiceResult.from_exception(e)

        if intent.status in (PaymentIntentStatus.CANCELED, PaymentIntentStatus.FAILED):
            return ServiceResult.failure(
                "Payment failed, please try again",
                error_code=ErrorKind.CAPTURE_FAILED,
                details={"status": intent.status},
            )

        if intent.status != PaymentIntentStatus.SUCCEEDED:
            capture_failure = self._capture(intent)
            if capture_failure is not None:
                return capture_failure

        try:
            intent.transition_status(
                PaymentIntentStatus.SUCCEEDED,
                captured_at=intent.captured_at or timezone.now(),
            )
            booking = self._create_booking(intent, draft)
        except Exception as e:
            return self._flag_orphaned(intent, draft, e)

        self._auto_confirm(booking)
        self._notify_created(booking)
        return ServiceResult.success(booking)

    def retry_orphaned_capture(self, intent_id) -> ServiceResult[Booking]:
        """
        Create the booking for a captured intent from its stored draft.

        Safe to run repeatedly: an intent that already has a booking is
        unflagged and its booking returned.

        Args:
            intent_id: Local PaymentIntent primary key

        Error codes:
            NOT_FOUND: Unknown intent
            VALIDATION_ERROR: Intent is not an orphaned capture
            ORPHANED_CAPTURE: Booking creation failed again
        """
        intent = PaymentIntent.objects.filter(pk=intent_id).first()
        if intent is None:
            return ServiceResult.failure(
                "Payment not found",
                error_code=ErrorKind.NOT_FOUND,
            )

        existing = Booking.objects.filter(payment_intent=intent).first()
        if existing is not None:
            PaymentIntent.objects.filter(pk=intent.pk).update(
                needs_reconciliation=False, updated_at=timezone.now()
            )
            return ServiceResult.success(existing)

        if intent.status != PaymentIntentStatus.SUCCEEDED or not intent.booking_draft:
            return ServiceResult.failure(
                "Payment is not awaiting booking reconciliation",
                error_code=ErrorKind.VALIDATION_ERROR,
                details={"status": intent.status},
            )

        PaymentIntent.objects.filter(pk=intent.pk).update(
            reconciliation_attempts=F("reconciliation_attempts") + 1,
            updated_at=timezone.now(),
        )

        try:
            draft = BookingDraft.from_dict(intent.booking_draft)
            booking = self._create_booking(intent, draft)
        except Exception as e:
            return self._flag_orphaned(intent, intent.booking_draft, e)

        self.get_logger().info(
            "Orphaned capture reconciled",
            extra={
                "payment_intent_id": intent.stripe_payment_intent_id,
                "booking_id": str(booking.pk),
            },
        )
        self._auto_confirm(booking)
        self._notify_created(booking)
        return ServiceResult.success(booking)

    # =========================================================================
    # Steps
    # =========================================================================

    def _check_draft_matches(self, intent: PaymentIntent, draft: BookingDraft) -> None:
        if draft.service_id != str(intent.service_id) or draft.provider_id != str(
            intent.provider_id
        ):
            raise PaymentValidationError(
                "Booking details do not match this payment",
                details={
                    "service_id": draft.service_id,
                    "provider_id": draft.provider_id,
                },
            )

    def _capture(self, intent: PaymentIntent) -> ServiceResult | None:
        """Capture at Stripe; returns a failure result or None on success."""
        try:
            result = self.stripe.capture_payment_intent(
                intent.stripe_payment_intent_id,
                idempotency_key=IdempotencyKeyGenerator.generate("capture", intent.pk),
            )
        except StripeError as e:
            self.get_logger().warning(
                "Capture failed",
                extra={
                    "payment_intent_id": intent.stripe_payment_intent_id,
                    "error_code": e.error_code,
                },
            )
            if self._captured_at_stripe(intent):
                intent.captured_at = timezone.now()
                return None
            return ServiceResult.failure(
                "Payment failed, please try again",
                error_code=ErrorKind.CAPTURE_FAILED,
                details=e.details,
            )

        if result.status != PaymentIntentStatus.SUCCEEDED:
            self.get_logger().warning(
                "Capture returned unexpected status",
                extra={
                    "payment_intent_id": intent.stripe_payment_intent_id,
                    "status": result.status,
                },
            )
            return ServiceResult.failure(
                "Payment failed, please try again",
                error_code=ErrorKind.CAPTURE_FAILED,
                details={"status": result.status},
            )

        intent.captured_at = timezone.now()
        return None

    def _captured_at_stripe(self, intent: PaymentIntent) -> bool:
        """
        Re-read the intent after a refused capture.

        A capture made elsewhere (an earlier request whose response was
        lost, or the dashboard) makes Stripe refuse ours while the funds
        are already held, so the booking must still be created.
        """
        try:
            current = self.stripe.retrieve_payment_intent(intent.stripe_payment_intent_id)
        except StripeError as e:
            self.get_logger().warning(
                "Could not re-read payment intent after failed capture",
                extra={
                    "payment_intent_id": intent.stripe_payment_intent_id,
                    "error_code": e.error_code,
                },
            )
            return False

        if current.status != PaymentIntentStatus.SUCCEEDED:
            return False
        self.get_logger().info(
            "Payment intent already captured at Stripe, continuing",
            extra={"payment_intent_id": intent.stripe_payment_intent_id},
        )
        return True

    def _create_booking(self, intent: PaymentIntent, draft: BookingDraft) -> Booking:
        fee_rate = Decimal(intent.metadata.get("fee_rate", self.config.fee_rate))

        try:
            with transaction.atomic():
                booking = Booking.objects.create(
                    customer_id=intent.customer_id,
                    provider_id=intent.provider_id,
                    service_id=intent.service_id,
                    scheduled_date=draft.scheduled_date,
                    start_time=draft.start_time,
                    end_time=draft.end_time,
                    customer_notes=draft.customer_notes,
                    status=BookingStatus.PENDING,
                    payment_status=PaymentStatus.PAID,
                    base_amount=intent.base_amount,
                    platform_fee=intent.platform_fee,
                    total_amount=intent.total_amount,
                    fee_rate=fee_rate,
                    currency=intent.currency,
                    payment_intent=intent,
                    stripe_payment_intent_id=intent.stripe_payment_intent_id,
                )
                PaymentIntent.objects.filter(pk=intent.pk).update(
                    needs_reconciliation=False,
                    reconciliation_error=None,
                    updated_at=timezone.now(),
                )
        except IntegrityError:
            # A concurrent request created the booking for this intent first
            existing = Booking.objects.filter(payment_intent_id=intent.pk).first()
            if existing is None:
                raise
            return existing

        self.get_logger().info(
            "Booking created from captured payment",
            extra={
                "booking_id": str(booking.pk),
                "payment_intent_id": intent.stripe_payment_intent_id,
                "status": booking.status,
            },
        )
        return booking

    def _auto_confirm(self, booking: Booking) -> None:
        """
        Confirm a freshly created booking when auto-confirm is on.

        Runs after the booking row has committed, so a failure here leaves
        a pending booking for the provider to accept instead of flagging
        the capture as orphaned.
        """
        if not self.config.auto_confirm_bookings:
            return
        try:
            transition(booking, BookingStatus.CONFIRMED)
        except (BaseApplicationError, DatabaseError):
            self.get_logger().error(
                "Auto-confirm failed, booking left pending",
                extra={"booking_id": str(booking.pk)},
                exc_info=True,
            )

    def _flag_orphaned(
        self,
        intent: PaymentIntent,
        draft: BookingDraft | dict[str, Any],
        error: Exception,
    ) -> ServiceResult[Booking]:
        draft_data = draft.as_dict() if isinstance(draft, BookingDraft) else draft
        self.get_logger().critical(
            "Payment captured but booking creation failed",
            extra={
                "payment_intent_id": intent.stripe_payment_intent_id,
                "customer_id": str(intent.customer_id),
                "total_amount": intent.total_amount,
                "error": str(error),
            },
            exc_info=error,
        )

        PaymentIntent.objects.filter(pk=intent.pk).update(
            needs_reconciliation=True,
            booking_draft=draft_data,
            reconciliation_error=f"{type(error).__name__}: {error}",
            updated_at=timezone.now(),
        )

        return ServiceResult.failure(
            "Your payment was received and we're confirming your booking.",
            error_code=ErrorKind.ORPHANED_CAPTURE,
            details={"payment_intent_id": intent.stripe_payment_intent_id},
        )

    def _notify_created(self, booking: Booking) -> None:
        data = {
            "booking_id": str(booking.pk),
            "scheduled_date": booking.scheduled_date.isoformat(),
            "amount": to_major_units(booking.total_amount),
            "currency": booking.currency.upper(),
        }
        NotificationService.create_notification(
            recipient=booking.provider.user,
            notification_type=NotificationType.BOOKING_REQUESTED,
            data=data,
            dedupe_key=f"booking_requested:{booking.pk}",
        )
        NotificationService.create_notification(
            recipient=booking.customer.user,
            notification_type=NotificationType.PAYMENT_RECEIVED,
            data=data,
            dedupe_key=f"payment_received:{booking.stripe_payment_intent_id}",
        )

"""
Booking lifecycle service.

Every operation loads the booking, checks that the caller is allowed to
act on it, then moves it through bookings.state_machine.transition().
Side effects (refunds, payouts, notifications) happen after the status
write has landed, and each one is idempotent, so re-invoking an
operation finishes whatever a previous attempt left undone.

Usage:
    from bookings.services import BookingService

    service = BookingService()
    result = service.accept(booking_id, provider=request.user.profile)
    if not result.success:
        return Response(result.to_response(), status=400)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from django.utils import timezone

from core.exceptions import BaseApplicationError
from core.services import BaseService, ServiceResult

from bookings.models import Booking
from bookings.state_machine import BookingStatus, PaymentStatus, transition
from notifications.models import NotificationType
from notifications.services import NotificationService
from payments.adapters import IdempotencyKeyGenerator, StripeAdapter
from payments.conf import get_payments_config
from payments.exceptions import ErrorKind, StripeError
from payments.money import to_major_units
from payments.services import PayoutService

if TYPE_CHECKING:
    from authentication.models import Profile
    from payments.conf import PaymentsConfig
    from payments.models import PayoutRecord


@dataclass
class CompletedService:
    """
    Outcome of complete_service.

    The booking is completed even when the payout could not be started;
    payout_error_code then says why (TRANSFER_FAILED, VALIDATION_ERROR).
    """

    booking: Booking
    payout: PayoutRecord | None = None
    payout_error: str | None = None
    payout_error_code: str | None = None


class BookingService(BaseService):
    """
    Service for moving bookings through their lifecycle.

    Methods:
        accept: Provider confirms a pending booking
        decline: Provider declines a pending booking (refund)
        cancel: Either party cancels a confirmed booking (refund)
        start: Provider starts a confirmed booking
        complete_service: Provider completes the booking (payout)
        expire: Pending booking times out (refund)
        expire_stale_pending: Sweep for expire()
    """

    def __init__(
        self,
        stripe_adapter=None,
        payout_service: PayoutService | None = None,
        config: PaymentsConfig | None = None,
    ):
        self.stripe = stripe_adapter or StripeAdapter
        self.config = config or get_payments_config()
        self.payout_service = payout_service or PayoutService(
            stripe_adapter=self.stripe, config=self.config
        )

    # =========================================================================
    # Provider Decisions
    # =========================================================================

    def accept(self, booking_id: uuid.UUID | str, provider: Profile) -> ServiceResult[Booking]:
        """
        Confirm a pending booking.

        Error codes:
            NOT_FOUND, PERMISSION_DENIED, INVALID_STATE_TRANSITION
        """
        booking, error = self._load_for_provider(booking_id, provider)
        if error is not None:
            return error

        moved = self._transition(booking, BookingStatus.CONFIRMED)
        if not moved.success:
            return moved
        if moved.data:
            self.get_logger().info(f"Booking {booking.pk} confirmed")
            self._notify(booking, booking.customer, NotificationType.BOOKING_CONFIRMED)
        return ServiceResult.success(booking)

    def decline(
        self,
        booking_id: uuid.UUID | str,
        provider: Profile,
        reason: str = "",
    ) -> ServiceResult[Booking]:
        """
        Decline a pending booking and refund the customer in full.

        Calling again on a declined booking retries a refund that failed.

        Error codes:
            NOT_FOUND, PERMISSION_DENIED, INVALID_STATE_TRANSITION
            REFUND_FAILED: Booking is declined but the refund must be retried
        """
        booking, error = self._load_for_provider(booking_id, provider)
        if error is not None:
            return error

        moved = self._transition(booking, BookingStatus.DECLINED, declined_reason=reason)
        if not moved.success:
            return moved
        if moved.data:
            self.get_logger().info(f"Booking {booking.pk} declined")
            self._notify(booking, booking.customer, NotificationType.BOOKING_DECLINED)
        return self._refund_if_paid(booking)

    def start(self, booking_id: uuid.UUID | str, provider: Profile) -> ServiceResult[Booking]:
        booking, error = self._load_for_provider(booking_id, provider)
        if error is not None:
            return error

        moved = self._transition(booking, BookingStatus.IN_PROGRESS)
        if not moved.success:
            return moved
        if moved.data:
            self._notify(booking, booking.customer, NotificationType.SERVICE_STARTED)
        return ServiceResult.success(booking)

    def complete_service(
        self, booking_id: uuid.UUID | str, provider: Profile
    ) -> ServiceResult[CompletedService]:
        """
        Complete an in-progress booking and start the provider payout.

        Re-invoking on a completed booking returns the existing payout;
        no second payout is created.

        Error codes:
            NOT_FOUND, PERMISSION_DENIED, INVALID_STATE_TRANSITION
        """
        booking, error = self._load_for_provider(booking_id, provider)
        if error is not None:
            return error

        moved = self._transition(booking, BookingStatus.COMPLETED)
        if not moved.success:
            return moved
        if moved.data:
            self.get_logger().info(f"Booking {booking.pk} completed")
            self._notify(booking, booking.customer, NotificationType.SERVICE_COMPLETED)

        payout_result = self.payout_service.initiate_payout(booking)
        if not payout_result.success:
            self.get_logger().warning(
                "Booking completed but payout was not started",
                extra={
                    "booking_id": str(booking.pk),
                    "error_code": str(payout_result.error_code),
                },
            )
            return ServiceResult.success(
                CompletedService(
                    booking=booking,
                    payout=None,
                    payout_error=payout_result.error,
                    payout_error_code=str(payout_result.error_code),
                )
            )
        return ServiceResult.success(CompletedService(booking=booking, payout=payout_result.data))

    # =========================================================================
    # Cancellation & Expiry
    # =========================================================================

    def cancel(
        self,
        booking_id: uuid.UUID | str,
        actor: Profile,
        reason: str = "",
    ) -> ServiceResult[Booking]:
        """
        Cancel a confirmed booking on behalf of its customer or provider.

        The customer is refunded in full and the other party is notified.

        Error codes:
            NOT_FOUND, PERMISSION_DENIED, INVALID_STATE_TRANSITION, REFUND_FAILED
        """
        booking = self._load(booking_id)
        if booking is None:
            return self._not_found(booking_id)
        if not booking.is_party(actor):
            return ServiceResult.failure(
                "You are not part of this booking",
                error_code=ErrorKind.PERMISSION_DENIED,
            )

        moved = self._transition(
            booking,
            BookingStatus.CANCELLED,
            cancellation_reason=reason,
            cancelled_by_id=actor.pk,
        )
        if not moved.success:
            return moved
        if moved.data:
            other = booking.provider if actor.pk == booking.customer_id else booking.customer
            self.get_logger().info(
                f"Booking {booking.pk} cancelled",
                extra={"cancelled_by": str(actor.pk)},
            )
            self._notify(booking, other, NotificationType.BOOKING_CANCELLED)
        return self._refund_if_paid(booking)

    def expire(self, booking_id: uuid.UUID | str) -> ServiceResult[Booking]:
        """Expire a pending booking the provider never answered, with refund."""
        booking = self._load(booking_id)
        if booking is None:
            return self._not_found(booking_id)

        moved = self._transition(booking, BookingStatus.EXPIRED)
        if not moved.success:
            return moved
        if moved.data:
            self._notify(booking, booking.customer, NotificationType.BOOKING_EXPIRED)
        return self._refund_if_paid(booking)

    def expire_stale_pending(self, now: datetime | None = None) -> ServiceResult[int]:
        """
        Expire every pending booking older than the response window.

        Bookings accepted while the sweep runs are skipped: their
        compare-and-set fails with INVALID_STATE_TRANSITION.

        Returns:
            ServiceResult with the number of bookings expired
        """
        now = now or timezone.now()
        cutoff = now - self.config.booking_pending_expiry
        stale_ids = list(
            Booking.objects.filter(
                status=BookingStatus.PENDING,
                created_at__lt=cutoff,
            ).values_list("pk", flat=True)
        )

        expired = 0
        for booking_id in stale_ids:
            result = self.expire(booking_id)
            if result.success or result.error_code == ErrorKind.REFUND_FAILED:
                expired += 1

        if expired:
            self.get_logger().info(f"Expired {expired} stale pending bookings")
        return ServiceResult.success(expired)

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _load(booking_id) -> Booking | None:
        return (
            Booking.objects.select_related("customer__user", "provider__user")
            .filter(pk=booking_id)
            .first()
        )

    @staticmethod
    def _not_found(booking_id) -> ServiceResult:
        return ServiceResult.failure(
            "Booking not found",
            error_code=ErrorKind.NOT_FOUND,
            details={"booking_id": str(booking_id)},
        )

    def _load_for_provider(self, booking_id, provider: Profile):
        booking = self._load(booking_id)
        if booking is None:
            return None, self._not_found(booking_id)
        if booking.provider_id != provider.pk:
            return None, ServiceResult.failure(
                "Only the booking's provider can do this",
                error_code=ErrorKind.PERMISSION_DENIED,
            )
        return booking, None

    def _transition(self, booking: Booking, target: str, **fields) -> ServiceResult[bool]:
        try:
            return ServiceResult.success(transition(booking, target, **fields))
        except BaseApplicationError as e:
            self.get_logger().info(
                f"Rejected booking transition to {target}",
                extra={"booking_id": str(booking.pk), "error_code": e.error_code},
            )
            return ServiceResult.from_exception(e)

    def _refund_if_paid(self, booking: Booking) -> ServiceResult[Booking]:
        """Refund the full captured amount once; later calls are no-ops."""
        if booking.payment_status != PaymentStatus.PAID:
            return ServiceResult.success(booking)

        try:
            refund = self.stripe.create_refund(
                payment_intent_id=booking.stripe_payment_intent_id,
                idempotency_key=IdempotencyKeyGenerator.generate("refund", booking.pk),
                reason="requested_by_customer",
                metadata={"booking_id": str(booking.pk)},
            )
        except StripeError as e:
            self.get_logger().error(
                "Refund failed for booking",
                extra={"booking_id": str(booking.pk), "error_code": e.error_code},
            )
            return ServiceResult.failure(
                "Booking updated but the refund could not be issued yet",
                error_code=ErrorKind.REFUND_FAILED,
                details={"booking_id": str(booking.pk), "retryable": e.is_retryable},
            )

        now = timezone.now()
        updated = Booking.objects.filter(
            pk=booking.pk, payment_status=PaymentStatus.PAID
        ).update(
            payment_status=PaymentStatus.REFUNDED,
            stripe_refund_id=refund.id,
            refunded_at=now,
            updated_at=now,
        )
        if updated:
            booking.payment_status = PaymentStatus.REFUNDED
            booking.stripe_refund_id = refund.id
            booking.refunded_at = now
            self.get_logger().info(
                "Booking refunded",
                extra={"booking_id": str(booking.pk), "stripe_refund_id": refund.id},
            )
            NotificationService.create_notification(
                recipient=booking.customer.user,
                notification_type=NotificationType.PAYMENT_REFUNDED,
                data={
                    "booking_id": str(booking.pk),
                    "amount": to_major_units(booking.total_amount),
                    "currency": booking.currency.upper(),
                },
                dedupe_key=f"payment_refunded:{booking.pk}",
            )
        return ServiceResult.success(booking)

    def _notify(self, booking: Booking, recipient: Profile, notification_type: str) -> None:
        NotificationService.create_notification(
            recipient=recipient.user,
            notification_type=notification_type,
            data={
                "booking_id": str(booking.pk),
                "scheduled_date": booking.scheduled_date.isoformat(),
            },
            dedupe_key=f"{notification_type}:{booking.pk}",
        )

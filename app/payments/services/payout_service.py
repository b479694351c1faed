"""
Payout service for transferring the provider's share of a booking.

When a booking is completed the provider is owed its base amount. The
service records a PayoutRecord and creates a Stripe Connect transfer for
it, in two phases so a Stripe call is never made inside a transaction
that could roll back:

1. Phase 1: Lock the booking row, return the existing non-failed payout
   if there is one, else insert a PROCESSING record and commit
2. Phase 2: Call Stripe create_transfer (outside the transaction) with an
   idempotency key derived from the booking id
3. Phase 3: Store stripe_transfer_id; payout.paid webhooks complete it

If the transfer succeeds but storing its id fails, the record stays
PROCESSING with no transfer id. ``resume_stalled_transfers`` repeats the
transfer with the same idempotency key, which makes Stripe return the
original transfer instead of sending money twice.

Usage:
    from payments.services import PayoutService

    result = PayoutService().initiate_payout(booking)
    if result.success:
        payout = result.data
    elif result.error_code == ErrorKind.TRANSFER_FAILED:
        ...
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.utils import timezone

from django_fsm import ConcurrentTransition

from core.services import BaseService, ServiceResult

from bookings.models import Booking
from bookings.state_machine import BookingStatus, PaymentStatus
from notifications.models import NotificationType
from notifications.services import NotificationService
from payments.adapters import IdempotencyKeyGenerator, StripeAdapter
from payments.conf import get_payments_config
from payments.exceptions import ErrorKind, StripeError
from payments.models import PayoutRecord, ProviderAccount
from payments.money import to_major_units
from payments.state_machines import PayoutStatus

if TYPE_CHECKING:
    from payments.conf import PaymentsConfig


# =============================================================================
# Constants
# =============================================================================

# PROCESSING records without a transfer id older than this are resumed
STALLED_TRANSFER_AFTER = timedelta(minutes=15)


# =============================================================================
# Payout Service
# =============================================================================


class PayoutService(BaseService):
    """
    Service for paying providers for completed bookings.

    Safety Guarantees:
        - select_for_update on the booking serializes concurrent initiations
        - Partial unique constraint allows one non-failed payout per booking
        - Deterministic idempotency key prevents duplicate transfers on retry
        - ConcurrentTransitionMixin turns every status save into a
          compare-and-set, so webhooks and requests cannot overwrite each other

    Error Handling:
        - Transient Stripe errors are retried by the adapter; if they persist
          the record stays PROCESSING and is resumed later
        - Permanent errors mark the record FAILED and notify the provider

    Methods:
        initiate_payout: Create the payout for a completed booking
        retry_failed_payout: Start a new payout after a failed one
        resume_stalled_transfers: Re-send transfers whose id was never stored
        mark_completed: Apply a payout.paid event
        mark_failed: Apply a payout.failed event
    """

    def __init__(
        self,
        stripe_adapter=None,
        config: PaymentsConfig | None = None,
    ):
        self.stripe = stripe_adapter or StripeAdapter
        self.config = config or get_payments_config()

    # =========================================================================
    # Initiation
    # =========================================================================

    def initiate_payout(self, booking: Booking) -> ServiceResult[PayoutRecord]:
        """
        Create the provider payout for a completed booking.

        Calling this again for the same booking returns the existing
        payout (DUPLICATE_PAYOUT is logged and treated as success).

        Args:
            booking: Booking to settle; re-read under lock

        Returns:
            ServiceResult with the PayoutRecord

        Error codes:
            NOT_FOUND: Booking does not exist
            INVALID_STATE_TRANSITION: Booking is not completed
            VALIDATION_ERROR: Booking is not paid, is below the minimum
                payout, or an earlier transfer was delivered and its bank
                payout failed
            TRANSFER_FAILED: Stripe rejected the transfer; the record is FAILED
        """
        logger = self.get_logger()

        with transaction.atomic():
            locked = (
                Booking.objects.select_for_update()
                .filter(pk=booking.pk)
                .first()
            )
            if locked is None:
                return ServiceResult.failure(
                    "Booking not found",
                    error_code=ErrorKind.NOT_FOUND,
                )

            validation = self._validate(locked)
            if not validation.success:
                return validation

            existing = self._active_payout(locked)
            if existing is not None:
                logger.info(
                    "Payout already exists for booking, returning existing record",
                    extra={
                        "booking_id": str(locked.pk),
                        "payout_id": str(existing.pk),
                        "error_code": ErrorKind.DUPLICATE_PAYOUT.value,
                    },
                )
                return ServiceResult.success(existing)

            delivered = self._delivered_failed_payout(locked)
            if delivered is not None:
                # Transfer delivered; only the connected account's bank payout failed
                logger.error(
                    "Refusing new transfer, an earlier transfer was already delivered",
                    extra={
                        "booking_id": str(locked.pk),
                        "payout_id": str(delivered.pk),
                        "stripe_transfer_id": delivered.stripe_transfer_id,
                    },
                )
                return ServiceResult.failure(
                    "The provider already received a transfer for this booking; "
                    "their bank payout failed and must be resolved on the connected account",
                    error_code=ErrorKind.VALIDATION_ERROR,
                    details={
                        "payout_id": str(delivered.pk),
                        "stripe_transfer_id": delivered.stripe_transfer_id,
                    },
                )

            attempt = (
                PayoutRecord.objects.filter(
                    booking=locked, status=PayoutStatus.FAILED
                ).count()
                + 1
            )

            try:
                # Savepoint: a lost race must not abort the outer transaction
                with transaction.atomic():
                    payout = PayoutRecord.objects.create(
                        provider_id=locked.provider_id,
                        booking=locked,
                        gross_amount=locked.total_amount,
                        platform_fee=locked.platform_fee,
                        net_amount=locked.total_amount - locked.platform_fee,
                        currency=locked.currency,
                        idempotency_key=IdempotencyKeyGenerator.generate(
                            "transfer", locked.pk, attempt
                        ),
                        expected_payout_date=self.config.next_payout_date(
                            timezone.localdate()
                        ),
                    )
            except IntegrityError:
                existing = self._active_payout(locked)
                if existing is None:
                    raise
                logger.info(
                    "Concurrent payout creation detected, returning existing record",
                    extra={
                        "booking_id": str(locked.pk),
                        "payout_id": str(existing.pk),
                        "error_code": ErrorKind.DUPLICATE_PAYOUT.value,
                    },
                )
                return ServiceResult.success(existing)

        logger.info(
            "Phase 1: Payout record created",
            extra={
                "payout_id": str(payout.pk),
                "booking_id": str(booking.pk),
                "net_amount": payout.net_amount,
                "expected_payout_date": payout.expected_payout_date.isoformat(),
            },
        )

        return self._execute_transfer(payout)

    def retry_failed_payout(self, booking: Booking) -> ServiceResult[PayoutRecord]:
        """
        Start a fresh payout for a booking whose earlier payouts all failed.

        The new record gets a new idempotency key (attempt number bumped),
        so Stripe treats it as a separate transfer. Only transfers Stripe
        rejected are retried. A record failed by payout.failed already
        delivered its transfer to the connected account, so no new transfer
        is started for that booking.

        Error codes:
            VALIDATION_ERROR: No failed payout exists for the booking, or an
            earlier transfer was already delivered
            (plus every code from initiate_payout)
        """
        has_failed = PayoutRecord.objects.filter(
            booking_id=booking.pk, status=PayoutStatus.FAILED
        ).exists()
        if not has_failed and not self._active_payout(booking):
            return ServiceResult.failure(
                "No failed payout to retry for this booking",
                error_code=ErrorKind.VALIDATION_ERROR,
            )
        return self.initiate_payout(booking)

    def resume_stalled_transfers(self, now: datetime | None = None) -> ServiceResult[int]:
        """
        Re-send transfers for PROCESSING records that never stored a transfer id.

        Returns:
            ServiceResult with the number of records resumed
        """
        now = now or timezone.now()
        stalled = PayoutRecord.objects.filter(
            status=PayoutStatus.PROCESSING,
            stripe_transfer_id__isnull=True,
            created_at__lt=now - STALLED_TRANSFER_AFTER,
        )

        count = 0
        for payout in stalled.iterator():
            self.get_logger().warning(
                "Resuming stalled payout transfer",
                extra={"payout_id": str(payout.pk), "booking_id": str(payout.booking_id)},
            )
            self._execute_transfer(payout)
            count += 1
        return ServiceResult.success(count)

    # =========================================================================
    # Webhook-driven Transitions
    # =========================================================================

    def mark_completed(self, payout: PayoutRecord, paid_at: datetime | None = None) -> bool:
        """
        Apply a payout.paid event to a record.

        Returns:
            True if this call completed the payout, False if it was not
            PROCESSING (already completed, or failed)
        """
        with transaction.atomic():
            locked = PayoutRecord.objects.select_for_update().get(pk=payout.pk)
            if locked.status != PayoutStatus.PROCESSING:
                log = self.get_logger().info if locked.is_complete else self.get_logger().warning
                log(
                    "Ignoring payout.paid for payout not in processing",
                    extra={"payout_id": str(locked.pk), "current_state": locked.status},
                )
                return False
            locked.complete(paid_at=paid_at)
            locked.save()

        self.get_logger().info(
            "Payout completed",
            extra={"payout_id": str(locked.pk), "net_amount": locked.net_amount},
        )
        self._notify(locked, NotificationType.PAYOUT_COMPLETED)
        return True

    def mark_failed(self, payout: PayoutRecord, reason: str) -> bool:
        """
        Apply a payout.failed event to a record.

        Returns:
            True if this call failed the payout
        """
        with transaction.atomic():
            locked = PayoutRecord.objects.select_for_update().get(pk=payout.pk)
            if locked.status != PayoutStatus.PROCESSING:
                self.get_logger().info(
                    "Ignoring payout.failed for payout not in processing",
                    extra={"payout_id": str(locked.pk), "current_state": locked.status},
                )
                return False
            locked.fail(reason=reason)
            locked.save()

        self.get_logger().error(
            "Payout failed",
            extra={"payout_id": str(locked.pk), "reason": reason},
        )
        self._notify(locked, NotificationType.PAYOUT_FAILED, reason=reason)
        return True

    # =========================================================================
    # Internals
    # =========================================================================

    def _validate(self, booking: Booking) -> ServiceResult:
        if booking.status != BookingStatus.COMPLETED:
            return ServiceResult.failure(
                "Payouts can only be made for completed bookings",
                error_code=ErrorKind.INVALID_STATE_TRANSITION,
                details={"current_state": booking.status},
            )
        if booking.payment_status != PaymentStatus.PAID:
            return ServiceResult.failure(
                "Booking has no captured payment to pay out",
                error_code=ErrorKind.VALIDATION_ERROR,
                details={"payment_status": booking.payment_status},
            )
        if booking.base_amount < self.config.minimum_payout_amount:
            return ServiceResult.failure(
                "Payout is below the minimum transfer amount",
                error_code=ErrorKind.VALIDATION_ERROR,
                details={
                    "net_amount": booking.base_amount,
                    "minimum": self.config.minimum_payout_amount,
                },
            )
        return ServiceResult.success(None)

    @staticmethod
    def _active_payout(booking: Booking) -> PayoutRecord | None:
        return (
            PayoutRecord.objects.filter(booking_id=booking.pk)
            .exclude(status=PayoutStatus.FAILED)
            .first()
        )

    @staticmethod
    def _delivered_failed_payout(booking: Booking) -> PayoutRecord | None:
        """FAILED record whose transfer went through (a payout.failed from the bank)."""
        return PayoutRecord.objects.filter(
            booking_id=booking.pk,
            status=PayoutStatus.FAILED,
            stripe_transfer_id__isnull=False,
        ).first()

    def _execute_transfer(self, payout: PayoutRecord) -> ServiceResult[PayoutRecord]:
        """Phases 2 and 3: call Stripe, then store the transfer id."""
        logger = self.get_logger()

        account = ProviderAccount.objects.filter(profile_id=payout.provider_id).first()
        if account is None or not account.payouts_enabled:
            return self._fail_payout(payout, "Provider payout account is not enabled")

        logger.info(
            "Phase 2: Calling Stripe create_transfer",
            extra={
                "payout_id": str(payout.pk),
                "destination_account": account.stripe_account_id,
                "net_amount": payout.net_amount,
            },
        )

        try:
            transfer = self.stripe.create_transfer(
                amount=payout.net_amount,
                destination_account=account.stripe_account_id,
                idempotency_key=payout.idempotency_key,
                currency=payout.currency,
                transfer_group=f"booking_{payout.booking_id}",
                metadata={
                    "booking_id": str(payout.booking_id),
                    "payout_id": str(payout.pk),
                },
            )
        except StripeError as e:
            if e.is_retryable:
                # Retries exhausted inside the adapter; the record stays
                # PROCESSING and resume_stalled_transfers picks it up
                logger.error(
                    "Transient Stripe error persisted, payout left processing",
                    extra={"payout_id": str(payout.pk), "error_code": e.error_code},
                )
                return ServiceResult.failure(
                    "Transfer could not be sent yet and will be retried",
                    error_code=ErrorKind.TRANSFER_FAILED,
                    details={"payout_id": str(payout.pk), "retryable": True},
                )
            return self._fail_payout(payout, str(e))

        logger.info(
            "Phase 3: Storing stripe_transfer_id",
            extra={"payout_id": str(payout.pk), "stripe_transfer_id": transfer.id},
        )

        try:
            PayoutRecord.objects.filter(
                pk=payout.pk, stripe_transfer_id__isnull=True
            ).update(stripe_transfer_id=transfer.id, updated_at=timezone.now())
        except Exception:
            # Stripe has the transfer; the same idempotency key will return
            # it when the stalled-transfer sweep retries
            logger.error(
                "Failed to store transfer_id after Stripe success - reconciliation needed",
                extra={"payout_id": str(payout.pk), "stripe_transfer_id": transfer.id},
                exc_info=True,
            )
            return ServiceResult.success(payout)

        payout.stripe_transfer_id = transfer.id
        self._notify(payout, NotificationType.PAYOUT_RELEASED)
        return ServiceResult.success(payout)

    def _fail_payout(self, payout: PayoutRecord, reason: str) -> ServiceResult[PayoutRecord]:
        logger = self.get_logger()
        logger.error(
            "Payout transfer failed permanently",
            extra={"payout_id": str(payout.pk), "reason": reason},
        )
        try:
            payout.fail(reason=reason)
            payout.save()
        except ConcurrentTransition:
            logger.warning(
                "Payout changed state before failure could be recorded",
                extra={"payout_id": str(payout.pk)},
            )
        else:
            self._notify(payout, NotificationType.PAYOUT_FAILED, reason=reason)

        return ServiceResult.failure(
            f"Transfer failed: {reason}",
            error_code=ErrorKind.TRANSFER_FAILED,
            details={"payout_id": str(payout.pk), "retryable": False},
        )

    def _notify(self, payout: PayoutRecord, notification_type: str, reason: str = "") -> None:
        NotificationService.create_notification(
            recipient=payout.provider.user,
            notification_type=notification_type,
            data={
                "payout_id": str(payout.pk),
                "booking_id": str(payout.booking_id),
                "amount": to_major_units(payout.net_amount),
                "currency": payout.currency.upper(),
                "reason": reason,
            },
            dedupe_key=f"{notification_type}:{payout.pk}",
        )

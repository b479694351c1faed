"""
Booking status enums and the transition table.

State Flow:
    PENDING -> CONFIRMED (provider accepts, or auto-confirm)
    PENDING -> DECLINED (provider declines, refund)
    PENDING -> EXPIRED (no answer in time, refund)
    CONFIRMED -> IN_PROGRESS (provider starts the service)
    CONFIRMED -> CANCELLED (customer or provider cancels, refund)
    IN_PROGRESS -> COMPLETED (provider completes, payout)

Any other move raises InvalidStateTransitionError and leaves the row
untouched. Every transition is a single compare-and-set UPDATE:

    UPDATE bookings SET status = target ... WHERE id = ? AND status = current

so two requests racing on one booking cannot both win.

Usage:
    from bookings.state_machine import BookingStatus, transition

    changed = transition(booking, BookingStatus.CONFIRMED)
    # changed is False if the booking was already confirmed
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import models
from django.utils import timezone

from core.exceptions import NotFoundError
from payments.exceptions import InvalidStateTransitionError

if TYPE_CHECKING:
    from bookings.models import Booking


class BookingStatus(models.TextChoices):
    """
    Lifecycle states for a Booking.

    Terminal states: COMPLETED, CANCELLED, DECLINED, EXPIRED
    """

    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    IN_PROGRESS = "in_progress", "In Progress"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    DECLINED = "declined", "Declined"
    EXPIRED = "expired", "Expired"


class PaymentStatus(models.TextChoices):
    """Payment state of a booking's captured funds."""

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    BookingStatus.PENDING: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.DECLINED, BookingStatus.EXPIRED}
    ),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED}
    ),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED}),
}

# Terminal states reached before the service happened; funds go back
REFUNDABLE_STATUSES = frozenset(
    {BookingStatus.DECLINED, BookingStatus.EXPIRED, BookingStatus.CANCELLED}
)

TRANSITION_TIMESTAMPS: dict[str, str] = {
    BookingStatus.CONFIRMED: "confirmed_at",
    BookingStatus.DECLINED: "declined_at",
    BookingStatus.EXPIRED: "expired_at",
    BookingStatus.IN_PROGRESS: "started_at",
    BookingStatus.CANCELLED: "cancelled_at",
    BookingStatus.COMPLETED: "completed_at",
}


def can_transition(current: str, target: str) -> bool:
    """Check the transition table without touching the database."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def transition(booking: Booking, target: str, **fields) -> bool:
    """
    Move a booking to ``target`` with a compare-and-set update.

    The matching ``*_at`` timestamp is stamped automatically. Extra
    columns (e.g. ``declined_reason``) are written in the same UPDATE.
    On success the in-memory instance is updated to match the row.

    Args:
        booking: Booking to move (its ``status`` is the expected state)
        target: BookingStatus to move to
        **fields: Additional columns to write

    Returns:
        True if this call moved the booking, False if it was already in
        ``target`` (idempotent no-op)

    Raises:
        InvalidStateTransitionError: The move is not in the transition
            table, or a concurrent writer moved the booking elsewhere
        NotFoundError: The booking row no longer exists
    """
    current = booking.status
    if current == target:
        return False

    if not can_transition(current, target):
        raise InvalidStateTransitionError(
            f"Cannot move booking from '{current}' to '{target}'",
            details={
                "booking_id": str(booking.pk),
                "current_state": current,
                "target_state": target,
            },
        )

    now = timezone.now()
    values = {"status": target, "updated_at": now, **fields}
    timestamp_field = TRANSITION_TIMESTAMPS.get(target)
    if timestamp_field and timestamp_field not in values:
        values[timestamp_field] = now

    manager = type(booking).objects
    updated = manager.filter(pk=booking.pk, status=current).update(**values)

    if not updated:
        actual = manager.filter(pk=booking.pk).values_list("status", flat=True).first()
        if actual is None:
            raise NotFoundError(
                "Booking not found",
                details={"booking_id": str(booking.pk)},
            )
        if actual == target:
            # Lost the race to a writer doing the same thing
            booking.status = actual
            return False
        raise InvalidStateTransitionError(
            f"Booking moved to '{actual}' before '{target}' could be applied",
            details={
                "booking_id": str(booking.pk),
                "current_state": actual,
                "target_state": target,
            },
        )

    for name, value in values.items():
        setattr(booking, name, value)
    return True

"""
Service layer primitives shared by the domain apps.

- ServiceResult: explicit success/failure return for expected outcomes
- BaseService: logging and transaction helpers for service classes

Expected failures (a declined card, an illegal booking transition, a bad
webhook signature) travel back to the caller as ``ServiceResult.failure``
with a machine-readable ``error_code``. Unexpected failures (database
outages, programming errors) are raised.

Usage:
    from core.services import BaseService, ServiceResult

    class PayoutService(BaseService):
        def __init__(self, stripe_adapter=None):
            self.stripe = stripe_adapter or StripeAdapter

        def initiate_payout(self, booking) -> ServiceResult[PayoutRecord]:
            if booking.status != "completed":
                return ServiceResult.failure(
                    "Booking is not completed",
                    error_code="INVALID_STATE_TRANSITION",
                )

            with self.atomic():
                payout = PayoutRecord.objects.create(...)

            self.get_logger().info(f"Created payout {payout.id}")
            return ServiceResult.success(payout)

    # In a view
    result = PayoutService().initiate_payout(booking)
    if result.success:
        return Response(PayoutRecordSerializer(result.data).data, status=201)
    return Response(result.to_response(), status=400)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures
        details: Extra context for the caller (e.g. the id of an orphaned
            payment intent); never rendered for successful results

    Usage:
        return ServiceResult.success(booking)
        return ServiceResult.failure("Capture failed", "CAPTURE_FAILED")

        result = BookingService.accept(booking_id, provider)
        if not result:
            print(f"Error: {result.error} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)
    details: dict[str, Any] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
        details: dict[str, Any] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)
            details: Additional context for the caller

        Returns:
            ServiceResult with success=False and error details

        Example:
            return ServiceResult.failure(
                "Booking could not be recorded",
                error_code="ORPHANED_CAPTURE",
                details={"payment_intent_id": str(intent.id)},
            )
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
            details=details,
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Application errors carry their own error code and details, which are
        preserved. Other exceptions fall back to the class name.

        Args:
            exc: The caught exception
            error_code: Optional error code override

        Returns:
            ServiceResult with error details from exception
        """
        from core.exceptions import BaseApplicationError

        if isinstance(exc, BaseApplicationError):
            return cls(
                success=False,
                error=exc.message,
                error_code=error_code or exc.error_code,
                details=exc.details or None,
            )
        return cls(
            success=False,
            error=str(exc),
            error_code=error_code or exc.__class__.__name__.upper(),
        )

    def to_response(self) -> dict[str, Any]:
        """
        Convert to API response format.

        Returns:
            Dict with success status and data or error details
        """
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        if self.details:
            response["details"] = self.details
        return response

    def __bool__(self) -> bool:
        """Allow using result in boolean context."""
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Services hold no per-request state. Collaborators that talk to the
    outside world (the Stripe adapter) are passed to the constructor so
    tests can inject fakes.

    Usage:
        class BookingService(BaseService):
            def accept(self, booking_id, provider) -> ServiceResult[Booking]:
                with self.atomic():
                    ...
                self.get_logger().info(f"Accepted booking {booking_id}")
                return ServiceResult.success(booking)
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.

        Returns:
            Logger instance for this service
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        Thin wrapper around Django's transaction.atomic() that keeps
        transaction boundaries visible in service code.

        Yields:
            None
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.ERROR,
    ) -> ServiceResult:
        """
        Convert exception to ServiceResult with logging.

        Args:
            exc: The caught exception
            context: Additional context for logging
            log_level: Logging level (default ERROR)

        Returns:
            ServiceResult with error details

        Example:
            try:
                adapter.create_transfer(params)
            except StripeError as e:
                return cls.handle_exception(e, "payout transfer")
        """
        logger = cls.get_logger()
        message = f"{context}: {exc}" if context else str(exc)
        logger.log(log_level, message, exc_info=log_level >= logging.ERROR)
        return ServiceResult.from_exception(exc)

"""
Payment intent service for the escrow checkout.

Creates manual-capture Stripe PaymentIntents for the full booking total.
Funds are authorized at checkout and only captured when the booking is
recorded (see capture_coordinator).

Flow:
    1. Replay check by idempotency key (no Stripe call on replay)
    2. Validate service, provider and amount
    3. compute_split() once; the split is stored on the intent
    4. Create the Stripe PaymentIntent (same idempotency key)
    5. Persist the PaymentIntent row

Usage:
    from payments.services import PaymentIntentService

    result = PaymentIntentService().create_intent(
        customer=request.user.profile,
        service_id=service.id,
        provider_id=provider.pk,
        base_amount=10000,
        currency="gbp",
        idempotency_key="checkout-7f3a",
    )
    if result.success:
        client_secret = result.data.client_secret
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.utils import timezone

from core.services import BaseService, ServiceResult

from bookings.models import Service
from payments.adapters import (
    CreatePaymentIntentParams,
    IdempotencyKeyGenerator,
    StripeAdapter,
)
from payments.conf import get_payments_config
from payments.exceptions import ErrorKind, PaymentValidationError, StripeError
from payments.models import PaymentIntent, ProviderAccount
from payments.money import Split, compute_split
from payments.state_machines import AWAITING_CUSTOMER_STATUSES, PaymentIntentStatus

if TYPE_CHECKING:
    from authentication.models import Profile
    from payments.conf import PaymentsConfig


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class CreatedIntent:
    """
    Outcome of create_intent.

    Attributes:
        payment_intent: The persisted PaymentIntent row
        client_secret: Secret the app uses to confirm the payment
        payment_intent_id: Stripe PaymentIntent ID (pi_xxx)
        split: Amount split charged on this intent
        replayed: True when returned from an earlier call with the same key
    """

    payment_intent: PaymentIntent
    client_secret: str
    payment_intent_id: str
    split: Split
    replayed: bool = False

    @classmethod
    def from_model(cls, intent: PaymentIntent, replayed: bool = False) -> CreatedIntent:
        return cls(
            payment_intent=intent,
            client_secret=intent.client_secret,
            payment_intent_id=intent.stripe_payment_intent_id,
            split=Split(
                base_amount=intent.base_amount,
                platform_fee=intent.platform_fee,
                total_amount=intent.total_amount,
            ),
            replayed=replayed,
        )


# =============================================================================
# Payment Intent Service
# =============================================================================


class PaymentIntentService(BaseService):
    """
    Service for creating and expiring payment intents.

    Methods:
        create_intent: Authorize the booking total with manual capture
        expire_abandoned_intents: Cancel intents the customer never confirmed
    """

    def __init__(
        self,
        stripe_adapter=None,
        config: PaymentsConfig | None = None,
    ):
        self.stripe = stripe_adapter or StripeAdapter
        self.config = config or get_payments_config()

    def create_intent(
        self,
        customer: Profile,
        service_id: uuid.UUID | str,
        provider_id: uuid.UUID | int | str,
        base_amount: int,
        currency: str,
        idempotency_key: str,
    ) -> ServiceResult[CreatedIntent]:
        """
        Create a manual-capture PaymentIntent for a service booking.

        Args:
            customer: Profile of the paying customer
            service_id: Service being booked
            provider_id: Profile pk of the provider offering the service
            base_amount: Provider's price in minor units
            currency: ISO currency code, must match the service
            idempotency_key: Client key; a replay returns the stored intent

        Returns:
            ServiceResult with CreatedIntent on success

        Error codes:
            VALIDATION_ERROR: Bad amount, currency, inactive service or
                provider that cannot take bookings
            NOT_FOUND: Service does not exist for this provider
            PAYMENT_SETUP_FAILED: Stripe refused the intent; nothing stored
        """
        logger = self.get_logger()

        if not idempotency_key:
            return ServiceResult.failure(
                "An idempotency key is required",
                error_code=ErrorKind.VALIDATION_ERROR,
            )

        existing = PaymentIntent.objects.filter(idempotency_key=idempotency_key).first()
        if existing is not None:
            return self._replay(existing, customer)

        service = (
            Service.objects.filter(pk=service_id, provider_id=provider_id)
            .select_related("provider__user")
            .first()
        )
        if service is None:
            return ServiceResult.failure(
                "Service not found for this provider",
                error_code=ErrorKind.NOT_FOUND,
                details={"service_id": str(service_id), "provider_id": str(provider_id)},
            )

        validation = self._validate(customer, service, base_amount, currency)
        if not validation.success:
            return validation

        try:
            split = compute_split(base_amount, self.config.fee_rate)
        except PaymentValidationError as e:
            return ServiceResult.from_exception(e)

        currency = currency.lower()
        metadata = {
            "service_id": str(service.pk),
            "provider_id": str(service.provider_id),
            "customer_id": str(customer.pk),
            "base_amount": str(split.base_amount),
            "platform_fee": str(split.platform_fee),
            "total_amount": str(split.total_amount),
            "fee_rate": str(self.config.fee_rate),
        }

        try:
            stripe_customer_id = self._ensure_stripe_customer(customer)
            result = self.stripe.create_payment_intent(
                CreatePaymentIntentParams(
                    amount=split.total_amount,
                    currency=currency,
                    idempotency_key=idempotency_key,
                    metadata=metadata,
                    customer_id=stripe_customer_id,
                    capture_method="manual",
                )
            )
        except StripeError as e:
            logger.warning(
                "Payment setup failed at Stripe",
                extra={
                    "customer_id": str(customer.pk),
                    "service_id": str(service.pk),
                    "error_code": e.error_code,
                },
            )
            return ServiceResult.failure(
                "We couldn't set up this payment. Please try again.",
                error_code=ErrorKind.PAYMENT_SETUP_FAILED,
                details=e.details,
            )

        try:
            with transaction.atomic():
                intent = PaymentIntent.objects.create(
                    stripe_payment_intent_id=result.id,
                    client_secret=result.client_secret or "",
                    idempotency_key=idempotency_key,
                    customer=customer,
                    provider_id=service.provider_id,
                    service=service,
                    base_amount=split.base_amount,
                    platform_fee=split.platform_fee,
                    total_amount=split.total_amount,
                    currency=currency,
                    status=result.status,
                    metadata=metadata,
                )
        except IntegrityError:
            # Concurrent call with the same key won the insert; Stripe
            # returned the same intent to both because of the shared key
            existing = PaymentIntent.objects.filter(
                idempotency_key=idempotency_key
            ).first()
            if existing is None:
                raise
            return self._replay(existing, customer)

        logger.info(
            "Payment intent created",
            extra={
                "payment_intent_id": result.id,
                "customer_id": str(customer.pk),
                "provider_id": str(service.provider_id),
                **split.as_dict(),
            },
        )
        return ServiceResult.success(CreatedIntent.from_model(intent))

    def _replay(
        self, intent: PaymentIntent, customer: Profile
    ) -> ServiceResult[CreatedIntent]:
        if intent.customer_id != customer.pk:
            return ServiceResult.failure(
                "Idempotency key already used",
                error_code=ErrorKind.VALIDATION_ERROR,
            )
        self.get_logger().info(
            "Returning existing payment intent for idempotency key",
            extra={"payment_intent_id": intent.stripe_payment_intent_id},
        )
        return ServiceResult.success(CreatedIntent.from_model(intent, replayed=True))

    def _validate(self, customer, service, base_amount, currency) -> ServiceResult:
        if isinstance(base_amount, bool) or not isinstance(base_amount, int):
            return ServiceResult.failure(
                "Amount must be a whole number of minor units",
                error_code=ErrorKind.VALIDATION_ERROR,
            )
        if base_amount <= 0:
            return ServiceResult.failure(
                "Amount must be greater than zero",
                error_code=ErrorKind.VALIDATION_ERROR,
            )
        if base_amount != service.base_price:
            return ServiceResult.failure(
                "Amount does not match the service price",
                error_code=ErrorKind.VALIDATION_ERROR,
                details={"expected": service.base_price, "received": base_amount},
            )
        if not currency or currency.lower() != service.currency:
            return ServiceResult.failure(
                f"Currency must be {service.currency}",
                error_code=ErrorKind.VALIDATION_ERROR,
            )
        if not service.is_active:
            return ServiceResult.failure(
                "This service is not currently available",
                error_code=ErrorKind.VALIDATION_ERROR,
            )
        if service.provider_id == customer.pk:
            return ServiceResult.failure(
                "You cannot book your own service",
                error_code=ErrorKind.VALIDATION_ERROR,
            )

        account = ProviderAccount.objects.filter(profile_id=service.provider_id).first()
        if account is None or not account.can_accept_bookings:
            return ServiceResult.failure(
                "This provider cannot accept bookings yet",
                error_code=ErrorKind.VALIDATION_ERROR,
            )
        return ServiceResult.success(None)

    def _ensure_stripe_customer(self, customer: Profile) -> str:
        """Create the Stripe Customer on first checkout and remember it."""
        if customer.stripe_customer_id:
            return customer.stripe_customer_id

        stripe_customer_id = self.stripe.create_customer(
            email=customer.user.email,
            name=customer.full_name,
            idempotency_key=IdempotencyKeyGenerator.generate("customer", customer.pk),
            metadata={"profile_id": str(customer.pk)},
        )
        # Conditional so a concurrent checkout cannot overwrite the id
        type(customer).objects.filter(
            pk=customer.pk, stripe_customer_id__isnull=True
        ).update(stripe_customer_id=stripe_customer_id, updated_at=timezone.now())
        customer.stripe_customer_id = stripe_customer_id
        return stripe_customer_id

    def expire_abandoned_intents(
        self, now: datetime | None = None
    ) -> ServiceResult[int]:
        """
        Cancel intents still waiting on the customer after the abandon window.

        The local row is canceled first with a compare-and-set so a late
        payment_intent.succeeded webhook is never overwritten. Releasing the
        authorization at Stripe is best effort.

        Returns:
            ServiceResult with the number of intents canceled
        """
        now = now or timezone.now()
        cutoff = now - self.config.intent_abandon_after

        stale = PaymentIntent.objects.filter(
            status__in=AWAITING_CUSTOMER_STATUSES,
            created_at__lt=cutoff,
        )

        count = 0
        for intent in stale.iterator():
            changed = intent.transition_status(
                PaymentIntentStatus.CANCELED,
                expected=AWAITING_CUSTOMER_STATUSES,
            )
            if not changed:
                continue
            count += 1
            try:
                self.stripe.cancel_payment_intent(
                    intent.stripe_payment_intent_id,
                    idempotency_key=IdempotencyKeyGenerator.generate("cancel", intent.pk),
                    reason="abandoned",
                )
            except StripeError as e:
                self.get_logger().warning(
                    "Could not cancel abandoned intent at Stripe",
                    extra={
                        "payment_intent_id": intent.stripe_payment_intent_id,
                        "error_code": e.error_code,
                    },
                )

        if count:
            self.get_logger().info(f"Canceled {count} abandoned payment intents")
        return ServiceResult.success(count)

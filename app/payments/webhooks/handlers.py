"""
Webhook event handlers for Stripe events.

This module provides a handler registry and implementations for the
typed events parsed in payments.webhooks.events.

Every handler mutates only its own aggregate, with compare-and-set
updates, so a redelivered or out-of-order event cannot move a row
backwards. Notifications carry a dedupe_key so a replay never notifies
twice.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    # Register a custom handler
    @register_handler(SomeEvent)
    def handle_some_event(event: SomeEvent) -> ServiceResult:
        ...

    # Dispatch an event to its handler
    result = dispatch_webhook(event)
"""

from __future__ import annotations

import logging
from typing import Callable

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from core.services import ServiceResult

from authentication.models import Profile
from notifications.models import NotificationType
from notifications.services import NotificationService
from payments.adapters import StripeAdapter
from payments.models import PaymentIntent, PayoutRecord, ProviderAccount, Subscription
from payments.money import to_major_units
from payments.services import PayoutService
from payments.state_machines import (
    AWAITING_CUSTOMER_STATUSES,
    PaymentIntentStatus,
    SubscriptionStatus,
)
from payments.webhooks.events import (
    AccountUpdated,
    CapabilityUpdated,
    InvoicePaymentFailed,
    InvoicePaymentSucceeded,
    PaymentIntentCanceled,
    PaymentIntentFailed,
    PaymentIntentRequiresAction,
    PaymentIntentSucceeded,
    PayoutEvent,
    PayoutFailed,
    PayoutPaid,
    StripeEvent,
    SubscriptionChanged,
    UnhandledEvent,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event classes to handler functions
WEBHOOK_HANDLERS: dict[type[StripeEvent], Callable[[StripeEvent], ServiceResult]] = {}


def register_handler(event_class: type[StripeEvent]) -> Callable:
    """
    Decorator to register a webhook event handler.

    Usage:
        @register_handler(PayoutPaid)
        def handle_payout_paid(event: PayoutPaid) -> ServiceResult:
            ...

    Args:
        event_class: The typed event the handler accepts

    Returns:
        Decorator function that registers the handler
    """

    def decorator(func: Callable[[StripeEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_class] = func
        logger.debug(f"Registered webhook handler for {event_class.__name__}")
        return func

    return decorator


def dispatch_webhook(event: StripeEvent) -> ServiceResult:
    """
    Dispatch a parsed event to the appropriate handler.

    UnhandledEvent and any class without a handler are logged and return
    success, so Stripe gets a 200 and stops redelivering.

    Returns:
        ServiceResult from the handler, or success if no handler
    """
    handler = WEBHOOK_HANDLERS.get(type(event))

    if handler is None:
        raw_type = event.raw_type if isinstance(event, UnhandledEvent) else event.event_type
        logger.info(
            f"No handler registered for event type: {raw_type}",
            extra={"stripe_event_id": event.event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {event.event_type} to handler",
        extra={"stripe_event_id": event.event_id},
    )

    return handler(event)


# =============================================================================
# Payment Intent Handlers
# =============================================================================


def _find_intent(event) -> PaymentIntent | None:
    intent = (
        PaymentIntent.objects.filter(stripe_payment_intent_id=event.payment_intent_id)
        .select_related("customer__user")
        .first()
    )
    if intent is None:
        logger.warning(
            f"{event.event_type}: PaymentIntent not found",
            extra={
                "stripe_event_id": event.event_id,
                "payment_intent_id": event.payment_intent_id,
            },
        )
    return intent


@register_handler(PaymentIntentSucceeded)
def handle_payment_intent_succeeded(event: PaymentIntentSucceeded) -> ServiceResult:
    """
    Sync a captured intent.

    The capture coordinator normally gets here first. If the intent has
    been captured but no booking exists, it is flagged for reconciliation;
    the coordinator clears the flag when its booking write lands.
    """
    intent = _find_intent(event)
    if intent is None:
        return ServiceResult.success(None)

    intent.transition_status(
        PaymentIntentStatus.SUCCEEDED,
        captured_at=intent.captured_at or timezone.now(),
    )

    flagged = PaymentIntent.objects.filter(
        pk=intent.pk,
        booking__isnull=True,
        needs_reconciliation=False,
    ).update(
        needs_reconciliation=True,
        reconciliation_error="Captured at Stripe without a local booking",
        updated_at=timezone.now(),
    )
    if flagged:
        logger.warning(
            "payment_intent.succeeded: captured intent has no booking yet",
            extra={
                "stripe_event_id": event.event_id,
                "payment_intent_id": event.payment_intent_id,
            },
        )
    return ServiceResult.success(intent)


@register_handler(PaymentIntentFailed)
def handle_payment_intent_failed(event: PaymentIntentFailed) -> ServiceResult:
    """Mark the intent failed and tell the customer; never overwrites a capture."""
    intent = _find_intent(event)
    if intent is None:
        return ServiceResult.success(None)

    changed = intent.transition_status(
        PaymentIntentStatus.FAILED,
        expected=(
            *AWAITING_CUSTOMER_STATUSES,
            PaymentIntentStatus.PROCESSING,
            PaymentIntentStatus.REQUIRES_CAPTURE,
        ),
    )
    if not changed:
        logger.info(
            "payment_intent.payment_failed ignored, intent already moved on",
            extra={"payment_intent_id": intent.stripe_payment_intent_id, "current_state": intent.status},
        )
        return ServiceResult.success(intent)

    NotificationService.create_notification(
        recipient=intent.customer.user,
        notification_type=NotificationType.PAYMENT_FAILED,
        data={
            "payment_intent_id": intent.stripe_payment_intent_id,
            "amount": to_major_units(intent.total_amount),
            "currency": intent.currency.upper(),
            "failure_code": event.failure_code,
        },
        dedupe_key=f"payment_failed:{intent.stripe_payment_intent_id}",
    )
    return ServiceResult.success(intent)


@register_handler(PaymentIntentCanceled)
def handle_payment_intent_canceled(event: PaymentIntentCanceled) -> ServiceResult:
    intent = _find_intent(event)
    if intent is None:
        return ServiceResult.success(None)

    intent.transition_status(
        PaymentIntentStatus.CANCELED,
        expected=(
            *AWAITING_CUSTOMER_STATUSES,
            PaymentIntentStatus.PROCESSING,
            PaymentIntentStatus.REQUIRES_CAPTURE,
        ),
    )
    return ServiceResult.success(intent)


@register_handler(PaymentIntentRequiresAction)
def handle_payment_intent_requires_action(
    event: PaymentIntentRequiresAction,
) -> ServiceResult:
    intent = _find_intent(event)
    if intent is None:
        return ServiceResult.success(None)

    # Only forward from states before authorization (3DS challenge)
    intent.transition_status(
        PaymentIntentStatus.REQUIRES_ACTION,
        expected=(
            PaymentIntentStatus.REQUIRES_PAYMENT_METHOD,
            PaymentIntentStatus.REQUIRES_CONFIRMATION,
        ),
    )
    return ServiceResult.success(intent)


# =============================================================================
# Connect Account Handlers
# =============================================================================


def _save_account_changes(account: ProviderAccount, event: StripeEvent, previous_status: str) -> None:
    account.save()
    logger.info(
        f"Provider account {account.stripe_account_id} updated",
        extra={
            "stripe_event_id": event.event_id,
            "account_status": account.account_status,
        },
    )
    if account.account_status != previous_status:
        NotificationService.create_notification(
            recipient=account.profile.user,
            notification_type=NotificationType.ACCOUNT_UPDATED,
            data={"status": account.account_status},
            dedupe_key=f"account_updated:{event.event_id}",
        )


@register_handler(AccountUpdated)
def handle_account_updated(event: AccountUpdated) -> ServiceResult:
    """Copy capability flags from the Account object."""
    with transaction.atomic():
        account = (
            ProviderAccount.objects.select_for_update()
            .select_related("profile__user")
            .filter(stripe_account_id=event.stripe_account_id)
            .first()
        )
        if account is None:
            logger.warning(
                "account.updated: ProviderAccount not found",
                extra={
                    "stripe_event_id": event.event_id,
                    "stripe_account_id": event.stripe_account_id,
                },
            )
            return ServiceResult.success(None)

        previous_status = account.account_status
        if account.apply_stripe_account(event.account):
            _save_account_changes(account, event, previous_status)

    return ServiceResult.success(account)


# Capability name -> ProviderAccount flag it drives
CAPABILITY_FLAGS = {
    "card_payments": "charges_enabled",
    "transfers": "payouts_enabled",
}


@register_handler(CapabilityUpdated)
def handle_capability_updated(event: CapabilityUpdated) -> ServiceResult:
    """Flip the flag for a single capability."""
    flag = CAPABILITY_FLAGS.get(event.capability)
    if flag is None:
        return ServiceResult.success(None)

    with transaction.atomic():
        account = (
            ProviderAccount.objects.select_for_update()
            .select_related("profile__user")
            .filter(stripe_account_id=event.stripe_account_id)
            .first()
        )
        if account is None:
            logger.warning(
                "capability.updated: ProviderAccount not found",
                extra={
                    "stripe_event_id": event.event_id,
                    "stripe_account_id": event.stripe_account_id,
                },
            )
            return ServiceResult.success(None)

        previous_status = account.account_status
        state = {
            "charges_enabled": account.charges_enabled,
            "details_submitted": account.details_submitted,
            "payouts_enabled": account.payouts_enabled,
        }
        state[flag] = event.status == "active"
        if account.apply_stripe_account(state):
            _save_account_changes(account, event, previous_status)

    return ServiceResult.success(account)


# =============================================================================
# Subscription Handlers
# =============================================================================


def _subscription_owner(event: SubscriptionChanged) -> Profile | None:
    profile_id = event.metadata.get("profile_id")
    if profile_id:
        profile = Profile.objects.filter(pk=profile_id).first()
        if profile is not None:
            return profile
    return Profile.objects.filter(stripe_customer_id=event.customer_id).first()


@register_handler(SubscriptionChanged)
def handle_subscription_changed(event: SubscriptionChanged) -> ServiceResult:
    """Create or update the local Subscription from the Stripe object."""
    status = SubscriptionStatus.CANCELED if event.deleted else event.status
    if status not in SubscriptionStatus.values:
        logger.warning(
            f"Unknown subscription status: {status}",
            extra={"stripe_event_id": event.event_id},
        )
        return ServiceResult.success(None)

    with transaction.atomic():
        subscription = (
            Subscription.objects.select_for_update()
            .select_related("profile__user")
            .filter(stripe_subscription_id=event.subscription_id)
            .first()
        )

        if subscription is None:
            profile = _subscription_owner(event)
            if profile is None:
                logger.warning(
                    "Subscription event for unknown customer",
                    extra={
                        "stripe_event_id": event.event_id,
                        "stripe_customer_id": event.customer_id,
                    },
                )
                return ServiceResult.success(None)
            subscription = Subscription(
                profile=profile,
                stripe_subscription_id=event.subscription_id,
            )
            previous_status = None
        else:
            previous_status = subscription.status

        subscription.stripe_customer_id = event.customer_id
        subscription.stripe_price_id = event.price_id or subscription.stripe_price_id
        subscription.status = status
        subscription.current_period_end = event.current_period_end
        subscription.trial_ends_at = event.trial_end
        subscription.cancel_at_period_end = event.cancel_at_period_end
        subscription.canceled_at = event.canceled_at or (
            timezone.now() if event.deleted else None
        )
        subscription.save()

    logger.info(
        f"Subscription {subscription.stripe_subscription_id} is {status}",
        extra={"stripe_event_id": event.event_id},
    )
    if previous_status != status:
        NotificationService.create_notification(
            recipient=subscription.profile.user,
            notification_type=NotificationType.SUBSCRIPTION_UPDATED,
            data={"status": status},
            dedupe_key=f"subscription_updated:{event.event_id}",
        )
    return ServiceResult.success(subscription)


@register_handler(InvoicePaymentSucceeded)
def handle_invoice_payment_succeeded(event: InvoicePaymentSucceeded) -> ServiceResult:
    """A paid invoice re-activates a lapsed subscription."""
    if not event.subscription_id:
        return ServiceResult.success(None)

    subscriptions = Subscription.objects.filter(
        stripe_subscription_id=event.subscription_id
    )
    subscriptions.update(last_invoice_id=event.invoice_id, updated_at=timezone.now())
    updated = subscriptions.filter(
        status__in=[
            SubscriptionStatus.INCOMPLETE,
            SubscriptionStatus.PAST_DUE,
            SubscriptionStatus.UNPAID,
        ],
    ).update(status=SubscriptionStatus.ACTIVE)
    return ServiceResult.success(updated)


@register_handler(InvoicePaymentFailed)
def handle_invoice_payment_failed(event: InvoicePaymentFailed) -> ServiceResult:
    """A failed renewal moves an active subscription to past_due."""
    if not event.subscription_id:
        return ServiceResult.success(None)

    updated = Subscription.objects.filter(
        stripe_subscription_id=event.subscription_id,
        status__in=[SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING],
    ).update(
        status=SubscriptionStatus.PAST_DUE,
        last_invoice_id=event.invoice_id,
        updated_at=timezone.now(),
    )
    if updated:
        logger.warning(
            f"Subscription {event.subscription_id} is past due",
            extra={"stripe_event_id": event.event_id},
        )
    return ServiceResult.success(updated)


# =============================================================================
# Payout Handlers
# =============================================================================


def find_payout_records(event: PayoutEvent, stripe_adapter=None) -> list[PayoutRecord]:
    """
    Resolve which PayoutRecords a bank payout settles.

    Lookup order:
        1. metadata.payout_id (our PayoutRecord id)
        2. metadata.transfer_id (Stripe transfer id)
        3. The transfers listed in the payout's balance transactions on
           the connected account (automatic payouts carry no metadata)

    Raises:
        StripeError: The balance transactions could not be listed; the
            event fails and Stripe redelivers it
    """
    payout_id = event.metadata.get("payout_id")
    if payout_id:
        return list(PayoutRecord.objects.filter(pk=payout_id))

    transfer_id = event.metadata.get("transfer_id")
    if transfer_id:
        return list(PayoutRecord.objects.filter(stripe_transfer_id=transfer_id))

    if not event.account_id or not event.payout_id:
        return []

    adapter = stripe_adapter or StripeAdapter
    transfer_ids = adapter.list_payout_transfer_ids(event.payout_id, event.account_id)
    if not transfer_ids:
        return []

    provider_ids = ProviderAccount.objects.filter(
        stripe_account_id=event.account_id
    ).values_list("profile_id", flat=True)
    return list(
        PayoutRecord.objects.filter(
            Q(provider_id__in=provider_ids) & Q(stripe_transfer_id__in=transfer_ids)
        ).order_by("created_at")
    )


@register_handler(PayoutPaid)
def handle_payout_paid(event: PayoutPaid) -> ServiceResult:
    """Complete every payout record settled by this bank payout."""
    records = find_payout_records(event)
    if not records:
        logger.warning(
            "payout.paid: no matching payout records",
            extra={"stripe_event_id": event.event_id, "payout_id": event.payout_id},
        )
        return ServiceResult.success(0)

    service = PayoutService()
    completed = sum(
        1
        for record in records
        if service.mark_completed(record, paid_at=event.arrival_date)
    )
    logger.info(
        f"payout.paid completed {completed} payout record(s)",
        extra={"stripe_event_id": event.event_id, "payout_id": event.payout_id},
    )
    return ServiceResult.success(completed)


@register_handler(PayoutFailed)
def handle_payout_failed(event: PayoutFailed) -> ServiceResult:
    records = find_payout_records(event)
    if not records:
        logger.warning(
            "payout.failed: no matching payout records",
            extra={"stripe_event_id": event.event_id, "payout_id": event.payout_id},
        )
        return ServiceResult.success(0)

    reason = event.failure_message or event.failure_code or "Bank payout failed"
    service = PayoutService()
    failed = sum(1 for record in records if service.mark_failed(record, reason))
    return ServiceResult.success(failed)

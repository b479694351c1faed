"""
Provider payout account onboarding.

Providers receive transfers through a Stripe Connect Express account.
Onboarding creates the account once, then hands the provider a hosted
onboarding link. Capability flags are kept in sync by account.updated
webhooks; refresh_status pulls them on demand.

Usage:
    from payments.services import ProviderAccountService

    result = ProviderAccountService().start_onboarding(request.user.profile)
    if result.success:
        redirect_to(result.data.onboarding_url)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction

from core.services import BaseService, ServiceResult

from payments.adapters import IdempotencyKeyGenerator, StripeAdapter
from payments.conf import get_payments_config
from payments.exceptions import ErrorKind, StripeError
from payments.models import ProviderAccount

if TYPE_CHECKING:
    from authentication.models import Profile
    from payments.conf import PaymentsConfig


@dataclass
class OnboardingLink:
    """Account plus the single-use onboarding URL minted for it."""

    account: ProviderAccount
    onboarding_url: str


class ProviderAccountService(BaseService):
    """
    Service for provider Connect accounts.

    Methods:
        start_onboarding: Create the account if needed and mint a link
        refresh_status: Re-read capability flags from Stripe
    """

    def __init__(
        self,
        stripe_adapter=None,
        config: PaymentsConfig | None = None,
    ):
        self.stripe = stripe_adapter or StripeAdapter
        self.config = config or get_payments_config()

    def start_onboarding(self, profile: Profile) -> ServiceResult[OnboardingLink]:
        """
        Create (or reuse) the provider's Express account and return a link.

        Error codes:
            PERMISSION_DENIED: Profile is not a provider
            PAYMENT_SETUP_FAILED: Stripe refused to create the account or link
        """
        if not profile.is_provider:
            return ServiceResult.failure(
                "Only providers can set up payouts",
                error_code=ErrorKind.PERMISSION_DENIED,
            )

        account = ProviderAccount.objects.filter(profile=profile).first()

        try:
            if account is None:
                account = self._create_account(profile)
            url = self.stripe.create_account_link(
                account_id=account.stripe_account_id,
                refresh_url=self.config.connect_refresh_url,
                return_url=self.config.connect_return_url,
            )
        except StripeError as e:
            self.get_logger().warning(
                "Provider onboarding failed at Stripe",
                extra={"profile_id": str(profile.pk), "error_code": e.error_code},
            )
            return ServiceResult.failure(
                "We couldn't start payout setup. Please try again.",
                error_code=ErrorKind.PAYMENT_SETUP_FAILED,
                details=e.details,
            )

        return ServiceResult.success(OnboardingLink(account=account, onboarding_url=url))

    def refresh_status(self, profile: Profile) -> ServiceResult[ProviderAccount]:
        """
        Pull the account's capability flags from Stripe and store them.

        Error codes:
            NOT_FOUND: Provider has not started onboarding
        """
        account = ProviderAccount.objects.filter(profile=profile).first()
        if account is None:
            return ServiceResult.failure(
                "No payout account for this provider",
                error_code=ErrorKind.NOT_FOUND,
            )

        try:
            remote = self.stripe.retrieve_account(account.stripe_account_id)
        except StripeError as e:
            return self.handle_exception(e, "refresh provider account")

        changed = account.apply_stripe_account(
            {
                "charges_enabled": remote.charges_enabled,
                "details_submitted": remote.details_submitted,
                "payouts_enabled": remote.payouts_enabled,
            }
        )
        if changed:
            account.save()
            self.get_logger().info(
                f"Provider account {account.stripe_account_id} is now {account.account_status}"
            )
        return ServiceResult.success(account)

    def _create_account(self, profile: Profile) -> ProviderAccount:
        remote = self.stripe.create_express_account(
            email=profile.user.email,
            idempotency_key=IdempotencyKeyGenerator.generate("account", profile.pk),
            metadata={"profile_id": str(profile.pk)},
        )
        try:
            with transaction.atomic():
                account = ProviderAccount.objects.create(
                    profile=profile,
                    stripe_account_id=remote.id,
                )
        except IntegrityError:
            # Same idempotency key, so a concurrent request got the same account
            return ProviderAccount.objects.get(profile=profile)

        account.apply_stripe_account(
            {
                "charges_enabled": remote.charges_enabled,
                "details_submitted": remote.details_submitted,
                "payouts_enabled": remote.payouts_enabled,
            }
        )
        account.save()
        self.get_logger().info(
            "Provider account created",
            extra={"profile_id": str(profile.pk), "stripe_account_id": remote.id},
        )
        return account

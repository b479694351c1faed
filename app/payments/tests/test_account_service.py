"""
Tests for ProviderAccountService.
"""

import pytest

from payments.exceptions import ErrorKind, StripeAPIUnavailableError
from payments.models import ProviderAccount
from payments.state_machines import ProviderAccountStatus


@pytest.mark.django_db
class TestStartOnboarding:
    def test_creates_account_and_returns_link(
        self, account_service, fake_stripe, provider
    ):
        result = account_service.start_onboarding(provider)

        assert result.success
        account = ProviderAccount.objects.get(profile=provider)
        assert account.stripe_account_id.startswith("acct_")
        assert account.account_status == ProviderAccountStatus.PENDING
        assert result.data.account == account
        assert result.data.onboarding_url.startswith("https://connect.stripe.com/")

        link = fake_stripe.last_call("create_account_link")
        assert link["return_url"] == "https://app.example.com/payouts/done"
        assert link["refresh_url"] == "https://app.example.com/payouts/refresh"

    def test_reuses_existing_account(
        self, account_service, fake_stripe, provider_account
    ):
        result = account_service.start_onboarding(provider_account.profile)

        assert result.success
        assert result.data.account.pk == provider_account.pk
        assert fake_stripe.call_count("create_express_account") == 0
        assert fake_stripe.call_count("create_account_link") == 1

    def test_customer_cannot_onboard(self, account_service, fake_stripe, customer):
        result = account_service.start_onboarding(customer)

        assert result.error_code == ErrorKind.PERMISSION_DENIED
        assert fake_stripe.call_count("create_express_account") == 0

    def test_stripe_failure(self, account_service, fake_stripe, provider):
        fake_stripe.fail("create_express_account", StripeAPIUnavailableError("down"))

        result = account_service.start_onboarding(provider)

        assert result.error_code == ErrorKind.PAYMENT_SETUP_FAILED
        assert not ProviderAccount.objects.filter(profile=provider).exists()


@pytest.mark.django_db
class TestRefreshStatus:
    def test_activates_when_charges_enabled(self, account_service, fake_stripe, provider):
        account_service.start_onboarding(provider)
        fake_stripe.account_flags = {
            "charges_enabled": True,
            "details_submitted": True,
            "payouts_enabled": True,
        }

        result = account_service.refresh_status(provider)

        assert result.success
        account = ProviderAccount.objects.get(profile=provider)
        assert account.account_status == ProviderAccountStatus.ACTIVE
        assert account.can_accept_bookings is True
        assert account.payouts_enabled is True

    def test_provider_without_account(self, account_service, provider):
        result = account_service.refresh_status(provider)

        assert result.error_code == ErrorKind.NOT_FOUND

    def test_stripe_failure_keeps_stored_flags(
        self, account_service, fake_stripe, provider_account
    ):
        fake_stripe.fail("retrieve_account", StripeAPIUnavailableError("down"))

        result = account_service.refresh_status(provider_account.profile)

        assert not result.success
        account = ProviderAccount.objects.get(pk=provider_account.pk)
        assert account.account_status == ProviderAccountStatus.ACTIVE

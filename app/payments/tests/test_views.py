"""
API tests for payment endpoints.

Services behind the views run against the fake adapter via the
``stripe_everywhere`` fixture.
"""

import pytest
from django.db import DatabaseError
from django.urls import reverse
from rest_framework import status

from bookings.models import Booking
from payments.exceptions import StripeCardDeclinedError
from payments.models import PaymentIntent, ProviderAccount


@pytest.fixture
def customer_client(authenticated_client_factory, customer):
    return authenticated_client_factory(customer.user)


@pytest.fixture
def provider_client(authenticated_client_factory, provider):
    return authenticated_client_factory(provider.user)


def intent_payload(service, **overrides):
    payload = {
        "serviceId": str(service.pk),
        "providerId": service.provider_id,
        "baseAmount": service.base_price,
        "currency": "gbp",
        "idempotencyKey": "checkout-view-1",
    }
    payload.update(overrides)
    return payload


def capture_payload(intent, service):
    return {
        "paymentIntentId": intent.stripe_payment_intent_id,
        "bookingDraft": {
            "serviceId": str(service.pk),
            "providerId": service.provider_id,
            "scheduledDate": "2026-11-02",
            "startTime": "09:00",
            "endTime": "10:30",
            "customerNotes": "Ring twice",
        },
    }


# =============================================================================
# Create Intent
# =============================================================================


@pytest.mark.django_db
class TestCreatePaymentIntentView:
    @property
    def url(self):
        return reverse("payments:create_intent")

    def test_requires_authentication(self, api_client, service):
        response = api_client.post(self.url, intent_payload(service), format="json")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_creates_intent(self, customer_client, stripe_everywhere, service):
        response = customer_client.post(self.url, intent_payload(service), format="json")

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["baseAmount"] == 10000
        assert body["platformFee"] == 1000
        assert body["totalAmount"] == 11000
        assert body["currency"] == "gbp"
        assert body["paymentIntentId"].startswith("pi_")
        assert body["clientSecret"].endswith("_secret_fake")

    def test_replay_returns_200(self, customer_client, stripe_everywhere, service):
        first = customer_client.post(self.url, intent_payload(service), format="json")
        second = customer_client.post(self.url, intent_payload(service), format="json")

        assert second.status_code == status.HTTP_200_OK
        assert second.json()["paymentIntentId"] == first.json()["paymentIntentId"]
        assert PaymentIntent.objects.count() == 1

    def test_accepts_idempotency_key_header(
        self, customer_client, stripe_everywhere, service
    ):
        payload = intent_payload(service)
        del payload["idempotencyKey"]

        response = customer_client.post(
            self.url, payload, format="json", HTTP_IDEMPOTENCY_KEY="header-key"
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert PaymentIntent.objects.get().idempotency_key == "header-key"

    def test_missing_idempotency_key(self, customer_client, stripe_everywhere, service):
        payload = intent_payload(service)
        del payload["idempotencyKey"]

        response = customer_client.post(self.url, payload, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_wrong_amount_is_rejected(self, customer_client, stripe_everywhere, service):
        response = customer_client.post(
            self.url, intent_payload(service, baseAmount=1), format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_stripe_failure_is_402(self, customer_client, stripe_everywhere, service):
        stripe_everywhere.fail(
            "create_payment_intent", StripeCardDeclinedError("declined")
        )

        response = customer_client.post(self.url, intent_payload(service), format="json")

        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        assert response.json()["error_code"] == "PAYMENT_SETUP_FAILED"
        assert not PaymentIntent.objects.exists()


# =============================================================================
# Capture and Book
# =============================================================================


@pytest.mark.django_db
class TestCaptureAndBookView:
    @property
    def url(self):
        return reverse("payments:capture_and_book")

    def test_captures_and_returns_booking(
        self, customer_client, stripe_everywhere, authorized_intent, service
    ):
        response = customer_client.post(
            self.url, capture_payload(authorized_intent, service), format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        booking = response.json()["booking"]
        assert booking["status"] == "pending"
        assert booking["paymentStatus"] == "paid"
        assert booking["totalAmount"] == 11000
        assert booking["scheduledDate"] == "2026-11-02"
        assert booking["customerNotes"] == "Ring twice"

    def test_other_customer_is_forbidden(
        self,
        authenticated_client_factory,
        other_customer,
        stripe_everywhere,
        authorized_intent,
        service,
    ):
        client = authenticated_client_factory(other_customer.user)

        response = client.post(
            self.url, capture_payload(authorized_intent, service), format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert stripe_everywhere.call_count("capture_payment_intent") == 0

    def test_unknown_intent_is_404(
        self, customer_client, stripe_everywhere, authorized_intent, service
    ):
        payload = capture_payload(authorized_intent, service)
        payload["paymentIntentId"] = "pi_missing"

        response = customer_client.post(self.url, payload, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_capture_failure_is_402(
        self, customer_client, stripe_everywhere, authorized_intent, service
    ):
        stripe_everywhere.fail(
            "capture_payment_intent", StripeCardDeclinedError("authorization expired")
        )

        response = customer_client.post(
            self.url, capture_payload(authorized_intent, service), format="json"
        )

        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        assert response.json()["error_code"] == "CAPTURE_FAILED"

    def test_orphaned_capture_is_202(
        self, mocker, customer_client, stripe_everywhere, authorized_intent, service
    ):
        mocker.patch.object(
            Booking.objects, "create", side_effect=DatabaseError("connection lost")
        )

        response = customer_client.post(
            self.url, capture_payload(authorized_intent, service), format="json"
        )

        assert response.status_code == status.HTTP_202_ACCEPTED
        body = response.json()
        assert body["error_code"] == "ORPHANED_CAPTURE"
        assert body["details"]["payment_intent_id"] == (
            authorized_intent.stripe_payment_intent_id
        )

    def test_end_before_start_is_rejected(
        self, customer_client, stripe_everywhere, authorized_intent, service
    ):
        payload = capture_payload(authorized_intent, service)
        payload["bookingDraft"]["endTime"] = "08:00"

        response = customer_client.post(self.url, payload, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert stripe_everywhere.call_count("capture_payment_intent") == 0


# =============================================================================
# Provider Accounts
# =============================================================================


@pytest.mark.django_db
class TestProviderAccountViews:
    onboarding_url = property(lambda self: reverse("payments:provider_onboarding"))
    status_url = property(lambda self: reverse("payments:provider_account_status"))

    def test_onboarding_returns_link(self, provider_client, stripe_everywhere, provider):
        response = provider_client.post(self.onboarding_url)

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["url"].startswith("https://connect.stripe.com/")
        assert body["stripeAccountId"] == (
            ProviderAccount.objects.get(profile=provider).stripe_account_id
        )

    def test_customer_cannot_onboard(self, customer_client, stripe_everywhere):
        response = customer_client.post(self.onboarding_url)

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_status_refreshes_flags(
        self, provider_client, stripe_everywhere, provider_account
    ):
        stripe_everywhere.account_flags = {
            "charges_enabled": True,
            "details_submitted": True,
            "payouts_enabled": False,
        }

        response = provider_client.get(self.status_url)

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["chargesEnabled"] is True
        assert body["payoutsEnabled"] is False
        assert body["canAcceptBookings"] is True

    def test_status_without_account_is_404(self, provider_client, stripe_everywhere):
        response = provider_client.get(self.status_url)

        assert response.status_code == status.HTTP_404_NOT_FOUND

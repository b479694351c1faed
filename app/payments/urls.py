"""
URL configuration for the payments app.

Routes:
    - POST /intents/ - Create manual-capture payment intent
    - POST /capture-and-book/ - Capture payment and create booking
    - POST /accounts/onboarding/ - Provider onboarding link
    - GET /accounts/status/ - Provider account status
    - POST /webhooks/stripe/ - Stripe webhook endpoint

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments.views import (
    CaptureAndBookView,
    CreatePaymentIntentView,
    ProviderAccountStatusView,
    ProviderOnboardingView,
)
from payments.webhooks.views import stripe_webhook

app_name = "payments"

urlpatterns = [
    path("intents/", CreatePaymentIntentView.as_view(), name="create_intent"),
    path("capture-and-book/", CaptureAndBookView.as_view(), name="capture_and_book"),
    path(
        "accounts/onboarding/",
        ProviderOnboardingView.as_view(),
        name="provider_onboarding",
    ),
    path(
        "accounts/status/",
        ProviderAccountStatusView.as_view(),
        name="provider_account_status",
    ),
    # Webhook endpoints
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
]

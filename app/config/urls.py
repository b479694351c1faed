"""
URL configuration for the Django application.

URL Structure:
    /                                  - ReDoc API documentation
    /admin/                            - Django admin interface
    /health/                           - Health check endpoint
    /schema/                           - OpenAPI schema (YAML)
    /api/v1/auth/                      - JWT token endpoints
        token/                         - Obtain access/refresh pair
        token/refresh/                 - Refresh access token
    /api/v1/payments/                  - Payment endpoints
        intents/                       - Create a manual-capture payment intent
        capture-and-book/              - Capture payment and create booking
        accounts/onboarding/           - Provider Stripe Connect onboarding link
        accounts/status/               - Provider account status
        webhooks/stripe/               - Stripe webhook endpoint (POST)
    /api/v1/bookings/                  - Booking endpoints
        {id}/                          - Booking detail
        {id}/accept/                   - Provider accepts (pending -> confirmed)
        {id}/decline/                  - Provider declines (refund)
        {id}/cancel/                   - Customer or provider cancels (refund)
        {id}/start/                    - Provider starts service
        {id}/complete/                 - Provider completes service (payout)
    /api/v1/notifications/             - Notification inbox

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/", include("authentication.urls")),
    path("notifications/", include("notifications.urls")),
    path("payments/", include("payments.urls")),
    path("bookings/", include("bookings.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Marketplace Escrow Admin"
admin.site.site_title = "Escrow Admin"
admin.site.index_title = "Payments, bookings and payouts"

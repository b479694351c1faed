"""
URL configuration for authentication app.

URL structure:
    /api/v1/auth/token/               - Obtain a JWT access/refresh pair
    /api/v1/auth/token/refresh/       - Refresh an access token
    /api/v1/auth/token/blacklist/     - Revoke a refresh token (logout)

Note:
    Customers and providers authenticate the same way. The role on their
    Profile decides which booking and payout endpoints they may use.
"""

from django.urls import path
from rest_framework_simplejwt.views import (
    TokenBlacklistView,
    TokenObtainPairView,
    TokenRefreshView,
)

app_name = "authentication"

urlpatterns = [
    path("token/", TokenObtainPairView.as_view(), name="token-obtain"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("token/blacklist/", TokenBlacklistView.as_view(), name="token-blacklist"),
]

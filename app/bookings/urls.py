"""
URL configuration for bookings API.

Routes:
    /                     - List bookings (GET)
    /{id}/                - Booking detail (GET)
    /{id}/accept/         - Provider accepts (POST)
    /{id}/decline/        - Provider declines (POST)
    /{id}/cancel/         - Customer or provider cancels (POST)
    /{id}/start/          - Provider starts (POST)
    /{id}/complete/       - Provider completes (POST)
"""

from rest_framework.routers import DefaultRouter

from bookings.views import BookingViewSet

router = DefaultRouter()
router.register(r"", BookingViewSet, basename="booking")

app_name = "bookings"
urlpatterns = router.urls

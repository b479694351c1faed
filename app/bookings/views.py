"""
Views for booking API.

Endpoints:
    GET /api/v1/bookings/ - List bookings the user is part of
    GET /api/v1/bookings/{id}/ - Get booking detail
    POST /api/v1/bookings/{id}/accept/ - Provider accepts
    POST /api/v1/bookings/{id}/decline/ - Provider declines (refund)
    POST /api/v1/bookings/{id}/cancel/ - Customer or provider cancels (refund)
    POST /api/v1/bookings/{id}/start/ - Provider starts the service
    POST /api/v1/bookings/{id}/complete/ - Provider completes (payout)
"""

from __future__ import annotations

from django.db.models import Q
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from bookings.models import Booking
from bookings.serializers import (
    BookingSerializer,
    CompletedServiceSerializer,
    ReasonSerializer,
)
from bookings.services import BookingService
from payments.views import error_response


TRANSITION_RESPONSES = {
    200: BookingSerializer,
    403: OpenApiResponse(description="Not allowed to act on this booking"),
    404: OpenApiResponse(description="Booking not found"),
    409: OpenApiResponse(description="Transition not allowed from current status"),
}


@extend_schema_view(
    list=extend_schema(
        operation_id="list_bookings",
        summary="List bookings",
        parameters=[
            OpenApiParameter(
                name="status",
                type=str,
                location=OpenApiParameter.QUERY,
                description="Filter by booking status",
                required=False,
            ),
        ],
        tags=["Bookings"],
    ),
    retrieve=extend_schema(
        operation_id="get_booking",
        summary="Get booking",
        tags=["Bookings"],
    ),
)
class BookingViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for booking operations.

    Users see bookings where they are the customer or the provider.
    Actions delegate to BookingService, which enforces who may do what.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = BookingSerializer

    def get_queryset(self):
        profile = self.request.user.profile
        queryset = Booking.objects.filter(
            Q(customer=profile) | Q(provider=profile)
        ).select_related("service")

        booking_status = self.request.query_params.get("status")
        if booking_status:
            queryset = queryset.filter(status=booking_status)

        return queryset

    def _respond(self, result):
        if not result.success:
            return error_response(result)
        return Response(self.get_serializer(result.data).data)

    @extend_schema(
        operation_id="accept_booking",
        request=None,
        responses=TRANSITION_RESPONSES,
        tags=["Bookings"],
    )
    @action(detail=True, methods=["post"])
    def accept(self, request, pk=None):
        return self._respond(BookingService().accept(pk, request.user.profile))

    @extend_schema(
        operation_id="decline_booking",
        request=ReasonSerializer,
        responses=TRANSITION_RESPONSES,
        tags=["Bookings"],
    )
    @action(detail=True, methods=["post"])
    def decline(self, request, pk=None):
        serializer = ReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = BookingService().decline(
            pk, request.user.profile, reason=serializer.validated_data["reason"]
        )
        return self._respond(result)

    @extend_schema(
        operation_id="cancel_booking",
        request=ReasonSerializer,
        responses=TRANSITION_RESPONSES,
        tags=["Bookings"],
    )
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        serializer = ReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = BookingService().cancel(
            pk, request.user.profile, reason=serializer.validated_data["reason"]
        )
        return self._respond(result)

    @extend_schema(
        operation_id="start_booking",
        request=None,
        responses=TRANSITION_RESPONSES,
        tags=["Bookings"],
    )
    @action(detail=True, methods=["post"])
    def start(self, request, pk=None):
        return self._respond(BookingService().start(pk, request.user.profile))

    @extend_schema(
        operation_id="complete_booking",
        request=None,
        responses={**TRANSITION_RESPONSES, 200: CompletedServiceSerializer},
        tags=["Bookings"],
    )
    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        result = BookingService().complete_service(pk, request.user.profile)
        if not result.success:
            return error_response(result)
        return Response(CompletedServiceSerializer(result.data).data)

"""
DRF views for payments app.

This module provides API views for:
- Payment intent creation (checkout)
- Escrow capture and booking creation
- Provider Connect onboarding and status

Related files:
    - services/: PaymentIntentService, EscrowCaptureCoordinator,
      ProviderAccountService
    - serializers.py: Request/response serializers
    - webhooks/views.py: Stripe webhook endpoint
    - urls.py: URL routing

Endpoints:
    POST /api/v1/payments/intents/ - Create manual-capture payment intent
    POST /api/v1/payments/capture-and-book/ - Capture and create booking
    POST /api/v1/payments/accounts/onboarding/ - Provider onboarding link
    GET /api/v1/payments/accounts/status/ - Provider account status

Security:
    - All endpoints require authentication
    - Services check ownership of intents and bookings
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.services import ServiceResult

from bookings.serializers import BookingSerializer
from payments.exceptions import ErrorKind
from payments.serializers import (
    CaptureAndBookSerializer,
    CreatedIntentSerializer,
    CreateIntentSerializer,
    OnboardingLinkSerializer,
    ProviderAccountSerializer,
)
from payments.services import (
    EscrowCaptureCoordinator,
    PaymentIntentService,
    ProviderAccountService,
)


# HTTP status for each service error code; anything else is a 400
ERROR_STATUS: dict[str, int] = {
    ErrorKind.NOT_FOUND.value: status.HTTP_404_NOT_FOUND,
    ErrorKind.PERMISSION_DENIED.value: status.HTTP_403_FORBIDDEN,
    ErrorKind.VALIDATION_ERROR.value: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_STATE_TRANSITION.value: status.HTTP_409_CONFLICT,
    ErrorKind.PAYMENT_SETUP_FAILED.value: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorKind.CAPTURE_FAILED.value: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorKind.ORPHANED_CAPTURE.value: status.HTTP_202_ACCEPTED,
    ErrorKind.TRANSFER_FAILED.value: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.REFUND_FAILED.value: status.HTTP_502_BAD_GATEWAY,
}


def error_response(result: ServiceResult) -> Response:
    """Render a failed ServiceResult with the status for its error code."""
    http_status = ERROR_STATUS.get(str(result.error_code), status.HTTP_400_BAD_REQUEST)
    return Response(result.to_response(), status=http_status)


class CreatePaymentIntentView(APIView):
    """
    Create a manual-capture payment intent for a service.

    POST /api/v1/payments/intents/

    Request body:
        {
            "serviceId": "uuid",
            "providerId": 42,
            "baseAmount": 10000,
            "currency": "gbp",
            "idempotencyKey": "checkout-7f3a"
        }

    The idempotency key may also be sent as an Idempotency-Key header.

    Returns:
        201 {clientSecret, paymentIntentId, baseAmount, platformFee,
             totalAmount, currency}; 200 with the same body on replay
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_payment_intent",
        request=CreateIntentSerializer,
        responses={
            201: CreatedIntentSerializer,
            400: OpenApiResponse(description="Invalid request"),
            402: OpenApiResponse(description="Payment setup failed"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = CreateIntentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        idempotency_key = data.get("idempotency_key") or request.headers.get(
            "Idempotency-Key"
        )
        if not idempotency_key:
            return Response(
                {"detail": "An idempotency key is required."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        result = PaymentIntentService().create_intent(
            customer=request.user.profile,
            service_id=data["service_id"],
            provider_id=data["provider_id"],
            base_amount=data["base_amount"],
            currency=data["currency"],
            idempotency_key=idempotency_key,
        )
        if not result.success:
            return error_response(result)

        return Response(
            CreatedIntentSerializer(result.data).data,
            status=status.HTTP_200_OK if result.data.replayed else status.HTTP_201_CREATED,
        )


class CaptureAndBookView(APIView):
    """
    Capture an authorized payment and create the booking.

    POST /api/v1/payments/capture-and-book/

    Returns:
        201 {booking}; 202 when the payment was captured but the booking is
        still being confirmed (ORPHANED_CAPTURE); 402 when capture failed
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="capture_and_book",
        request=CaptureAndBookSerializer,
        responses={
            201: BookingSerializer,
            202: OpenApiResponse(description="Payment captured, booking pending confirmation"),
            402: OpenApiResponse(description="Capture failed"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = CaptureAndBookSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = EscrowCaptureCoordinator().capture_and_create_booking(
            payment_intent_id=data["payment_intent_id"],
            booking_draft=data["booking_draft"],
            customer=request.user.profile,
        )
        if not result.success:
            return error_response(result)

        return Response(
            {"booking": BookingSerializer(result.data).data},
            status=status.HTTP_201_CREATED,
        )


class ProviderOnboardingView(APIView):
    """
    Start (or resume) Stripe Connect onboarding for the current provider.

    POST /api/v1/payments/accounts/onboarding/

    Returns:
        {"url": "https://connect.stripe.com/...", "stripeAccountId": "acct_..."}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="start_provider_onboarding",
        request=None,
        responses={200: OnboardingLinkSerializer},
        tags=["Payments"],
    )
    def post(self, request):
        result = ProviderAccountService().start_onboarding(request.user.profile)
        if not result.success:
            return error_response(result)
        return Response(OnboardingLinkSerializer(result.data).data)


class ProviderAccountStatusView(APIView):
    """
    Current provider's Connect account status, refreshed from Stripe.

    GET /api/v1/payments/accounts/status/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_provider_account_status",
        responses={200: ProviderAccountSerializer},
        tags=["Payments"],
    )
    def get(self, request):
        result = ProviderAccountService().refresh_status(request.user.profile)
        if not result.success:
            return error_response(result)
        return Response(ProviderAccountSerializer(result.data).data)

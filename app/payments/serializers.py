"""
Serializers for the payments API.

Request and response bodies use camelCase keys for the mobile app; each
field maps to its snake_case attribute through ``source``.

Serializers:
    CreateIntentSerializer: Checkout request
    CreatedIntentSerializer: Checkout response (client secret + split)
    BookingDraftSerializer: Booking details sent with the capture request
    CaptureAndBookSerializer: Capture request
    ProviderAccountSerializer: Connect account status
    OnboardingLinkSerializer: Onboarding response
    PayoutRecordSerializer: Read-only payout details
"""

from __future__ import annotations

from rest_framework import serializers

from payments.models import PayoutRecord, ProviderAccount


class CreateIntentSerializer(serializers.Serializer):
    """
    Request body for POST /payments/intents/.

    The idempotency key may come from the body or the Idempotency-Key
    header; the view resolves which one applies.
    """

    serviceId = serializers.UUIDField(source="service_id")
    providerId = serializers.IntegerField(source="provider_id", min_value=1)
    baseAmount = serializers.IntegerField(
        source="base_amount",
        min_value=1,
        help_text="Provider's price in minor units",
    )
    currency = serializers.CharField(min_length=3, max_length=3)
    idempotencyKey = serializers.CharField(
        source="idempotency_key",
        max_length=255,
        required=False,
        allow_blank=False,
    )


class CreatedIntentSerializer(serializers.Serializer):
    clientSecret = serializers.CharField(source="client_secret")
    paymentIntentId = serializers.CharField(source="payment_intent_id")
    baseAmount = serializers.IntegerField(source="split.base_amount")
    platformFee = serializers.IntegerField(source="split.platform_fee")
    totalAmount = serializers.IntegerField(source="split.total_amount")
    currency = serializers.CharField(source="payment_intent.currency")


class BookingDraftSerializer(serializers.Serializer):
    """Booking details; validated again by BookingDraft.from_dict."""

    serviceId = serializers.UUIDField(source="service_id")
    providerId = serializers.IntegerField(source="provider_id")
    scheduledDate = serializers.DateField(source="scheduled_date")
    startTime = serializers.TimeField(source="start_time", required=False, allow_null=True)
    endTime = serializers.TimeField(source="end_time", required=False, allow_null=True)
    customerNotes = serializers.CharField(
        source="customer_notes",
        required=False,
        allow_blank=True,
        max_length=2000,
    )

    def validate(self, attrs):
        start, end = attrs.get("start_time"), attrs.get("end_time")
        if start and end and end <= start:
            raise serializers.ValidationError(
                {"endTime": "Booking must end after it starts."}
            )
        return attrs


class CaptureAndBookSerializer(serializers.Serializer):
    paymentIntentId = serializers.CharField(source="payment_intent_id", max_length=255)
    bookingDraft = BookingDraftSerializer(source="booking_draft")


class ProviderAccountSerializer(serializers.ModelSerializer):
    """Read-only Connect account status."""

    stripeAccountId = serializers.CharField(source="stripe_account_id", read_only=True)
    chargesEnabled = serializers.BooleanField(source="charges_enabled", read_only=True)
    detailsSubmitted = serializers.BooleanField(source="details_submitted", read_only=True)
    payoutsEnabled = serializers.BooleanField(source="payouts_enabled", read_only=True)
    accountStatus = serializers.CharField(source="account_status", read_only=True)
    canAcceptBookings = serializers.BooleanField(source="can_accept_bookings", read_only=True)

    class Meta:
        model = ProviderAccount
        fields = [
            "stripeAccountId",
            "chargesEnabled",
            "detailsSubmitted",
            "payoutsEnabled",
            "accountStatus",
            "canAcceptBookings",
        ]


class OnboardingLinkSerializer(serializers.Serializer):
    url = serializers.URLField(source="onboarding_url")
    stripeAccountId = serializers.CharField(source="account.stripe_account_id")


class PayoutRecordSerializer(serializers.ModelSerializer):
    """Read-only payout details, embedded in booking completion responses."""

    bookingId = serializers.UUIDField(source="booking_id", read_only=True)
    grossAmount = serializers.IntegerField(source="gross_amount", read_only=True)
    platformFee = serializers.IntegerField(source="platform_fee", read_only=True)
    netAmount = serializers.IntegerField(source="net_amount", read_only=True)
    expectedPayoutDate = serializers.DateField(source="expected_payout_date", read_only=True)
    actualPayoutDate = serializers.DateTimeField(source="actual_payout_date", read_only=True)
    stripeTransferId = serializers.CharField(source="stripe_transfer_id", read_only=True)
    failureReason = serializers.CharField(source="failure_reason", read_only=True)

    class Meta:
        model = PayoutRecord
        fields = [
            "id",
            "bookingId",
            "grossAmount",
            "platformFee",
            "netAmount",
            "currency",
            "status",
            "expectedPayoutDate",
            "actualPayoutDate",
            "stripeTransferId",
            "failureReason",
        ]
        read_only_fields = fields

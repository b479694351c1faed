"""
Serializers for the bookings API.

Serializers:
    BookingSerializer: Read-only booking details (camelCase keys)
    ReasonSerializer: Optional free-text reason for decline and cancel
    CompletedServiceSerializer: Response for the complete action
"""

from __future__ import annotations

from rest_framework import serializers

from bookings.models import Booking
from payments.serializers import PayoutRecordSerializer


class BookingSerializer(serializers.ModelSerializer):
    """Read-only serializer for Booking model."""

    customerId = serializers.IntegerField(source="customer_id", read_only=True)
    providerId = serializers.IntegerField(source="provider_id", read_only=True)
    serviceId = serializers.UUIDField(source="service_id", read_only=True)
    scheduledDate = serializers.DateField(source="scheduled_date", read_only=True)
    startTime = serializers.TimeField(source="start_time", read_only=True)
    endTime = serializers.TimeField(source="end_time", read_only=True)
    paymentStatus = serializers.CharField(source="payment_status", read_only=True)
    baseAmount = serializers.IntegerField(source="base_amount", read_only=True)
    platformFee = serializers.IntegerField(source="platform_fee", read_only=True)
    totalAmount = serializers.IntegerField(source="total_amount", read_only=True)
    paymentIntentId = serializers.CharField(source="stripe_payment_intent_id", read_only=True)
    customerNotes = serializers.CharField(source="customer_notes", read_only=True)
    declinedReason = serializers.CharField(source="declined_reason", read_only=True)
    cancellationReason = serializers.CharField(source="cancellation_reason", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = Booking
        fields = [
            "id",
            "customerId",
            "providerId",
            "serviceId",
            "scheduledDate",
            "startTime",
            "endTime",
            "status",
            "paymentStatus",
            "baseAmount",
            "platformFee",
            "totalAmount",
            "currency",
            "paymentIntentId",
            "customerNotes",
            "declinedReason",
            "cancellationReason",
            "createdAt",
        ]
        read_only_fields = ["id", "status", "currency"]


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(
        required=False,
        allow_blank=True,
        default="",
        max_length=1000,
    )


class CompletedServiceSerializer(serializers.Serializer):
    booking = BookingSerializer()
    payout = PayoutRecordSerializer(allow_null=True)
    payoutError = serializers.CharField(source="payout_error", allow_null=True)
    payoutErrorCode = serializers.CharField(source="payout_error_code", allow_null=True)

import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("authentication", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Service",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("title", models.CharField(help_text="Service name", max_length=200)),
                (
                    "description",
                    models.TextField(
                        blank=True, default="", help_text="Service description"
                    ),
                ),
                (
                    "base_price",
                    models.PositiveBigIntegerField(
                        help_text="Provider's price in minor units"
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="gbp",
                        help_text="ISO 4217 currency code (lowercase)",
                        max_length=3,
                    ),
                ),
                (
                    "is_active",
                    models.BooleanField(
                        db_index=True,
                        default=True,
                        help_text="Inactive services cannot be booked",
                    ),
                ),
                (
                    "provider",
                    models.ForeignKey(
                        help_text="Provider offering this service",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="services",
                        to="authentication.profile",
                    ),
                ),
            ],
            options={
                "verbose_name": "Service",
                "verbose_name_plural": "Services",
                "db_table": "provider_services",
                "ordering": ["title"],
            },
        ),
        migrations.CreateModel(
            name="Booking",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "scheduled_date",
                    models.DateField(help_text="Date of the appointment"),
                ),
                (
                    "start_time",
                    models.TimeField(
                        blank=True, help_text="Appointment start time", null=True
                    ),
                ),
                (
                    "end_time",
                    models.TimeField(
                        blank=True, help_text="Appointment end time", null=True
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("confirmed", "Confirmed"),
                            ("in_progress", "In Progress"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                            ("declined", "Declined"),
                            ("expired", "Expired"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Booking lifecycle state",
                        max_length=20,
                    ),
                ),
                (
                    "payment_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("paid", "Paid"),
                            ("failed", "Failed"),
                            ("refunded", "Refunded"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="State of the captured payment",
                        max_length=20,
                    ),
                ),
                (
                    "base_amount",
                    models.PositiveBigIntegerField(
                        help_text="Provider's share in minor units"
                    ),
                ),
                (
                    "platform_fee",
                    models.PositiveBigIntegerField(
                        help_text="Platform fee in minor units"
                    ),
                ),
                (
                    "total_amount",
                    models.PositiveBigIntegerField(
                        help_text="Amount charged to the customer in minor units"
                    ),
                ),
                (
                    "fee_rate",
                    models.DecimalField(
                        decimal_places=4,
                        help_text="Platform fee rate applied when the payment was set up",
                        max_digits=5,
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="gbp",
                        help_text="ISO 4217 currency code (lowercase)",
                        max_length=3,
                    ),
                ),
                (
                    "stripe_payment_intent_id",
                    models.CharField(
                        help_text="Stripe PaymentIntent ID (pi_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "stripe_refund_id",
                    models.CharField(
                        blank=True,
                        help_text="Stripe Refund ID (re_xxx) if the booking was refunded",
                        max_length=255,
                        null=True,
                    ),
                ),
                ("customer_notes", models.TextField(blank=True, default="")),
                ("declined_reason", models.TextField(blank=True, default="")),
                ("cancellation_reason", models.TextField(blank=True, default="")),
                ("confirmed_at", models.DateTimeField(blank=True, null=True)),
                ("declined_at", models.DateTimeField(blank=True, null=True)),
                ("expired_at", models.DateTimeField(blank=True, null=True)),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                (
                    "cancelled_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="Profile that cancelled the booking",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="cancelled_bookings",
                        to="authentication.profile",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        help_text="Customer who booked and paid",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="customer_bookings",
                        to="authentication.profile",
                    ),
                ),
                (
                    "provider",
                    models.ForeignKey(
                        help_text="Provider delivering the service",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="provider_bookings",
                        to="authentication.profile",
                    ),
                ),
                (
                    "service",
                    models.ForeignKey(
                        help_text="Service being booked",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="bookings.service",
                    ),
                ),
            ],
            options={
                "verbose_name": "Booking",
                "verbose_name_plural": "Bookings",
                "db_table": "bookings",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["customer", "status"],
                        name="booking_customer_status_idx",
                    ),
                    models.Index(
                        fields=["provider", "status"],
                        name="booking_provider_status_idx",
                    ),
                    models.Index(
                        fields=["status", "created_at"],
                        name="booking_status_created_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            total_amount=models.F("base_amount") + models.F("platform_fee")
                        ),
                        name="booking_total_is_base_plus_fee",
                    )
                ],
            },
        ),
    ]

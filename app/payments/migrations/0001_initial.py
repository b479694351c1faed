import uuid

import django.db.models.deletion
import django_fsm
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("authentication", "0001_initial"),
        ("bookings", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentIntent",
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
                    "stripe_payment_intent_id",
                    models.CharField(
                        db_index=True,
                        help_text="Stripe PaymentIntent ID (pi_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "client_secret",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Client secret used by the app to confirm the payment",
                        max_length=255,
                    ),
                ),
                (
                    "idempotency_key",
                    models.CharField(
                        help_text="Idempotency key supplied by the client for intent creation",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "base_amount",
                    models.PositiveBigIntegerField(
                        help_text="Provider's price in minor units"
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
                        help_text="Amount charged to the customer (base + fee) in minor units"
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
                    "status",
                    models.CharField(
                        choices=[
                            ("requires_payment_method", "Requires Payment Method"),
                            ("requires_confirmation", "Requires Confirmation"),
                            ("requires_action", "Requires Action"),
                            ("processing", "Processing"),
                            ("requires_capture", "Requires Capture"),
                            ("succeeded", "Succeeded"),
                            ("canceled", "Canceled"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="requires_payment_method",
                        help_text="Last known Stripe PaymentIntent status",
                        max_length=32,
                    ),
                ),
                (
                    "captured_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the payment was captured",
                        null=True,
                    ),
                ),
                (
                    "booking_draft",
                    models.JSONField(
                        blank=True,
                        help_text="Booking details stored when booking creation failed after capture",
                        null=True,
                    ),
                ),
                (
                    "needs_reconciliation",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="Captured but no booking recorded yet",
                    ),
                ),
                (
                    "reconciliation_error",
                    models.TextField(
                        blank=True,
                        help_text="Last error raised while creating the booking",
                        null=True,
                    ),
                ),
                (
                    "reconciliation_attempts",
                    models.PositiveSmallIntegerField(
                        default=0,
                        help_text="Number of booking creation retries for an orphaned capture",
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Metadata sent to Stripe with the intent",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        help_text="Customer being charged",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_intents",
                        to="authentication.profile",
                    ),
                ),
                (
                    "provider",
                    models.ForeignKey(
                        help_text="Provider whose service is being paid for",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="received_payment_intents",
                        to="authentication.profile",
                    ),
                ),
                (
                    "service",
                    models.ForeignKey(
                        help_text="Service being booked",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_intents",
                        to="bookings.service",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment Intent",
                "verbose_name_plural": "Payment Intents",
                "db_table": "payment_intents",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"], name="pi_status_created_idx"
                    ),
                    models.Index(
                        fields=["customer", "status"], name="pi_customer_status_idx"
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            total_amount=models.F("base_amount") + models.F("platform_fee")
                        ),
                        name="payment_intent_total_is_base_plus_fee",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(base_amount__gt=0),
                        name="payment_intent_base_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PayoutRecord",
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
                    "gross_amount",
                    models.PositiveBigIntegerField(
                        help_text="Amount paid by the customer in minor units"
                    ),
                ),
                (
                    "platform_fee",
                    models.PositiveBigIntegerField(
                        help_text="Platform fee withheld in minor units"
                    ),
                ),
                (
                    "net_amount",
                    models.PositiveBigIntegerField(
                        help_text="Amount transferred to the provider in minor units"
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
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="processing",
                        help_text="Current state of the payout (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "stripe_transfer_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Stripe Transfer ID (tr_xxx)",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "idempotency_key",
                    models.CharField(
                        help_text="Idempotency key used for the Stripe transfer",
                        max_length=255,
                    ),
                ),
                (
                    "expected_payout_date",
                    models.DateField(
                        help_text="Weekly payout day on which funds are expected to arrive"
                    ),
                ),
                (
                    "actual_payout_date",
                    models.DateTimeField(
                        blank=True,
                        help_text="When Stripe reported the payout as paid",
                        null=True,
                    ),
                ),
                (
                    "failed_at",
                    models.DateTimeField(
                        blank=True, help_text="When the payout failed", null=True
                    ),
                ),
                (
                    "failure_reason",
                    models.TextField(
                        blank=True,
                        help_text="Detailed reason if the payout failed",
                        null=True,
                    ),
                ),
                (
                    "booking",
                    models.ForeignKey(
                        help_text="Booking this payout settles",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payout_records",
                        to="bookings.booking",
                    ),
                ),
                (
                    "provider",
                    models.ForeignKey(
                        help_text="Provider receiving the payout",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payout_records",
                        to="authentication.profile",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payout Record",
                "verbose_name_plural": "Payout Records",
                "db_table": "provider_payouts",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["provider", "status"], name="payout_provider_status_idx"
                    ),
                    models.Index(
                        fields=["status", "expected_payout_date"],
                        name="payout_status_expected_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            net_amount=models.F("gross_amount") - models.F("platform_fee")
                        ),
                        name="payout_net_is_gross_minus_fee",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("status", "failed"), _negated=True),
                        fields=("booking",),
                        name="payout_one_active_per_booking",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ProviderAccount",
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
                    "stripe_account_id",
                    models.CharField(
                        db_index=True,
                        help_text="Stripe Account ID (acct_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "charges_enabled",
                    models.BooleanField(
                        default=False,
                        help_text="Whether Stripe has enabled charges for this account",
                    ),
                ),
                (
                    "details_submitted",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the provider finished submitting onboarding details",
                    ),
                ),
                (
                    "payouts_enabled",
                    models.BooleanField(
                        default=False,
                        help_text="Whether Stripe has enabled payouts for this account",
                    ),
                ),
                (
                    "account_status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("active", "Active")],
                        db_index=True,
                        default="pending",
                        help_text="Derived account status",
                        max_length=20,
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Arbitrary JSON metadata (e.g., business type, country)",
                    ),
                ),
                (
                    "profile",
                    models.OneToOneField(
                        help_text="Provider profile this connected account belongs to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="provider_account",
                        to="authentication.profile",
                    ),
                ),
            ],
            options={
                "verbose_name": "Provider Account",
                "verbose_name_plural": "Provider Accounts",
                "db_table": "provider_accounts",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Subscription",
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
                    "stripe_subscription_id",
                    models.CharField(
                        db_index=True,
                        help_text="Stripe Subscription ID (sub_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "stripe_customer_id",
                    models.CharField(
                        db_index=True,
                        help_text="Stripe Customer ID (cus_xxx)",
                        max_length=255,
                    ),
                ),
                (
                    "stripe_price_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Stripe Price ID (price_xxx)",
                        max_length=255,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("trialing", "Trialing"),
                            ("active", "Active"),
                            ("past_due", "Past Due"),
                            ("canceled", "Canceled"),
                            ("incomplete", "Incomplete"),
                            ("incomplete_expired", "Incomplete Expired"),
                            ("unpaid", "Unpaid"),
                            ("paused", "Paused"),
                        ],
                        db_index=True,
                        default="incomplete",
                        help_text="Last known Stripe subscription status",
                        max_length=20,
                    ),
                ),
                (
                    "current_period_end",
                    models.DateTimeField(
                        blank=True,
                        help_text="End of the current billing period",
                        null=True,
                    ),
                ),
                (
                    "trial_ends_at",
                    models.DateTimeField(
                        blank=True, help_text="When the trial ends", null=True
                    ),
                ),
                (
                    "cancel_at_period_end",
                    models.BooleanField(
                        default=False,
                        help_text="Whether to cancel at the end of the current period",
                    ),
                ),
                (
                    "canceled_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the subscription was canceled",
                        null=True,
                    ),
                ),
                (
                    "last_invoice_id",
                    models.CharField(
                        blank=True,
                        help_text="Stripe Invoice ID of the last invoice event",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
                (
                    "profile",
                    models.ForeignKey(
                        help_text="Provider profile that owns the subscription",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="subscriptions",
                        to="authentication.profile",
                    ),
                ),
            ],
            options={
                "verbose_name": "Subscription",
                "verbose_name_plural": "Subscriptions",
                "db_table": "provider_subscriptions",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["profile", "status"], name="sub_profile_status_idx"
                    ),
                    models.Index(
                        fields=["status", "current_period_end"],
                        name="sub_status_period_end_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
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
                    "stripe_event_id",
                    models.CharField(
                        db_index=True,
                        help_text="Stripe Event ID (evt_xxx) - unique constraint for idempotency",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Stripe event type (e.g., 'payment_intent.succeeded')",
                        max_length=100,
                    ),
                ),
                (
                    "payload",
                    models.JSONField(help_text="Full webhook payload from Stripe (JSON)"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("signature_verified", "Signature Verified"),
                            ("dispatched", "Dispatched"),
                            ("applied", "Applied"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="signature_verified",
                        help_text="Current processing status",
                        max_length=20,
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the event was successfully applied",
                        null=True,
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True,
                        help_text="Error message if processing failed",
                        null=True,
                    ),
                ),
                (
                    "attempt_count",
                    models.PositiveSmallIntegerField(
                        default=0, help_text="Number of dispatch attempts"
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "db_table": "webhook_events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="webhook_status_created_idx",
                    ),
                    models.Index(
                        fields=["event_type", "created_at"],
                        name="webhook_type_created_idx",
                    ),
                    models.Index(
                        fields=["status", "attempt_count"],
                        name="webhook_status_attempts_idx",
                    ),
                ],
            },
        ),
    ]

"""
Payments app configuration.

This app provides the escrow payment flow:
- Manual-capture PaymentIntents and the amount split
- Capture and booking creation
- Provider payouts via Stripe Connect transfers
- Stripe webhook reconciliation
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

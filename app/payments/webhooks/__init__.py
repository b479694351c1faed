"""
Webhook handling for payment events from Stripe.

Deliveries are verified, recorded by event id, parsed into typed events
and applied synchronously so a handler failure can be reported back to
Stripe as a non-2xx response.

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from payments.webhooks.events import UnhandledEvent, parse_event
from payments.webhooks.handlers import dispatch_webhook, register_handler
from payments.webhooks.processor import WebhookProcessor

__all__ = [
    "UnhandledEvent",
    "WebhookProcessor",
    "dispatch_webhook",
    "parse_event",
    "register_handler",
]

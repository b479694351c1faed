"""
Webhook endpoint view for Stripe.

The view hands the raw body and Stripe-Signature header to
WebhookProcessor and maps the outcome to the status Stripe expects:

- 200: Event applied, duplicate, or of a type we ignore
- 400: Invalid signature or malformed payload (Stripe stops retrying)
- 500: Handler failed (Stripe redelivers with backoff)

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from __future__ import annotations

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.exceptions import ErrorKind
from payments.webhooks.processor import WebhookProcessor


# Rejections Stripe should not redeliver
CLIENT_ERROR_CODES = {ErrorKind.INVALID_SIGNATURE.value, ErrorKind.VALIDATION_ERROR.value}


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive and apply a Stripe webhook event.

    Security:
    - Signature verification happens before the body is parsed
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Returns:
        JsonResponse ``{"success": true, "eventId": ...}`` on success,
        ``{"error": ...}`` otherwise

    Example Stripe-Signature header:
        t=1614556800,v1=xxx,v0=yyy
    """
    result = WebhookProcessor().handle_event(
        request.body,
        request.headers.get("Stripe-Signature"),
    )

    if result.success:
        return JsonResponse({"success": True, "eventId": result.data.stripe_event_id})

    status = 400 if str(result.error_code) in CLIENT_ERROR_CODES else 500
    return JsonResponse({"error": result.error}, status=status)

"""
OpenAPI schema customizations for drf-spectacular.

Tag naming follows the pattern: [App Name] - [Group Name]
Examples:
- Payments - Intents (payment intent creation)
- Payments - Checkout (capture and booking creation)
- Payments - Accounts (provider Stripe Connect onboarding)
- Bookings (booking lifecycle)
"""

# Maps operation_id prefixes to tags. The first matching prefix wins,
# so more specific prefixes come first.
TAG_PREFIXES = [
    ("payments_intents_", "Payments - Intents"),
    ("payments_capture_and_book_", "Payments - Checkout"),
    ("payments_accounts_", "Payments - Accounts"),
    ("payments_webhooks_", "Payments - Webhooks"),
    ("bookings_", "Bookings"),
]

TAG_DESCRIPTIONS = {
    "Payments - Intents": (
        "Create manual-capture payment intents for a service. The returned "
        "client secret is confirmed on the client."
    ),
    "Payments - Checkout": (
        "Capture an authorized payment and create the pending booking it pays for."
    ),
    "Payments - Accounts": (
        "Provider Stripe Express account onboarding and status."
    ),
    "Payments - Webhooks": (
        "Signed Stripe webhook delivery. Not called by API clients."
    ),
    "Bookings": (
        "Booking lifecycle: accept, decline, cancel, start and complete. "
        "Completing a booking releases the provider payout."
    ),
}


def group_endpoints(result, generator, request, public):
    """
    Postprocessing hook to group API endpoints by function.

    Operations that already carry tags from ``@extend_schema(tags=...)``
    keep them. Everything else is tagged by operation id prefix.
    """
    paths = result.get("paths", {})

    for path, methods in paths.items():
        for method, operation in methods.items():
            if not isinstance(operation, dict):
                continue

            operation_id = operation.get("operationId", "")
            for prefix, tag in TAG_PREFIXES:
                if operation_id.startswith(prefix):
                    operation["tags"] = [tag]
                    break

    result["tags"] = [
        {"name": name, "description": description}
        for name, description in TAG_DESCRIPTIONS.items()
    ]

    return result

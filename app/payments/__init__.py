"""
Payments app for escrow payments and provider payouts.

This app handles:
- Payment intent creation with the platform fee split
- Capturing held funds and recording the booking
- Provider transfers once a booking is completed
- Stripe Connect onboarding for providers
- Webhook event handling

Related apps:
    - authentication: Profile model for customers and providers
    - bookings: Services and the booking state machine
    - notifications: Payment event notifications

Usage:
    from payments.services import PaymentIntentService

    result = PaymentIntentService().create_intent(
        customer=profile,
        service_id=service.id,
        provider_id=provider.pk,
        base_amount=10000,
        currency="gbp",
        idempotency_key="checkout-7f3a",
    )
"""

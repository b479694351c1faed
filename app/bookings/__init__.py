"""
Bookings app for provider services and the booking lifecycle.

This app handles:
- Services offered by providers (title, base price)
- Booking records created from captured payments
- The booking state machine (accept, decline, cancel, start, complete)
- Refunds when a paid booking is declined, expired or cancelled

Related apps:
    - payments: Creates bookings after capture, pays providers on completion
    - notifications: Booking lifecycle notifications
"""

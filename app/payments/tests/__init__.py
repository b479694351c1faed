"""
Tests for payments app.

This package contains test modules for:
- test_money.py: Amount split and rounding
- test_conf.py: Settings snapshot and payout day calculation
- test_models.py: Model invariants and transitions
- test_intent_service.py: Checkout intent creation and abandonment
- test_capture_coordinator.py: Capture, booking creation, orphaned captures
- test_payout_service.py: Provider payouts
- test_account_service.py: Connect onboarding
- test_tasks.py: Periodic Celery tasks
- test_views.py: API endpoint tests
- test_scenarios.py: Checkout-to-payout journeys

Usage:
    pytest payments/tests/
    pytest payments/tests/test_payout_service.py
"""

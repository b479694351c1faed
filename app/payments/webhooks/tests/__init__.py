"""Tests for Stripe webhook parsing, handlers and the endpoint."""

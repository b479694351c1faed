"""Tests for the Stripe adapter."""

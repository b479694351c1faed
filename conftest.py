"""
Root pytest configuration for the Django project.

Sets the environment the settings module reads before Django is set up, so
the suite runs without Postgres, Redis or real Stripe keys.
App-level tuning and shared fixtures live in app/conftest.py.
"""

import os

import django

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DEBUG", "False")
os.environ.setdefault("DATABASE_URL", "sqlite://:memory:")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_fake")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("PLATFORM_FEE_PERCENT", "10")
os.environ.setdefault("PAYMENTS_CURRENCY", "gbp")
os.environ.setdefault("ENV_FILE", "/nonexistent/.env.test")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()

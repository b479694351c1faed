"""
Celery configuration for the Django application.

Celery runs the payment housekeeping that must not block a request:
- Re-dispatching Stripe webhook events whose handlers failed
- Retrying booking creation for orphaned captures
- Canceling abandoned payment intents
- Expiring (and refunding) pending bookings the provider never answered

Periodic schedules live in settings.CELERY_BEAT_SCHEDULE and are stored by
django-celery-beat's database scheduler.

Usage:
    from celery import shared_task

    @shared_task
    def reconcile_orphaned_captures():
        ...

    reconcile_orphaned_captures.delay()

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Celery will look for a tasks.py module in each installed app
app.autodiscover_tasks()

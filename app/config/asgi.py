"""
ASGI config for the Django application.

Uvicorn uses this entry point to serve the API. Stripe webhooks and the
booking endpoints are plain HTTP, so Django's ASGI handler is enough.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/asgi/
"""

import os

from django.core.asgi import get_asgi_application

# Set the default Django settings module for the ASGI application
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_asgi_application()

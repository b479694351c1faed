"""
WSGI config for the Django application.

Provided for gunicorn and other WSGI servers. The primary entry point is
ASGI via Uvicorn (see asgi.py).

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/wsgi/
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()

"""
Core views providing infrastructure endpoints.

This module contains views that are not part of the business domain but are
essential for operating the service, such as health checks.
"""

from django.conf import settings
from django.db import connection
from django.http import JsonResponse


def health_check(request):
    """
    Health check endpoint for load balancers and container orchestration.

    Reports database and cache connectivity plus whether the payment
    processor credentials are configured. Only the database is critical:
    the cache degrades gracefully and missing Stripe keys are reported so
    a misconfigured deploy is visible before the first checkout fails.

    HTTP Status Codes:
        200: All critical systems operational
        503: Database unreachable

    Example Response:
        {
            "status": "healthy",
            "database": "connected",
            "cache": "connected",
            "payments": "configured"
        }
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
        "payments": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    try:
        from django.core.cache import cache

        cache.set("health_check", "ok", timeout=1)
        if cache.get("health_check") == "ok":
            health_status["cache"] = "connected"
        else:
            health_status["cache"] = "disconnected"
    except Exception:
        health_status["cache"] = "disconnected"

    if settings.STRIPE_SECRET_KEY and settings.STRIPE_WEBHOOK_SECRET:
        health_status["payments"] = "configured"
    else:
        health_status["payments"] = "unconfigured"

    status_code = 200 if is_healthy else 503

    return JsonResponse(health_status, status=status_code)

import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from drf_spectacular.utils import extend_schema
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

logger = logging.getLogger("aquashop.health")


@extend_schema(tags=["Health Endpoint"], summary="Health check")
@api_view(["GET"])
@permission_classes([AllowAny])
def health(request):
    """Report database and cache reachability; 503 when either is down."""

    checks = {"database": "ok", "cache": "ok"}
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError:
        logger.exception("health.database_down", extra={"event": "health.database_down"})
        checks["database"] = "error"
    try:
        cache.set("health:ping", "1", 5)
        if cache.get("health:ping") != "1":
            checks["cache"] = "error"
    except Exception:
        logger.exception("health.cache_down", extra={"event": "health.cache_down"})
        checks["cache"] = "error"
    healthy = all(value == "ok" for value in checks.values())
    return Response({"status": "ok" if healthy else "degraded", **checks}, status=200 if healthy else 503)

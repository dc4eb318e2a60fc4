import logging

logger = logging.getLogger("aquashop.auth")


def log_auth_event(action: str, request, user=None, status: str = "success"):
    """Emit a structured auth event with action, user, ip and status."""
    extra = {
        "event": f"auth.{action}",
        "ip": request.META.get("REMOTE_ADDR"),
        "status": status,
    }
    if user is not None:
        extra["user_id"] = getattr(user, "id", None)
        extra["role"] = getattr(user, "role", None)
    logger.info(f"auth.{action}", extra=extra)

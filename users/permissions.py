from rest_framework.permissions import BasePermission


class IsAdminRole(BasePermission):
    """Allow only authenticated users carrying the shop admin role."""

    message = "Admin role required."

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "is_admin_role", False))

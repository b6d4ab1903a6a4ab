"""
Custom permission classes for role based access control.
"""
from rest_framework.permissions import BasePermission

ADMIN_ROLES = {"SUPER_ADMIN", "ADMIN", "HOSPITAL_ADMIN"}
BROADCAST_ROLES = ADMIN_ROLES | {"DISPATCHER"}


class IsAdminRole(BasePermission):
    """Allow access only to users with an administrative role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) in ADMIN_ROLES)


class CanBroadcast(BasePermission):
    """Administrators and dispatchers may push realtime alerts."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) in BROADCAST_ROLES)


def facility_scope(user, requested):
    """Facility a query is restricted to.

    Super administrators may look at any facility (or all of them);
    everyone else is pinned to the facility on their account.
    """
    if getattr(user, "role", None) == "SUPER_ADMIN":
        return requested or None
    return getattr(user, "facility_id", None) or requested or None

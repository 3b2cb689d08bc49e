from django.conf import settings
from rest_framework.permissions import BasePermission, IsAuthenticated


class DebugOrAuthPermission(BasePermission):
    """Allow all when DEBUG is True; otherwise require authentication.

    Evaluated per request rather than bound at import time, so tests that
    override DEBUG see the change.
    """

    def has_permission(self, request, view):  # type: ignore[override]
        if settings.DEBUG:
            return True
        return IsAuthenticated().has_permission(request, view)

# accounts/permissions.py
from rest_framework.permissions import BasePermission

from .models import User


class HasRole(BasePermission):
    """
    Allows access only to authenticated users with ``role``.
    Keeps role check logic centralized.
    """
    role = None
    message = "Not allowed for this account type"

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        return getattr(user, "role", None) == self.role


class IsRider(HasRole):
    role = User.ROLE_RIDER
    message = "Only riders can access this endpoint"


class IsDriver(HasRole):
    role = User.ROLE_DRIVER
    message = "Only drivers allowed"

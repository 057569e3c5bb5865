from rest_framework.permissions import BasePermission
from .models import Role


class IsBuyer(BasePermission):
    message = "Only buyer accounts can perform this action."

    def has_permission(self, request, view):
        return (
            request.user.is_authenticated and
            request.user.role == Role.BUYER
        )


class IsSupplier(BasePermission):
    message = "Only supplier accounts can perform this action."

    def has_permission(self, request, view):
        return (
            request.user.is_authenticated and
            request.user.role == Role.SUPPLIER
        )


class IsPlatformAdmin(BasePermission):
    message = "Admin access required."

    def has_permission(self, request, view):
        return (
            request.user.is_authenticated and
            request.user.is_platform_admin
        )

"""
Role permissions shared by all UEX apps.

These are the server-side authorization boundary: every privileged
operation checks the caller's role here rather than trusting the client.
"""

from rest_framework import permissions

from .models import UserRole


class IsAdmin(permissions.BasePermission):
    """Permission for admin accounts only."""

    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.role == UserRole.ADMIN


class IsSeller(permissions.BasePermission):
    """Permission for seller (B2B) accounts only."""

    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.role == UserRole.SELLER


class IsDriver(permissions.BasePermission):
    """Permission for accounts linked to a staff record."""

    message = 'Driver access required.'

    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.is_driver


class IsAdminOrDriver(permissions.BasePermission):
    """Admins, or drivers acting on shipments assigned to them."""

    def has_permission(self, request, view):
        user = request.user
        return user.is_authenticated and (user.role == UserRole.ADMIN or user.is_driver)


class IsAdminOrSeller(permissions.BasePermission):
    """Admins or sellers."""

    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.role in (
            UserRole.ADMIN, UserRole.SELLER
        )

# apps/library/permissions.py
from django.core.exceptions import PermissionDenied
from rest_framework import permissions

from apps.core.permissions.roles import Actor, Role


def get_actor(request):
    """
    Actor for the authenticated user, cached on the request
    """
    actor = getattr(request, '_library_actor', None)
    if actor is None:
        actor = Actor.from_user(request.user)
        request._library_actor = actor
    return actor


class LibraryPermission(permissions.BasePermission):
    """
    Role gate for library endpoints. Students and desk staff may use the
    library; actions listed in the view's ``staff_actions`` are desk-only.
    The services repeat these checks.
    """

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        try:
            actor = get_actor(request)
        except PermissionDenied:
            return False

        if getattr(view, 'action', None) in getattr(view, 'staff_actions', ()):
            return actor.is_library_staff

        return actor.role in [Role.STUDENT] + Role.LIBRARY_STAFF


class IsLibraryStaff(permissions.BasePermission):

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        try:
            return get_actor(request).is_library_staff
        except PermissionDenied:
            return False

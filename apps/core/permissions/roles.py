"""
Roles and the acting-user capability passed into service calls.

The portal authenticates users elsewhere; services never read ambient
session state. Callers build an ``Actor`` from the authenticated user and
hand it to every operation, and the services check the role themselves.
"""
from dataclasses import dataclass

from django.core.exceptions import PermissionDenied
from django.utils.translation import gettext_lazy as _


class Role:
    """
    Portal role constants and choices
    """
    STUDENT = 'student'
    ADMIN = 'admin'
    COUNSELOR = 'counselor'
    LIBRARIAN = 'librarian'

    CHOICES = (
        (STUDENT, _('Student')),
        (ADMIN, _('Admin')),
        (COUNSELOR, _('Counselor')),
        (LIBRARIAN, _('Librarian')),
    )

    # Roles allowed to manage the catalog and the circulation desk
    LIBRARY_STAFF = [LIBRARIAN, ADMIN]

    # Django auth group name -> role, checked in this order
    GROUP_ROLES = (
        ('Admin', ADMIN),
        ('Librarian', LIBRARIAN),
        ('Counselor', COUNSELOR),
        ('Student', STUDENT),
    )


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: str

    def __post_init__(self):
        if self.role not in dict(Role.CHOICES):
            raise ValueError(f"Unknown role: {self.role!r}")

    def __str__(self):
        return f"{self.role}:{self.user_id}"

    @property
    def is_library_staff(self):
        return self.role in Role.LIBRARY_STAFF

    @classmethod
    def from_user(cls, user):
        """
        Build an actor from an authenticated Django user.

        Superusers act as admins; everybody else gets the role of the first
        matching auth group. Users without a portal group have no role.
        """
        if not user or not user.is_authenticated:
            raise PermissionDenied(_("Authentication required"))

        if user.is_superuser:
            return cls(user_id=str(user.pk), role=Role.ADMIN)

        group_names = set(user.groups.values_list('name', flat=True))
        for group_name, role in Role.GROUP_ROLES:
            if group_name in group_names:
                return cls(user_id=str(user.pk), role=role)

        raise PermissionDenied(_("User has no portal role"))


def require_role(actor, roles, action=None):
    """
    Raise ``PermissionDenied`` unless the actor holds one of ``roles``
    """
    if isinstance(roles, str):
        roles = [roles]

    if actor is None or actor.role not in roles:
        raise PermissionDenied(
            _("Role %(role)s may not %(action)s") % {
                'role': getattr(actor, 'role', 'anonymous'),
                'action': action or 'perform this action',
            }
        )

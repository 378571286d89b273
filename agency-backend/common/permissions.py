# common/permissions.py
from rest_framework.permissions import BasePermission

from common.roles import AgencyRole


def _active_profile(user):
    if not (user and user.is_authenticated):
        return None
    profile = getattr(user, "staff_profile", None)
    if profile is None or not profile.is_active:
        return None
    return profile


def user_role(user):
    """
    Superusers act as ADMIN; everyone else needs an active StaffProfile.
    """
    if user and user.is_authenticated and user.is_superuser:
        return AgencyRole.ADMIN
    profile = _active_profile(user)
    return profile.role if profile else None


def user_job_title(user):
    profile = _active_profile(user)
    return profile.job_title if profile else ""


class RoleRequired(BasePermission):
    """
    View can define:
      permission_roles = { "POST": [AgencyRole.ADMIN, ...], "DELETE": [AgencyRole.ADMIN] }
    A method missing from the dict needs any agency role.
    """
    message = "Forbidden"

    def has_permission(self, request, view):
        role = user_role(request.user)
        if role is None:
            return False
        roles_map = getattr(view, "permission_roles", {})
        needed = roles_map.get(request.method, [])
        if not needed:
            return True
        return role in needed

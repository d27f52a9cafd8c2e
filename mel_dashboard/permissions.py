"""
Role-based access checks for MEL users.

Users carry a role and an explicit permissions list ("all" grants every
action). Country Managers and Project Officers are scoped to their
country_id; unscoped users (country_id None) see every country.

Usage:
    from mel_dashboard.permissions import check_permission

    # Raises PermissionDenied if not allowed
    check_permission(user, "approve_data", country_id=1)
"""

from .config import ROLE_PERMISSIONS
from .errors import PermissionDenied


def permissions_for_role(role: str) -> list[str]:
    """Default permission list assigned to a new user of the given role."""
    return list(ROLE_PERMISSIONS.get(role, ["view_dashboard", "view_reports"]))


def has_permission(user: dict | None, action: str, country_id: int | None = None) -> bool:
    """
    Check if user may perform an action, optionally within a country.

    Args:
        user: User dict with "permissions" (and optionally "role", "country_id")
        action: Permission string (e.g. 'approve_data', 'data_entry')
        country_id: Country the action targets, for scoped users

    Returns:
        True if the user's permissions grant the action in that scope.
    """
    if not user:
        return False

    perms = user.get("permissions")
    if perms is None:
        perms = permissions_for_role(user.get("role", ""))

    if "all" in perms:
        return True
    if action not in perms:
        return False

    scope = user.get("country_id")
    if scope is not None and country_id is not None and scope != country_id:
        return False
    return True


def check_permission(user: dict | None, action: str, country_id: int | None = None) -> None:
    """Raise PermissionDenied unless has_permission() is true."""
    if not has_permission(user, action, country_id):
        name = (user or {}).get("name", "anonymous")
        scope = f"country {country_id}" if country_id is not None else None
        raise PermissionDenied(name, action, scope)

"""Role ranks, permission sets and the single authorization check.

Built-in roles have a fixed rank.  Each built-in role maps to a frozen set
of ``Permission`` values derived from the rank rules; custom roles (stored
in settings) carry their own permission list and rank as ``user``.
"""

from enum import Enum
from typing import Iterable, Optional, Protocol

from portal.exceptions import PermissionDenied, ValidationFailed
from portal.models.roles import Role

ROLE_OWNER = "owner"
ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_STAFF = "staff"
ROLE_BUILDER = "builder"
ROLE_USER = "user"

ROLE_RANK: dict[str, int] = {
    ROLE_OWNER: 6,
    ROLE_ADMIN: 5,
    ROLE_MANAGER: 3,
    ROLE_STAFF: 2,
    ROLE_BUILDER: 2,
    ROLE_USER: 1,
}

BUILTIN_ROLE_IDS = tuple(ROLE_RANK)


class Permission(str, Enum):
    ACCESS_ADMIN = "access_admin"
    MANAGE_APPLICATIONS = "manage_applications"
    MANAGE_USERS = "manage_users"
    MANAGE_ROLES = "manage_roles"
    MANAGE_SETTINGS = "manage_settings"
    MANAGE_FORMS = "manage_forms"
    MANAGE_SERVER = "manage_server"
    DELETE_USERS = "delete_users"


# Permissions a custom role may be granted
ASSIGNABLE_PERMISSIONS = frozenset(p for p in Permission if p is not Permission.DELETE_USERS)

ROLE_PERMISSIONS: dict[str, frozenset[Permission]] = {
    ROLE_OWNER: frozenset(Permission),
    ROLE_ADMIN: ASSIGNABLE_PERMISSIONS,
    ROLE_MANAGER: frozenset({Permission.ACCESS_ADMIN, Permission.MANAGE_APPLICATIONS}),
    ROLE_STAFF: frozenset({Permission.ACCESS_ADMIN}),
    ROLE_BUILDER: frozenset({Permission.ACCESS_ADMIN}),
    ROLE_USER: frozenset(),
}


class Actor(Protocol):
    id: str
    role: str


def rank(role: str) -> int:
    """Rank of ``role``; unknown (custom) roles rank as ``user``."""
    return ROLE_RANK.get(role, ROLE_RANK[ROLE_USER])


# ---------------------------------------------------------------------------
# Capability queries
# ---------------------------------------------------------------------------


def can_access_admin(role: str) -> bool:
    return rank(role) >= ROLE_RANK[ROLE_STAFF]


def can_manage_roles(role: str) -> bool:
    return rank(role) >= ROLE_RANK[ROLE_ADMIN]


def can_review_applications(role: str) -> bool:
    return rank(role) >= ROLE_RANK[ROLE_MANAGER]


def can_manage_settings(role: str) -> bool:
    return rank(role) >= ROLE_RANK[ROLE_ADMIN]


def can_delete_users(role: str) -> bool:
    return role == ROLE_OWNER


# ---------------------------------------------------------------------------
# Permission sets
# ---------------------------------------------------------------------------


def permissions_for(role: str, custom_roles: Iterable[Role] = ()) -> frozenset[Permission]:
    """Resolve the permission set of a built-in or custom role."""
    if role in ROLE_PERMISSIONS:
        return ROLE_PERMISSIONS[role]
    for custom in custom_roles:
        if custom.id == role:
            granted = set()
            for name in custom.permissions:
                try:
                    granted.add(Permission(name))
                except ValueError:
                    continue
            return frozenset(granted & ASSIGNABLE_PERMISSIONS)
    return ROLE_PERMISSIONS[ROLE_USER]


def has_permission(actor: Optional[Actor], permission: Permission, custom_roles: Iterable[Role] = ()) -> bool:
    if actor is None:
        return False
    return permission in permissions_for(actor.role, custom_roles)


def authorize(
    actor: Optional[Actor],
    permission: Permission,
    custom_roles: Iterable[Role] = (),
    message: Optional[str] = None,
) -> None:
    """Raise ``PermissionDenied`` unless ``actor`` holds ``permission``."""
    if not has_permission(actor, permission, custom_roles):
        raise PermissionDenied(message or "You do not have permission to perform this action.")


def is_staff(actor: Optional[Actor], custom_roles: Iterable[Role] = ()) -> bool:
    return has_permission(actor, Permission.ACCESS_ADMIN, custom_roles)


def check_role_assignment(
    actor: Optional[Actor],
    target: Actor,
    new_role: str,
    custom_roles: Iterable[Role] = (),
) -> None:
    """Validate that ``actor`` may move ``target`` to ``new_role``.

    Only roles ranked strictly below admin are assignable by non-owners, and
    actors below admin never reach above their own rank.  The owner role is
    never assignable and the owner's own role never changes.
    """
    custom_roles = list(custom_roles)
    authorize(actor, Permission.MANAGE_ROLES, custom_roles, "You do not have permission to manage roles.")

    if target.role == ROLE_OWNER:
        raise PermissionDenied("Cannot change the owner's role.")
    if actor.role == ROLE_ADMIN and new_role in (ROLE_ADMIN, ROLE_OWNER):
        raise PermissionDenied("Admins can only assign Manager, Staff, Builder or Member roles.")
    if new_role == ROLE_ADMIN and actor.role != ROLE_OWNER:
        raise PermissionDenied("Only the owner can assign Admin role.")
    if new_role == ROLE_OWNER:
        raise PermissionDenied("Owner role cannot be assigned.")
    if target.role == ROLE_ADMIN and actor.role != ROLE_OWNER:
        raise PermissionDenied("Only the owner can change an Admin's role.")
    if actor.role not in (ROLE_OWNER, ROLE_ADMIN) and (
        rank(new_role) > rank(actor.role) or rank(target.role) > rank(actor.role)
    ):
        raise PermissionDenied("You cannot assign roles above your own.")
    if new_role not in ROLE_RANK and not any(r.id == new_role for r in custom_roles):
        raise ValidationFailed(f"Unknown role: {new_role}")

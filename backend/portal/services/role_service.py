"""Role catalog: the six built-in roles plus custom roles kept in settings."""

import logging
from typing import List

from portal.exceptions import Conflict, NotFound, PermissionDenied, ValidationFailed
from portal.helpers.ids import is_meaningful_slug, role_slug
from portal.models.roles import Role, RoleCreate, RoleUpdate
from portal.models.users import UserAccount
from portal.services.access_control import (
    ASSIGNABLE_PERMISSIONS,
    BUILTIN_ROLE_IDS,
    ROLE_PERMISSIONS,
    ROLE_USER,
    Permission,
    authorize,
)
from portal.store import PortalRepository

logger = logging.getLogger(__name__)

# id -> (label, colour, icon, description)
_BUILTIN_PRESENTATION = {
    "owner": ("Owner", "#fbbf24", "Crown", "Full control over the portal."),
    "admin": ("Admin", "#f87171", "ShieldAlert", "Manages settings, roles and users."),
    "manager": ("Manager", "#c084fc", "Briefcase", "Reviews applications."),
    "staff": ("Staff", "#60a5fa", "Shield", "Moderates the community."),
    "builder": ("Builder", "#34d399", "Hammer", "Builds for the server."),
    "user": ("Member", "#a3a3a3", "User", "A regular community member."),
}


def builtin_roles() -> List[Role]:
    roles = []
    for role_id in BUILTIN_ROLE_IDS:
        label, color, icon, description = _BUILTIN_PRESENTATION[role_id]
        roles.append(
            Role(
                id=role_id,
                name=label,
                description=description,
                color=color,
                icon=icon,
                permissions=sorted(p.value for p in ROLE_PERMISSIONS[role_id]),
                is_custom=False,
            )
        )
    return roles


def _clean_permissions(names: List[str]) -> List[str]:
    allowed = {p.value for p in ASSIGNABLE_PERMISSIONS}
    unknown = [name for name in names if name not in allowed]
    if unknown:
        raise ValidationFailed(f"Unknown permissions: {', '.join(unknown)}")
    # Keep declaration order and drop duplicates
    return [p.value for p in Permission if p.value in set(names)]


class RoleService:
    @staticmethod
    async def list_roles(repo: PortalRepository) -> List[Role]:
        return builtin_roles() + await repo.get_custom_roles()

    @staticmethod
    async def get_role(repo: PortalRepository, role_id: str) -> Role:
        for role in await RoleService.list_roles(repo):
            if role.id == role_id:
                return role
        raise NotFound("Role not found.")

    @staticmethod
    async def create_role(repo: PortalRepository, actor: UserAccount, data: RoleCreate) -> Role:
        settings = await repo.get_settings()
        authorize(actor, Permission.MANAGE_ROLES, settings.custom_roles, "You do not have permission to manage roles.")

        role_id = role_slug(data.name)
        if not is_meaningful_slug(role_id):
            raise ValidationFailed("Role name must contain letters or digits.")
        if role_id in BUILTIN_ROLE_IDS or any(r.id == role_id for r in settings.custom_roles):
            raise Conflict(f"A role with id '{role_id}' already exists.")

        role = Role(
            id=role_id,
            name=data.name,
            description=data.description,
            color=data.color or "#a3a3a3",
            icon=data.icon or "User",
            permissions=_clean_permissions(data.permissions),
            is_custom=True,
        )
        settings.custom_roles.append(role)
        await repo.save_settings(settings)
        logger.info("User %s created custom role %s", actor.id, role.id)
        return role

    @staticmethod
    async def update_role(repo: PortalRepository, actor: UserAccount, role_id: str, data: RoleUpdate) -> Role:
        settings = await repo.get_settings()
        authorize(actor, Permission.MANAGE_ROLES, settings.custom_roles, "You do not have permission to manage roles.")
        if role_id in BUILTIN_ROLE_IDS:
            raise PermissionDenied("Built-in roles cannot be edited.")

        role = next((r for r in settings.custom_roles if r.id == role_id), None)
        if role is None:
            raise NotFound("Role not found.")

        updates = data.model_dump(exclude_unset=True)
        if "permissions" in updates and updates["permissions"] is not None:
            updates["permissions"] = _clean_permissions(updates["permissions"])
        for key, value in updates.items():
            if value is not None:
                setattr(role, key, value)
        await repo.save_settings(settings)
        logger.info("User %s updated custom role %s", actor.id, role_id)
        return role

    @staticmethod
    async def delete_role(repo: PortalRepository, actor: UserAccount, role_id: str) -> int:
        """Delete a custom role; its holders fall back to ``user``.

        Returns how many users were reassigned.
        """
        settings = await repo.get_settings()
        authorize(actor, Permission.MANAGE_ROLES, settings.custom_roles, "You do not have permission to manage roles.")
        if role_id in BUILTIN_ROLE_IDS:
            raise PermissionDenied("Built-in roles cannot be deleted.")
        if not any(r.id == role_id for r in settings.custom_roles):
            raise NotFound("Role not found.")

        settings.custom_roles = [r for r in settings.custom_roles if r.id != role_id]
        await repo.save_settings(settings)

        users = await repo.get_users()
        reassigned = 0
        for user in users:
            if user.role == role_id:
                user.role = ROLE_USER
                reassigned += 1
        if reassigned:
            await repo.save_users(users)
        logger.info("User %s deleted custom role %s (%d users reassigned)", actor.id, role_id, reassigned)
        return reassigned

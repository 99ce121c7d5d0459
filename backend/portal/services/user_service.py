"""User directory: owner seeding, registration, login and admin edits."""

import logging
import os
from typing import List, Optional

from dotenv import load_dotenv

from portal.auth import MIN_PASSWORD_LENGTH, hash_password, verify_password
from portal.exceptions import (
    AuthenticationFailed,
    Conflict,
    NotFound,
    PermissionDenied,
    ValidationFailed,
)
from portal.helpers.ids import generate_member_id
from portal.models.users import UserAccount
from portal.services.access_control import (
    ROLE_OWNER,
    ROLE_USER,
    Permission,
    authorize,
    check_role_assignment,
    is_staff,
    rank,
)
from portal.store import PortalRepository

load_dotenv()

logger = logging.getLogger(__name__)

OWNER_ID = "owner-001"
OWNER_EMAIL = os.getenv("PORTAL_OWNER_EMAIL", "owner@dismine.com")
OWNER_PASSWORD = os.getenv("PORTAL_OWNER_PASSWORD", "dismine2025")
OWNER_NAME = os.getenv("PORTAL_OWNER_NAME", "Dismine")


def _normalize_email(email: Optional[str]) -> Optional[str]:
    if email is None:
        return None
    email = email.strip().lower()
    return email or None


def _check_password(password: Optional[str]) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")


def _find(users: List[UserAccount], user_id: str) -> UserAccount:
    target = next((u for u in users if u.id == user_id), None)
    if target is None:
        raise NotFound("User not found.")
    return target


def _email_taken(users: List[UserAccount], email: str, exclude_id: Optional[str] = None) -> bool:
    return any(u.email == email and u.id != exclude_id for u in users)


def _check_can_edit(actor: UserAccount, target: UserAccount, message: str) -> None:
    """Only the owner edits accounts at or above the actor's own rank.

    Plain members hold no permissions, so any user manager may edit them.
    """
    if actor.role == ROLE_OWNER or actor.id == target.id or target.role == ROLE_USER:
        return
    if rank(target.role) >= rank(actor.role):
        raise PermissionDenied(message)


class UserService:
    """Service layer for portal accounts."""

    # ------------------------------------------------------------------
    # Owner seeding
    # ------------------------------------------------------------------

    @staticmethod
    async def ensure_owner_account(repo: PortalRepository) -> UserAccount:
        """Seed the owner if no user holds the owner role.  Idempotent."""
        users = await repo.get_users()
        existing = next((u for u in users if u.role == ROLE_OWNER), None)
        if existing is not None:
            return existing

        owner = UserAccount(
            email=_normalize_email(OWNER_EMAIL),
            display_name=OWNER_NAME,
            hashed_password=hash_password(OWNER_PASSWORD),
            auth_method="email",
            role=ROLE_OWNER,
        )
        if not any(u.id == OWNER_ID for u in users):
            owner.id = OWNER_ID
        users.append(owner)
        await repo.save_users(users)
        logger.info("Seeded owner account %s", owner.id)
        return owner

    # ------------------------------------------------------------------
    # Self-service
    # ------------------------------------------------------------------

    @staticmethod
    async def register_user(
        repo: PortalRepository,
        *,
        email: Optional[str] = None,
        password: Optional[str] = None,
        display_name: str = "",
        auth_method: str = "email",
        discord_id: Optional[str] = None,
        discord_username: Optional[str] = None,
        discord_avatar: Optional[str] = None,
        google_id: Optional[str] = None,
    ) -> UserAccount:
        """Create an account, or return the existing one for a known
        Discord/Google identity.  New accounts always get the ``user`` role.
        """
        users = await repo.get_users()
        settings = await repo.get_settings()
        email = _normalize_email(email)

        existing = None
        if auth_method == "discord" and discord_id:
            existing = next((u for u in users if u.discord_id == discord_id), None)
        elif auth_method == "google" and google_id:
            existing = next((u for u in users if u.google_id == google_id), None)
        if existing is not None:
            if not settings.login_enabled and not is_staff(existing, settings.custom_roles):
                raise PermissionDenied(settings.maintenance_message or "Login is currently disabled for maintenance.")
            logger.info("Existing %s identity signed in as user %s", auth_method, existing.id)
            return existing

        if not settings.registration_enabled:
            raise PermissionDenied(settings.maintenance_message or "Registrations are currently closed.")

        hashed = None
        if auth_method == "email":
            if not email:
                raise ValidationFailed("Email is required.")
            _check_password(password)
            hashed = hash_password(password)
        if auth_method == "email" and email and _email_taken(users, email):
            raise Conflict("An account with this email already exists.")

        if not display_name:
            display_name = email.split("@")[0] if email else "Member"

        user = UserAccount(
            email=email,
            display_name=display_name,
            hashed_password=hashed,
            auth_method=auth_method,
            role=ROLE_USER,
            discord_id=discord_id,
            discord_username=discord_username,
            discord_avatar=discord_avatar,
            google_id=google_id,
        )
        users.append(user)
        await repo.save_users(users)
        logger.info("Registered %s user %s", auth_method, user.id)
        return user

    @staticmethod
    async def login_user(repo: PortalRepository, email: str, password: str) -> UserAccount:
        await UserService.ensure_owner_account(repo)
        users = await repo.get_users()
        email = _normalize_email(email)

        user = next((u for u in users if u.email == email and u.auth_method == "email"), None)
        if user is None:
            raise AuthenticationFailed("No account found with this email.")
        if not verify_password(password, user.hashed_password):
            raise AuthenticationFailed("Incorrect password.")

        settings = await repo.get_settings()
        if not settings.login_enabled and not is_staff(user, settings.custom_roles):
            raise PermissionDenied(settings.maintenance_message or "Login is currently disabled for maintenance.")
        logger.info("User %s logged in", user.id)
        return user

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    @staticmethod
    async def list_users(
        repo: PortalRepository, actor: UserAccount, search: Optional[str] = None
    ) -> List[UserAccount]:
        authorize(actor, Permission.ACCESS_ADMIN, await repo.get_custom_roles())
        users = await repo.get_users()
        if search:
            needle = search.strip().lower()
            users = [
                u
                for u in users
                if any(
                    needle in (value or "").lower()
                    for value in (u.display_name, u.email, u.discord_username, u.member_id)
                )
            ]
        return users

    @staticmethod
    async def update_user_role(
        repo: PortalRepository, actor: UserAccount, user_id: str, new_role: str
    ) -> UserAccount:
        custom_roles = await repo.get_custom_roles()
        authorize(actor, Permission.MANAGE_ROLES, custom_roles, "You do not have permission to manage roles.")

        users = await repo.get_users()
        target = _find(users, user_id)
        check_role_assignment(actor, target, new_role, custom_roles)

        old_role = target.role
        target.role = new_role
        await repo.save_users(users)
        logger.info("User %s changed role of %s from %s to %s", actor.id, target.id, old_role, new_role)
        return target

    @staticmethod
    async def delete_user(repo: PortalRepository, actor: UserAccount, user_id: str) -> None:
        authorize(actor, Permission.DELETE_USERS, message="Only the owner can delete users.")

        users = await repo.get_users()
        target = _find(users, user_id)
        if target.role == ROLE_OWNER:
            raise PermissionDenied("Cannot delete the owner account.")

        await repo.save_users([u for u in users if u.id != user_id])
        logger.info("User %s deleted user %s", actor.id, user_id)

    @staticmethod
    async def update_user_password(
        repo: PortalRepository, actor: UserAccount, user_id: str, new_password: str
    ) -> None:
        authorize(
            actor,
            Permission.MANAGE_USERS,
            await repo.get_custom_roles(),
            "You do not have permission to change passwords.",
        )
        users = await repo.get_users()
        target = _find(users, user_id)
        if target.role == ROLE_OWNER and actor.role != ROLE_OWNER:
            raise PermissionDenied("Cannot change the owner's password.")
        _check_can_edit(actor, target, "You cannot change the password of this account.")
        _check_password(new_password)

        target.hashed_password = hash_password(new_password)
        await repo.save_users(users)
        logger.info("User %s reset the password of %s", actor.id, target.id)

    @staticmethod
    async def update_user_info(
        repo: PortalRepository,
        actor: UserAccount,
        user_id: str,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
        status: Optional[str] = None,
    ) -> UserAccount:
        authorize(
            actor,
            Permission.MANAGE_USERS,
            await repo.get_custom_roles(),
            "You do not have permission to update user info.",
        )
        users = await repo.get_users()
        target = _find(users, user_id)
        if target.role == ROLE_OWNER and actor.role != ROLE_OWNER:
            raise PermissionDenied("Cannot modify owner details.")
        if target.role == ROLE_OWNER and status == "banned":
            raise PermissionDenied("Cannot ban the owner account.")
        _check_can_edit(actor, target, "You cannot modify this account.")

        email = _normalize_email(email)
        if email and _email_taken(users, email, exclude_id=target.id):
            raise Conflict("An account with this email already exists.")

        if display_name:
            target.display_name = display_name
        if email:
            target.email = email
        if status:
            target.status = status
        await repo.save_users(users)
        logger.info("User %s updated details of %s", actor.id, target.id)
        return target

    @staticmethod
    async def admin_create_user(
        repo: PortalRepository,
        actor: UserAccount,
        display_name: str,
        email: str,
        password: str,
        role: str = ROLE_USER,
    ) -> UserAccount:
        """Create an email account on someone's behalf with a fresh member ID."""
        custom_roles = await repo.get_custom_roles()
        authorize(actor, Permission.MANAGE_USERS, custom_roles, "You do not have permission to create users.")
        if role != ROLE_USER:
            check_role_assignment(actor, UserAccount(display_name=display_name), role, custom_roles)

        users = await repo.get_users()
        email = _normalize_email(email)
        if not display_name or not email or not password:
            raise ValidationFailed("Please fill in all fields.")
        _check_password(password)
        if _email_taken(users, email):
            raise Conflict("An account with this email already exists.")

        user = UserAccount(
            display_name=display_name,
            email=email,
            hashed_password=hash_password(password),
            auth_method="email",
            role=role,
            member_id=generate_member_id(u.member_id for u in users if u.member_id),
        )
        users.append(user)
        await repo.save_users(users)
        logger.info("User %s created account %s (%s)", actor.id, user.id, role)
        return user

    @staticmethod
    async def assign_member_id(repo: PortalRepository, actor: UserAccount, user_id: str) -> str:
        authorize(
            actor,
            Permission.MANAGE_USERS,
            await repo.get_custom_roles(),
            "You do not have permission to assign member IDs.",
        )
        users = await repo.get_users()
        target = _find(users, user_id)
        target.member_id = generate_member_id(u.member_id for u in users if u.member_id)
        await repo.save_users(users)
        logger.info("User %s assigned member ID %s to %s", actor.id, target.member_id, target.id)
        return target.member_id

"""Shared dependencies for all portal API routers.

The repository and session manager are built once in ``create_app`` and
hung on ``app.state``; routers reach them through these dependencies so
tests can substitute an in-memory store.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials

from portal.auth import security
from portal.exceptions import AuthenticationFailed
from portal.models.users import UserAccount
from portal.services.access_control import Permission, authorize
from portal.services.session_service import SessionManager
from portal.store import PortalRepository

logger = logging.getLogger(__name__)


def get_repository(request: Request) -> PortalRepository:
    return request.app.state.repository


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.sessions


async def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    return credentials.credentials if credentials is not None else None


async def get_optional_user(
    token: Optional[str] = Depends(get_bearer_token),
    sessions: SessionManager = Depends(get_session_manager),
) -> Optional[UserAccount]:
    """The signed-in user, or ``None`` for anonymous/invalid sessions."""
    return await sessions.get_session(token)


async def get_current_user(
    user: Optional[UserAccount] = Depends(get_optional_user),
) -> UserAccount:
    if user is None:
        raise AuthenticationFailed("Not authenticated")
    return user


def require_permission(permission: Permission):
    """Dependency factory: the current user, provided they hold ``permission``."""

    async def _dependency(
        user: UserAccount = Depends(get_current_user),
        repo: PortalRepository = Depends(get_repository),
    ) -> UserAccount:
        authorize(user, permission, await repo.get_custom_roles())
        return user

    return _dependency

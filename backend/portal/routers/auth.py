"""Sign-in endpoints: email/password, Discord/Google implicit OAuth, sessions."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from portal.deps import (
    get_bearer_token,
    get_current_user,
    get_repository,
    get_session_manager,
)
from portal.models.users import LoginRequest, OAuthCallbackRequest, RegisterRequest, UserAccount, user_profile
from portal.security import rate_limit_auth
from portal.services.access_control import permissions_for
from portal.services.oauth_service import OAuthService
from portal.services.session_service import SessionManager
from portal.services.user_service import UserService
from portal.store import PortalRepository

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


def _signed_in(user: UserAccount, sessions: SessionManager) -> dict:
    return {"success": True, "token": sessions.set_session(user), "user": user_profile(user)}


@router.post("/register", status_code=status.HTTP_201_CREATED)
@rate_limit_auth()
async def register(
    request: Request,
    body: RegisterRequest,
    repo: PortalRepository = Depends(get_repository),
    sessions: SessionManager = Depends(get_session_manager),
):
    user = await UserService.register_user(
        repo,
        email=body.email,
        password=body.password,
        display_name=body.display_name,
        auth_method="email",
    )
    return _signed_in(user, sessions)


@router.post("/login")
@rate_limit_auth()
async def login(
    request: Request,
    body: LoginRequest,
    repo: PortalRepository = Depends(get_repository),
    sessions: SessionManager = Depends(get_session_manager),
):
    user = await UserService.login_user(repo, body.email, body.password)
    return _signed_in(user, sessions)


@router.post("/logout")
async def logout(
    token: Optional[str] = Depends(get_bearer_token),
    sessions: SessionManager = Depends(get_session_manager),
):
    sessions.clear_session(token)
    return {"success": True}


@router.get("/me")
async def me(
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    """The signed-in user with their effective permissions."""
    permissions = permissions_for(user.role, await repo.get_custom_roles())
    return {"user": user_profile(user), "permissions": sorted(p.value for p in permissions)}


@router.get("/oauth/{provider}/authorize-url")
async def oauth_authorize_url(
    provider: str,
    request: Request,
    redirect_uri: Optional[str] = Query(None, description="Used when no redirect URI is configured"),
    repo: PortalRepository = Depends(get_repository),
):
    fallback = redirect_uri or request.headers.get("origin") or str(request.base_url)
    return {"url": await OAuthService.authorize_url(repo, provider, fallback)}


@router.post("/oauth/callback")
@rate_limit_auth()
async def oauth_callback(
    request: Request,
    body: OAuthCallbackRequest,
    repo: PortalRepository = Depends(get_repository),
    sessions: SessionManager = Depends(get_session_manager),
):
    user = await OAuthService.complete_oauth(repo, body.fragment)
    return _signed_in(user, sessions)

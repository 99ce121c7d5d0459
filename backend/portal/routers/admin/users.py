"""User management admin endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from portal.deps import get_current_user, get_repository
from portal.models.users import (
    CreateUserRequest,
    ResetPasswordRequest,
    RoleChangeRequest,
    UpdateUserRequest,
    UserAccount,
    UserListResponse,
    user_profile,
)
from portal.services.user_service import UserService
from portal.store import PortalRepository

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/users", response_model=UserListResponse)
async def list_users(
    search: Optional[str] = Query(None, description="Matches name, email, Discord name or member ID"),
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    users = await UserService.list_users(repo, user, search)
    return UserListResponse(users=[user_profile(u) for u in users], total=len(users))


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(
    body: CreateUserRequest,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    created = await UserService.admin_create_user(
        repo, user, body.display_name, body.email, body.password, body.role
    )
    return {"success": True, "user": user_profile(created)}


@router.patch("/users/{user_id}")
async def update_user(
    user_id: str,
    body: UpdateUserRequest,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    updated = await UserService.update_user_info(
        repo, user, user_id, body.display_name, body.email, body.status
    )
    return {"success": True, "user": user_profile(updated)}


@router.put("/users/{user_id}/role")
async def change_role(
    user_id: str,
    body: RoleChangeRequest,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    updated = await UserService.update_user_role(repo, user, user_id, body.role)
    return {"success": True, "user": user_profile(updated)}


@router.put("/users/{user_id}/password")
async def reset_password(
    user_id: str,
    body: ResetPasswordRequest,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    await UserService.update_user_password(repo, user, user_id, body.new_password)
    return {"success": True}


@router.post("/users/{user_id}/member-id")
async def assign_member_id(
    user_id: str,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    member_id = await UserService.assign_member_id(repo, user, user_id)
    return {"success": True, "member_id": member_id}


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    await UserService.delete_user(repo, user, user_id)
    return {"success": True}

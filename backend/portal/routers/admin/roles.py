"""Role catalog admin endpoints."""

import logging

from fastapi import APIRouter, Depends, status

from portal.deps import get_current_user, get_repository
from portal.models.roles import RoleCreate, RoleUpdate
from portal.models.users import UserAccount
from portal.services.role_service import RoleService
from portal.store import PortalRepository

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/roles")
async def list_roles(repo: PortalRepository = Depends(get_repository)):
    roles = await RoleService.list_roles(repo)
    return {"roles": [r.model_dump() for r in roles]}


@router.get("/roles/{role_id}")
async def get_role(role_id: str, repo: PortalRepository = Depends(get_repository)):
    return (await RoleService.get_role(repo, role_id)).model_dump()


@router.post("/roles", status_code=status.HTTP_201_CREATED)
async def create_role(
    body: RoleCreate,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    role = await RoleService.create_role(repo, user, body)
    return {"success": True, "role": role.model_dump()}


@router.patch("/roles/{role_id}")
async def update_role(
    role_id: str,
    body: RoleUpdate,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    role = await RoleService.update_role(repo, user, role_id, body)
    return {"success": True, "role": role.model_dump()}


@router.delete("/roles/{role_id}")
async def delete_role(
    role_id: str,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    reassigned = await RoleService.delete_role(repo, user, role_id)
    return {"success": True, "reassigned_users": reassigned}

"""Manual cloud sync endpoints."""

import logging

from fastapi import APIRouter, Depends

from portal.deps import get_current_user, get_repository
from portal.models.users import UserAccount
from portal.services.sync_service import SyncService
from portal.store import PortalRepository

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sync")


@router.post("/push")
async def push(
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    """Upload all portal data, replacing the cloud copy."""
    return {"success": True, "documents": await SyncService.push(repo, user)}


@router.post("/pull")
async def pull(
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    """Replace local portal data with the cloud copy."""
    return {"success": True, "documents": await SyncService.pull(repo, user)}

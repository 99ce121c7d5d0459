"""Application review and chat moderation endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from portal.deps import get_current_user, get_repository
from portal.models.applications import (
    AdminMessageRequest,
    ApplicationStatus,
    BulkDeleteRequest,
    NoteRequest,
    StatusChangeRequest,
)
from portal.models.chat import ChatStatusRequest
from portal.models.users import UserAccount
from portal.services.application_service import ApplicationService
from portal.services.chat_service import ChatService
from portal.store import PortalRepository

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/applications")
async def list_applications(
    status: Optional[ApplicationStatus] = Query(None),
    search: Optional[str] = Query(None, description="Matches username, form name or answers"),
    form_id: Optional[str] = Query(None),
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    applications = await ApplicationService.list_applications(repo, user, status, search, form_id)
    return {"applications": [a.model_dump(mode="json") for a in applications], "total": len(applications)}


@router.get("/applications/stats")
async def application_stats(
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    return (await ApplicationService.get_stats(repo, user)).model_dump()


@router.post("/applications/bulk-delete")
async def bulk_delete_applications(
    body: BulkDeleteRequest,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    deleted = await ApplicationService.bulk_delete(repo, user, body.ids)
    return {"success": True, "deleted": deleted}


@router.get("/applications/{app_id}")
async def get_application(
    app_id: str,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    return (await ApplicationService.get_application(repo, user, app_id)).model_dump(mode="json")


@router.patch("/applications/{app_id}/status")
async def change_status(
    app_id: str,
    body: StatusChangeRequest,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    entry = await ApplicationService.update_status(repo, user, app_id, body.status)
    return {"success": True, "application": entry.model_dump(mode="json")}


@router.put("/applications/{app_id}/notes")
async def set_notes(
    app_id: str,
    body: NoteRequest,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    entry = await ApplicationService.add_note(repo, user, app_id, body.notes)
    return {"success": True, "application": entry.model_dump(mode="json")}


@router.put("/applications/{app_id}/message")
async def set_admin_message(
    app_id: str,
    body: AdminMessageRequest,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    entry = await ApplicationService.set_admin_message(repo, user, app_id, body.message)
    return {"success": True, "application": entry.model_dump(mode="json")}


@router.delete("/applications/{app_id}")
async def delete_application(
    app_id: str,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    await ApplicationService.delete_application(repo, user, app_id)
    return {"success": True}


# ---------------------------------------------------------------------------
# Chat moderation
# ---------------------------------------------------------------------------


@router.patch("/applications/{app_id}/chat/status")
async def set_chat_status(
    app_id: str,
    body: ChatStatusRequest,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    chat = await ChatService.set_chat_status(repo, user, app_id, body.status)
    return {"success": True, "chat": chat.model_dump(mode="json")}


@router.delete("/applications/{app_id}/chat")
async def delete_chat(
    app_id: str,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    await ChatService.delete_chat(repo, user, app_id)
    return {"success": True}

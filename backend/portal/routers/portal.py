"""Applicant endpoints: submit applications, view them, and chat with staff."""

import logging

from fastapi import APIRouter, Depends, status

from portal.deps import get_current_user, get_repository
from portal.models.applications import ApplicationSubmit
from portal.models.chat import ChatMessageRequest
from portal.models.users import UserAccount
from portal.services.application_service import ApplicationService
from portal.services.chat_service import ChatService
from portal.store import PortalRepository

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/applications", tags=["applications"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_application(
    body: ApplicationSubmit,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    entry = await ApplicationService.submit_application(repo, user, body.form_id, body.responses)
    return {"success": True, "application": entry.model_dump(mode="json")}


@router.get("/mine")
async def my_applications(
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    applications = await ApplicationService.get_user_applications(repo, user)
    return {"applications": [a.model_dump(mode="json") for a in applications]}


@router.get("/{app_id}/chat")
async def get_chat(
    app_id: str,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    chat = await ChatService.get_chat(repo, user, app_id)
    return {"chat": chat.model_dump(mode="json") if chat else None}


@router.post("/{app_id}/chat", status_code=status.HTTP_201_CREATED)
async def post_chat_message(
    app_id: str,
    body: ChatMessageRequest,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    chat = await ChatService.send_message(repo, user, app_id, body.text)
    return {"success": True, "chat": chat.model_dump(mode="json")}

"""Per-application chat threads between applicants and staff."""

import logging
from typing import Optional

from portal.exceptions import NotFound, PermissionDenied, ValidationFailed
from portal.models.chat import ApplicationChat, ChatMessage, ChatStatus
from portal.models.users import UserAccount
from portal.services.access_control import Permission, authorize, is_staff
from portal.store import PortalRepository

logger = logging.getLogger(__name__)


async def _check_participant(repo: PortalRepository, user: UserAccount, app_id: str) -> bool:
    """Raise unless ``user`` submitted the application or is staff.

    Returns whether ``user`` is staff.
    """
    staff = is_staff(user, await repo.get_custom_roles())
    entry = next((a for a in await repo.get_applications() if a.id == app_id), None)
    if entry is None or (entry.user_id != user.id and not staff):
        raise NotFound("Application not found.")
    return staff


class ChatService:
    @staticmethod
    async def get_chat(repo: PortalRepository, viewer: UserAccount, app_id: str) -> Optional[ApplicationChat]:
        await _check_participant(repo, viewer, app_id)
        return next((c for c in await repo.get_chats() if c.app_id == app_id), None)

    @staticmethod
    async def send_message(repo: PortalRepository, sender: UserAccount, app_id: str, text: str) -> ApplicationChat:
        """Append a message, creating the thread on first use."""
        staff = await _check_participant(repo, sender, app_id)
        text = (text or "").strip()
        if not text:
            raise ValidationFailed("Message cannot be empty.")

        message = ChatMessage(
            sender_id=sender.id,
            sender_name=sender.display_name,
            sender_role=sender.role,
            text=text,
        )
        chats = await repo.get_chats()
        chat = next((c for c in chats if c.app_id == app_id), None)
        if chat is None:
            chat = ApplicationChat(app_id=app_id, messages=[message], initiated_by_staff=staff)
            chats.append(chat)
        else:
            if chat.status == "closed" and not staff:
                raise PermissionDenied("This conversation has been closed.")
            chat.messages.append(message)
            if staff and not chat.initiated_by_staff:
                chat.initiated_by_staff = True

        await repo.save_chats(chats)
        logger.info("User %s posted to chat %s", sender.id, app_id)
        return chat

    @staticmethod
    async def set_chat_status(
        repo: PortalRepository, actor: UserAccount, app_id: str, status: ChatStatus
    ) -> ApplicationChat:
        authorize(actor, Permission.ACCESS_ADMIN, await repo.get_custom_roles())
        chats = await repo.get_chats()
        chat = next((c for c in chats if c.app_id == app_id), None)
        if chat is None:
            raise NotFound("Chat not found.")
        chat.status = status
        await repo.save_chats(chats)
        logger.info("User %s set chat %s to %s", actor.id, app_id, status)
        return chat

    @staticmethod
    async def delete_chat(repo: PortalRepository, actor: UserAccount, app_id: str) -> None:
        authorize(actor, Permission.ACCESS_ADMIN, await repo.get_custom_roles())
        chats = await repo.get_chats()
        remaining = [c for c in chats if c.app_id != app_id]
        if len(remaining) == len(chats):
            raise NotFound("Chat not found.")
        await repo.save_chats(remaining)
        logger.info("User %s deleted chat %s", actor.id, app_id)

"""Pydantic schemas for per-application chat threads."""

import uuid
from datetime import datetime, timezone
from typing import List, Literal

from pydantic import BaseModel, Field

ChatStatus = Literal["open", "closed"]


class ChatMessage(BaseModel):
    """An append-only message; never edited after it is stored."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    sender_id: str
    sender_name: str
    sender_role: str
    text: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ApplicationChat(BaseModel):
    app_id: str
    status: ChatStatus = "open"
    messages: List[ChatMessage] = Field(default_factory=list)
    initiated_by_staff: bool = False


class ChatMessageRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=4000)


class ChatStatusRequest(BaseModel):
    status: ChatStatus

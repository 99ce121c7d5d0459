"""Pydantic schemas for submitted applications."""

import uuid
from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

ApplicationStatus = Literal["pending", "under_review", "approved", "rejected"]

# Statuses that count toward the per-user application limit
ACTIVE_STATUSES = ("pending", "under_review")


class ApplicationEntry(BaseModel):
    """A single submission against a form.

    ``form_id`` and ``form_name`` are captured at submission time and are
    allowed to dangle once the form is deleted.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    form_id: str
    form_name: str
    username: str
    user_role: str = "user"
    responses: Dict[str, str] = Field(default_factory=dict)
    # Summary fields kept for the older back-office list view
    age: str = ""
    timezone: str = ""
    why: str = ""
    experience: str = ""
    status: ApplicationStatus = "pending"
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    reviewed_at: Optional[datetime] = None
    notes: Optional[str] = None
    admin_message: Optional[str] = None


class ApplicationSubmit(BaseModel):
    form_id: str
    responses: Dict[str, str] = Field(default_factory=dict)


class StatusChangeRequest(BaseModel):
    status: ApplicationStatus


class NoteRequest(BaseModel):
    notes: str = Field("", max_length=10000)


class AdminMessageRequest(BaseModel):
    message: str = Field("", max_length=10000)


class BulkDeleteRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)


class ApplicationStats(BaseModel):
    total: int = 0
    pending: int = 0
    under_review: int = 0
    approved: int = 0
    rejected: int = 0

"""Pydantic schemas for portal user accounts."""

import uuid
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

AuthMethod = Literal["email", "discord", "google"]
UserStatus = Literal["active", "banned"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserAccount(BaseModel):
    """A registered identity as persisted in the ``users`` document."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    display_name: str
    auth_method: AuthMethod = "email"
    role: str = "user"
    status: UserStatus = "active"
    email: Optional[str] = None
    hashed_password: Optional[str] = None
    discord_id: Optional[str] = None
    discord_username: Optional[str] = None
    discord_avatar: Optional[str] = None
    google_id: Optional[str] = None
    member_id: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_banned(self) -> bool:
        return self.status == "banned"


def user_profile(user: UserAccount) -> dict:
    """Return a JSON-safe user dict without the password hash."""
    return user.model_dump(mode="json", exclude={"hashed_password"})


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str
    display_name: str = ""


class LoginRequest(BaseModel):
    email: str
    password: str


class OAuthCallbackRequest(BaseModel):
    """The URL fragment the provider redirected back with."""

    fragment: str = Field(..., min_length=1, max_length=4096)


class CreateUserRequest(BaseModel):
    display_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str
    role: str = "user"


class UpdateUserRequest(BaseModel):
    display_name: Optional[str] = None
    email: Optional[str] = None
    status: Optional[UserStatus] = None


class RoleChangeRequest(BaseModel):
    role: str


class ResetPasswordRequest(BaseModel):
    new_password: str


class UserListResponse(BaseModel):
    users: List[dict]
    total: int

"""Pydantic schemas for the dynamic application form builder."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

FieldType = Literal["text", "textarea", "number", "select"]
FormStatus = Literal["open", "closed", "coming_soon", "ending_soon"]

# The one form that can never be deleted so a default submission path exists
PROTECTED_FORM_ID = "member-app"
BAN_APPEAL_FORM_ID = "ban-appeal"


class AppField(BaseModel):
    """One question within a form."""

    id: str
    label: str
    type: FieldType = "text"
    placeholder: str = ""
    required: bool = False
    enabled: bool = True
    options: Optional[List[str]] = None


class ApplicationSchedule(BaseModel):
    """Open/close trigger times.  Naive datetimes are read in ``timezone``."""

    open_date: Optional[datetime] = None
    close_date: Optional[datetime] = None
    timezone: str = "UTC"

    @field_validator("open_date", "close_date", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if value == "":
            return None
        return value


class AppForm(BaseModel):
    """A submission template with its ordered field list."""

    id: str
    name: str
    description: str = ""
    enabled: bool = True
    status: FormStatus = "open"
    schedule: ApplicationSchedule = Field(default_factory=ApplicationSchedule)
    fields: List[AppField] = Field(default_factory=list)

    def enabled_fields(self) -> List[AppField]:
        return [f for f in self.fields if f.enabled]

    def find_field(self, field_id: str) -> Optional[AppField]:
        return next((f for f in self.fields if f.id == field_id), None)


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class FormCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=2000)


class FormUpdate(BaseModel):
    """All fields optional; only provided fields are applied."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    enabled: Optional[bool] = None
    status: Optional[FormStatus] = None
    schedule: Optional[ApplicationSchedule] = None


class FieldCreate(BaseModel):
    label: str = Field(..., min_length=1, max_length=200)
    type: FieldType = "text"
    placeholder: str = ""
    required: bool = False
    options: Optional[List[str]] = None


class FieldUpdate(BaseModel):
    label: Optional[str] = Field(None, min_length=1, max_length=200)
    type: Optional[FieldType] = None
    placeholder: Optional[str] = None
    required: Optional[bool] = None
    enabled: Optional[bool] = None
    options: Optional[List[str]] = None


class FieldMoveRequest(BaseModel):
    direction: Literal["up", "down"]


class FieldEnabledRequest(BaseModel):
    enabled: bool


class ApplicationStatusUpdate(BaseModel):
    """Site-wide legacy application status and schedule."""

    status: FormStatus
    schedule: Optional[ApplicationSchedule] = None


# ---------------------------------------------------------------------------
# Built-in forms
# ---------------------------------------------------------------------------

_TIMEZONE_OPTIONS = [
    "UTC-12:00 to UTC-08:00 (Pacific)",
    "UTC-07:00 to UTC-05:00 (Americas)",
    "UTC-04:00 to UTC-01:00 (Atlantic)",
    "UTC+00:00 to UTC+03:00 (Europe/Africa)",
    "UTC+04:00 to UTC+06:00 (Central Asia)",
    "UTC+07:00 to UTC+09:00 (East Asia)",
    "UTC+10:00 to UTC+12:00 (Oceania)",
]


def default_app_forms() -> List[AppForm]:
    """Fresh copies of the three built-in forms."""
    return [
        AppForm(
            id=PROTECTED_FORM_ID,
            name="Member Application",
            description="Apply to become a whitelisted member of our private SMP community.",
            fields=[
                AppField(id="username", label="Minecraft Username", placeholder="e.g. Steve", required=True),
                AppField(id="discord", label="Discord Username", placeholder="e.g. username#1234", required=True),
                AppField(id="age", label="Age", type="number", placeholder="e.g. 18", required=True),
                AppField(id="timezone", label="Time Zone", type="select", required=True, options=list(_TIMEZONE_OPTIONS)),
                AppField(
                    id="why",
                    label="Why do you want to join?",
                    type="textarea",
                    placeholder="Tell us what excites you about Dismine SMP...",
                    required=True,
                ),
                AppField(
                    id="experience",
                    label="SMP Experience",
                    type="textarea",
                    placeholder="Describe your experience with Minecraft SMPs...",
                    required=True,
                ),
            ],
        ),
        AppForm(
            id="staff-app",
            name="Staff Application",
            description="Interested in helping manage and protect our community? Apply for a staff position.",
            fields=[
                AppField(id="username", label="Minecraft Username", placeholder="Your in-game name", required=True),
                AppField(id="age", label="Age", type="number", placeholder="Minimum age 16+", required=True),
                AppField(
                    id="staff-experience",
                    label="Previous Moderation Experience",
                    type="textarea",
                    placeholder="List any previous servers you have moderated",
                    required=True,
                ),
                AppField(
                    id="availability",
                    label="Average Hours Per Week",
                    type="number",
                    placeholder="How much time can you dedicate?",
                    required=True,
                ),
                AppField(
                    id="commands",
                    label="Knowledge of Staff Commands",
                    type="textarea",
                    placeholder="Briefly describe your knowledge of CoreProtect, Essentials, etc.",
                    required=True,
                ),
            ],
        ),
        AppForm(
            id=BAN_APPEAL_FORM_ID,
            name="Ban Appeal",
            description="Have you been banned? Submit an appeal here to have your case reviewed by our staff.",
            fields=[
                AppField(id="username", label="Minecraft Username", placeholder="Your in-game name", required=True),
                AppField(
                    id="ban-reason",
                    label="Reason for Ban",
                    type="textarea",
                    placeholder="What were you banned for?",
                    required=True,
                ),
                AppField(
                    id="appeal-reason",
                    label="Why should you be unbanned?",
                    type="textarea",
                    placeholder="Explain why we should reconsider your ban",
                    required=True,
                ),
                AppField(
                    id="learned",
                    label="What have you learned?",
                    type="textarea",
                    placeholder="Tell us why you won't break the rules again",
                    required=True,
                ),
            ],
        ),
    ]

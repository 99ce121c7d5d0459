"""Pydantic schemas for the ``settings`` document and its singletons."""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from portal.models.forms import AppForm, ApplicationSchedule, FormStatus, default_app_forms
from portal.models.roles import Role

DEFAULT_MAINTENANCE_MESSAGE = "System is currently undergoing maintenance. Please check back later."
DEFAULT_MAX_APPLICATIONS_PER_USER = 3
DEFAULT_SYNC_TABLE = "site_sync"


class SocialLink(BaseModel):
    id: str
    name: str
    url: str
    enabled: bool = True
    icon: str = ""
    description: str = ""
    color: str = "neutral"


class ServerInfo(BaseModel):
    gamemode: str = "Survival SMP"
    version: str = "Java 1.21+"
    access: str = "Whitelisted / Private"
    server_type: str = "Semi-Vanilla"
    rules: List[str] = Field(
        default_factory=lambda: [
            "No griefing, stealing, or destroying builds",
            "No cheating, exploiting, or unfair advantages",
            "Respect all members — toxicity is not tolerated",
            "No hate speech, discrimination, or harassment",
            "Keep the environment and shared spaces clean",
            "Active communication in Discord is expected",
        ]
    )


class SeasonInfo(BaseModel):
    number: int = 1
    name: str = "New Beginnings"
    start_date: str = Field(default_factory=lambda: date.today().isoformat())
    description: str = (
        "The first season of Dismine SMP — a fresh world full of possibilities. "
        "Build, explore, and create lasting memories with the community."
    )
    is_active: bool = True
    theme: str = "emerald"
    banner_image: str = ""
    banner_overlay: int = Field(60, ge=0, le=100)
    hero_badge_text: str = ""


class OAuthProviderConfig(BaseModel):
    """Client registration for an implicit-flow OAuth provider."""

    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = ""
    is_enabled: bool = False

    @property
    def is_usable(self) -> bool:
        return self.is_enabled and bool(self.client_id)


class DiscordConfig(OAuthProviderConfig):
    pass


class GoogleConfig(OAuthProviderConfig):
    pass


class SupabaseConfig(BaseModel):
    url: str = ""
    key: str = ""
    table: str = DEFAULT_SYNC_TABLE
    is_enabled: bool = False

    @property
    def is_usable(self) -> bool:
        return self.is_enabled and bool(self.url) and bool(self.key)


def default_social_links() -> List[SocialLink]:
    return [
        SocialLink(
            id="discord",
            name="Discord",
            url="https://discord.gg/dismine",
            icon="discord",
            description="Join our primary community hub",
            color="indigo",
        ),
        SocialLink(
            id="youtube",
            name="YouTube",
            url="https://youtube.com/@dismine",
            icon="youtube",
            description="Watch highlights & content",
            color="red",
        ),
        SocialLink(
            id="instagram",
            name="Instagram",
            url="https://instagram.com/dismine",
            icon="instagram",
            description="Behind the scenes photos",
            color="pink",
        ),
        SocialLink(
            id="tiktok",
            name="TikTok",
            url="https://tiktok.com/@dismine",
            icon="tiktok",
            description="Short-form clips",
            color="neutral",
        ),
    ]


class SiteSettings(BaseModel):
    """The whole ``settings`` document.

    Every attribute has a default, so a partial stored document validates
    into a complete settings object.
    """

    social_links: List[SocialLink] = Field(default_factory=default_social_links)
    server_info: ServerInfo = Field(default_factory=ServerInfo)
    season_info: SeasonInfo = Field(default_factory=SeasonInfo)
    discord_config: DiscordConfig = Field(default_factory=DiscordConfig)
    google_config: GoogleConfig = Field(default_factory=GoogleConfig)
    supabase_config: SupabaseConfig = Field(default_factory=SupabaseConfig)
    registration_enabled: bool = True
    login_enabled: bool = True
    maintenance_message: str = DEFAULT_MAINTENANCE_MESSAGE
    max_applications_per_user: int = Field(DEFAULT_MAX_APPLICATIONS_PER_USER, ge=0)
    app_forms: List[AppForm] = Field(default_factory=default_app_forms)
    custom_roles: List[Role] = Field(default_factory=list)
    # Site-wide status predating per-form scheduling
    application_status: Optional[FormStatus] = None
    application_schedule: ApplicationSchedule = Field(default_factory=ApplicationSchedule)
    applications_open: bool = True


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class SocialLinkCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    url: str = Field(..., min_length=1)
    enabled: bool = True
    icon: str = ""
    description: str = ""
    color: str = "neutral"


class SocialLinkUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    url: Optional[str] = None
    enabled: Optional[bool] = None
    icon: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None


class RuleRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=500)


class AccessSettingsUpdate(BaseModel):
    """Registration/login toggles and related limits."""

    registration_enabled: Optional[bool] = None
    login_enabled: Optional[bool] = None
    maintenance_message: Optional[str] = None
    max_applications_per_user: Optional[int] = Field(None, ge=0)

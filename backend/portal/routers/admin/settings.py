"""Site settings admin endpoints: content, access toggles and integrations."""

import logging

from fastapi import APIRouter, Depends, status

from portal.deps import get_current_user, get_repository
from portal.models.site import (
    AccessSettingsUpdate,
    DiscordConfig,
    GoogleConfig,
    RuleRequest,
    SeasonInfo,
    ServerInfo,
    SiteSettings,
    SocialLinkCreate,
    SocialLinkUpdate,
    SupabaseConfig,
)
from portal.models.users import UserAccount
from portal.services.settings_service import SettingsService
from portal.store import PortalRepository

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/settings")


@router.get("")
async def get_settings(
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    """The full settings document, secrets included."""
    return (await SettingsService.get_admin_settings(repo, user)).model_dump(mode="json")


@router.put("")
async def replace_settings(
    body: SiteSettings,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    saved = await SettingsService.update_settings(repo, user, body)
    return {"success": True, "settings": saved.model_dump(mode="json")}


@router.patch("/access")
async def update_access(
    body: AccessSettingsUpdate,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    settings = await SettingsService.update_access(repo, user, body)
    return {
        "success": True,
        "registration_enabled": settings.registration_enabled,
        "login_enabled": settings.login_enabled,
        "maintenance_message": settings.maintenance_message,
        "max_applications_per_user": settings.max_applications_per_user,
    }


# ---------------------------------------------------------------------------
# Social links
# ---------------------------------------------------------------------------


@router.post("/socials", status_code=status.HTTP_201_CREATED)
async def add_social_link(
    body: SocialLinkCreate,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    link = await SettingsService.add_social_link(repo, user, body)
    return {"success": True, "link": link.model_dump()}


@router.patch("/socials/{link_id}")
async def update_social_link(
    link_id: str,
    body: SocialLinkUpdate,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    link = await SettingsService.update_social_link(repo, user, link_id, body)
    return {"success": True, "link": link.model_dump()}


@router.delete("/socials/{link_id}")
async def delete_social_link(
    link_id: str,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    await SettingsService.delete_social_link(repo, user, link_id)
    return {"success": True}


# ---------------------------------------------------------------------------
# Server info, rules and season
# ---------------------------------------------------------------------------


@router.put("/server")
async def update_server_info(
    body: ServerInfo,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    info = await SettingsService.update_server_info(repo, user, body)
    return {"success": True, "server_info": info.model_dump()}


@router.post("/server/rules", status_code=status.HTTP_201_CREATED)
async def add_rule(
    body: RuleRequest,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    return {"success": True, "rules": await SettingsService.add_rule(repo, user, body.text)}


@router.put("/server/rules/{index}")
async def update_rule(
    index: int,
    body: RuleRequest,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    return {"success": True, "rules": await SettingsService.update_rule(repo, user, index, body.text)}


@router.delete("/server/rules/{index}")
async def delete_rule(
    index: int,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    return {"success": True, "rules": await SettingsService.delete_rule(repo, user, index)}


@router.put("/season")
async def update_season_info(
    body: SeasonInfo,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    info = await SettingsService.update_season_info(repo, user, body)
    return {"success": True, "season_info": info.model_dump()}


# ---------------------------------------------------------------------------
# Integrations
# ---------------------------------------------------------------------------


@router.put("/discord")
async def save_discord_config(
    body: DiscordConfig,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    config = await SettingsService.save_discord_config(repo, user, body)
    return {"success": True, "discord_config": config.model_dump()}


@router.put("/google")
async def save_google_config(
    body: GoogleConfig,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    config = await SettingsService.save_google_config(repo, user, body)
    return {"success": True, "google_config": config.model_dump()}


@router.put("/supabase")
async def save_supabase_config(
    body: SupabaseConfig,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    config = await SettingsService.save_supabase_config(repo, user, body)
    return {"success": True, "supabase_config": config.model_dump()}

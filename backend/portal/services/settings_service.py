"""Site settings: public content, access toggles and integration configs."""

import logging
import secrets
import string
from typing import Any, Dict, List

from portal.exceptions import NotFound, ValidationFailed
from portal.helpers.ids import is_meaningful_slug, slugify
from portal.models.forms import PROTECTED_FORM_ID
from portal.models.site import (
    AccessSettingsUpdate,
    DiscordConfig,
    GoogleConfig,
    SeasonInfo,
    ServerInfo,
    SiteSettings,
    SocialLink,
    SocialLinkCreate,
    SocialLinkUpdate,
    SupabaseConfig,
)
from portal.models.users import UserAccount
from portal.services.access_control import Permission, authorize
from portal.services.form_service import FormService
from portal.store import PortalRepository

logger = logging.getLogger(__name__)

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def _link_id(name: str) -> str:
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(4))
    return f"{slugify(name)}-{suffix}"


async def _settings_for(repo: PortalRepository, actor: UserAccount, permission: Permission) -> SiteSettings:
    settings = await repo.get_settings()
    authorize(actor, permission, settings.custom_roles, "You do not have permission to change these settings.")
    return settings


def _rule_index(info: ServerInfo, index: int) -> int:
    if not 0 <= index < len(info.rules):
        raise NotFound("Rule not found.")
    return index


class SettingsService:
    """Service layer for the ``settings`` document."""

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @staticmethod
    async def public_settings(repo: PortalRepository) -> Dict[str, Any]:
        """Everything the public site needs.  Never includes secrets."""
        settings = await repo.get_settings()
        return {
            "social_links": [
                link.model_dump(mode="json") for link in settings.social_links if link.enabled
            ],
            "server_info": settings.server_info.model_dump(mode="json"),
            "season_info": settings.season_info.model_dump(mode="json"),
            "registration_enabled": settings.registration_enabled,
            "login_enabled": settings.login_enabled,
            "maintenance_message": settings.maintenance_message,
            "max_applications_per_user": settings.max_applications_per_user,
            "application_status": await FormService.get_application_status(repo),
            "oauth": {
                "discord": settings.discord_config.is_usable,
                "google": settings.google_config.is_usable,
            },
        }

    @staticmethod
    async def get_admin_settings(repo: PortalRepository, actor: UserAccount) -> SiteSettings:
        return await _settings_for(repo, actor, Permission.MANAGE_SETTINGS)

    @staticmethod
    async def update_settings(repo: PortalRepository, actor: UserAccount, new_settings: SiteSettings) -> SiteSettings:
        """Overwrite the whole settings document."""
        await _settings_for(repo, actor, Permission.MANAGE_SETTINGS)
        if not any(f.id == PROTECTED_FORM_ID for f in new_settings.app_forms):
            raise ValidationFailed("Cannot delete default form.")
        await repo.save_settings(new_settings)
        logger.info("User %s replaced site settings", actor.id)
        return new_settings

    @staticmethod
    async def update_access(repo: PortalRepository, actor: UserAccount, data: AccessSettingsUpdate) -> SiteSettings:
        settings = await _settings_for(repo, actor, Permission.MANAGE_SETTINGS)
        for key, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(settings, key, value)
        await repo.save_settings(settings)
        logger.info(
            "User %s set registration=%s login=%s",
            actor.id,
            settings.registration_enabled,
            settings.login_enabled,
        )
        return settings

    # ------------------------------------------------------------------
    # Social links
    # ------------------------------------------------------------------

    @staticmethod
    async def add_social_link(repo: PortalRepository, actor: UserAccount, data: SocialLinkCreate) -> SocialLink:
        settings = await _settings_for(repo, actor, Permission.MANAGE_SERVER)
        if not is_meaningful_slug(slugify(data.name)):
            raise ValidationFailed("Link name must contain letters or digits.")
        link = SocialLink(id=_link_id(data.name), **data.model_dump())
        settings.social_links.append(link)
        await repo.save_settings(settings)
        logger.info("User %s added social link %s", actor.id, link.id)
        return link

    @staticmethod
    async def update_social_link(
        repo: PortalRepository, actor: UserAccount, link_id: str, data: SocialLinkUpdate
    ) -> SocialLink:
        settings = await _settings_for(repo, actor, Permission.MANAGE_SERVER)
        link = next((link for link in settings.social_links if link.id == link_id), None)
        if link is None:
            raise NotFound("Social link not found.")
        for key, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(link, key, value)
        await repo.save_settings(settings)
        return link

    @staticmethod
    async def delete_social_link(repo: PortalRepository, actor: UserAccount, link_id: str) -> None:
        settings = await _settings_for(repo, actor, Permission.MANAGE_SERVER)
        remaining = [link for link in settings.social_links if link.id != link_id]
        if len(remaining) == len(settings.social_links):
            raise NotFound("Social link not found.")
        settings.social_links = remaining
        await repo.save_settings(settings)
        logger.info("User %s deleted social link %s", actor.id, link_id)

    # ------------------------------------------------------------------
    # Server info and rules
    # ------------------------------------------------------------------

    @staticmethod
    async def update_server_info(repo: PortalRepository, actor: UserAccount, info: ServerInfo) -> ServerInfo:
        settings = await _settings_for(repo, actor, Permission.MANAGE_SERVER)
        settings.server_info = info
        await repo.save_settings(settings)
        logger.info("User %s updated server info", actor.id)
        return info

    @staticmethod
    async def add_rule(repo: PortalRepository, actor: UserAccount, text: str) -> List[str]:
        settings = await _settings_for(repo, actor, Permission.MANAGE_SERVER)
        settings.server_info.rules.append(text.strip())
        await repo.save_settings(settings)
        return settings.server_info.rules

    @staticmethod
    async def update_rule(repo: PortalRepository, actor: UserAccount, index: int, text: str) -> List[str]:
        settings = await _settings_for(repo, actor, Permission.MANAGE_SERVER)
        settings.server_info.rules[_rule_index(settings.server_info, index)] = text.strip()
        await repo.save_settings(settings)
        return settings.server_info.rules

    @staticmethod
    async def delete_rule(repo: PortalRepository, actor: UserAccount, index: int) -> List[str]:
        settings = await _settings_for(repo, actor, Permission.MANAGE_SERVER)
        del settings.server_info.rules[_rule_index(settings.server_info, index)]
        await repo.save_settings(settings)
        return settings.server_info.rules

    # ------------------------------------------------------------------
    # Season
    # ------------------------------------------------------------------

    @staticmethod
    async def update_season_info(repo: PortalRepository, actor: UserAccount, info: SeasonInfo) -> SeasonInfo:
        settings = await _settings_for(repo, actor, Permission.MANAGE_SERVER)
        settings.season_info = info
        await repo.save_settings(settings)
        logger.info("User %s updated season info (season %d)", actor.id, info.number)
        return info

    # ------------------------------------------------------------------
    # Integrations
    # ------------------------------------------------------------------

    @staticmethod
    async def save_discord_config(repo: PortalRepository, actor: UserAccount, config: DiscordConfig) -> DiscordConfig:
        settings = await _settings_for(repo, actor, Permission.MANAGE_SETTINGS)
        settings.discord_config = config
        await repo.save_settings(settings)
        logger.info("User %s saved Discord config (enabled=%s)", actor.id, config.is_enabled)
        return config

    @staticmethod
    async def save_google_config(repo: PortalRepository, actor: UserAccount, config: GoogleConfig) -> GoogleConfig:
        settings = await _settings_for(repo, actor, Permission.MANAGE_SETTINGS)
        settings.google_config = config
        await repo.save_settings(settings)
        logger.info("User %s saved Google config (enabled=%s)", actor.id, config.is_enabled)
        return config

    @staticmethod
    async def save_supabase_config(
        repo: PortalRepository, actor: UserAccount, config: SupabaseConfig
    ) -> SupabaseConfig:
        settings = await _settings_for(repo, actor, Permission.MANAGE_SETTINGS)
        settings.supabase_config = config
        await repo.save_settings(settings)
        logger.info("User %s saved Supabase config (enabled=%s)", actor.id, config.is_enabled)
        return config

"""
Unit Tests for site settings: public view, access toggles, social links,
server rules, season info and integration configs.

Usage:
    cd backend && pytest tests/test_settings_service.py -v
"""

import pytest

from conftest import run
from portal.exceptions import NotFound, PermissionDenied, ValidationFailed
from portal.models.forms import AppForm
from portal.models.site import (
    AccessSettingsUpdate,
    DiscordConfig,
    SeasonInfo,
    ServerInfo,
    SiteSettings,
    SocialLinkCreate,
    SocialLinkUpdate,
    SupabaseConfig,
)
from portal.services.settings_service import SettingsService


class TestPublicSettings:
    """The anonymous view never leaks secrets."""

    def test_no_secrets(self, repo, admin):
        run(
            SettingsService.save_discord_config(
                repo, admin, DiscordConfig(client_id="cid", client_secret="shh", is_enabled=True)
            )
        )
        run(SettingsService.save_supabase_config(repo, admin, SupabaseConfig(url="https://x", key="k", is_enabled=True)))
        public = run(SettingsService.public_settings(repo))
        assert public["oauth"] == {"discord": True, "google": False}
        assert "shh" not in repr(public)
        assert "supabase_config" not in public

    def test_disabled_links_hidden(self, repo, admin):
        link = run(SettingsService.add_social_link(repo, admin, SocialLinkCreate(name="Shop", url="https://shop")))
        run(SettingsService.update_social_link(repo, admin, link.id, SocialLinkUpdate(enabled=False)))
        public = run(SettingsService.public_settings(repo))
        assert link.id not in [item["id"] for item in public["social_links"]]

    def test_application_status_reported(self, repo):
        assert run(SettingsService.public_settings(repo))["application_status"] == "open"


class TestAdminSettings:
    """Permission checks and whole-document updates."""

    def test_manager_cannot_read_admin_settings(self, repo, manager):
        with pytest.raises(PermissionDenied):
            run(SettingsService.get_admin_settings(repo, manager))

    def test_replace_requires_member_app(self, repo, admin):
        bad = SiteSettings(app_forms=[AppForm(id="other", name="Other")])
        with pytest.raises(ValidationFailed):
            run(SettingsService.update_settings(repo, admin, bad))

    def test_replace(self, repo, admin):
        new = SiteSettings(maintenance_message="Closed for winter")
        run(SettingsService.update_settings(repo, admin, new))
        assert run(repo.get_settings()).maintenance_message == "Closed for winter"

    def test_update_access_partial(self, repo, admin):
        settings = run(
            SettingsService.update_access(repo, admin, AccessSettingsUpdate(login_enabled=False, max_applications_per_user=5))
        )
        assert settings.login_enabled is False
        assert settings.registration_enabled is True
        assert settings.max_applications_per_user == 5


class TestServerContent:
    """Social links, rules and season info."""

    def test_link_id_is_slug_plus_suffix(self, repo, admin):
        link = run(SettingsService.add_social_link(repo, admin, SocialLinkCreate(name="Our Shop", url="https://shop")))
        assert link.id.startswith("our-shop-")
        assert len(link.id) == len("our-shop-") + 4

    def test_delete_missing_link(self, repo, admin):
        with pytest.raises(NotFound):
            run(SettingsService.delete_social_link(repo, admin, "nope"))

    def test_rules_by_index(self, repo, admin):
        run(SettingsService.update_server_info(repo, admin, ServerInfo(rules=["Be nice"])))
        assert run(SettingsService.add_rule(repo, admin, " No lava ")) == ["Be nice", "No lava"]
        assert run(SettingsService.update_rule(repo, admin, 0, "Be kind")) == ["Be kind", "No lava"]
        assert run(SettingsService.delete_rule(repo, admin, 1)) == ["Be kind"]
        with pytest.raises(NotFound):
            run(SettingsService.delete_rule(repo, admin, 5))

    def test_season(self, repo, admin):
        run(SettingsService.update_season_info(repo, admin, SeasonInfo(number=2, name="Frostfall")))
        assert run(repo.get_settings()).season_info.name == "Frostfall"

    def test_banner_overlay_bounds(self):
        with pytest.raises(ValueError):
            SeasonInfo(banner_overlay=150)

    def test_staff_cannot_edit_server(self, repo, staff):
        with pytest.raises(PermissionDenied):
            run(SettingsService.add_rule(repo, staff, "No TNT"))

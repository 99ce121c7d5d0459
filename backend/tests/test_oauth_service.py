"""
Unit Tests for Discord/Google implicit-flow sign-in.

Provider user-info endpoints are replaced with ``httpx.MockTransport``.

Usage:
    cd backend && pytest tests/test_oauth_service.py -v
"""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from conftest import run
from portal.exceptions import IntegrationError, ValidationFailed
from portal.models.site import DiscordConfig, GoogleConfig
from portal.services.oauth_service import (
    OAuthService,
    build_authorize_url,
    discord_profile,
    google_profile,
    parse_callback_fragment,
)
from portal.services.settings_service import SettingsService


# ============================================================================
# MOCK PROVIDER
# ============================================================================


def mock_client(status_code=200, payload=None, error=None, seen=None):
    """AsyncClient whose every GET returns ``payload`` (or raises ``error``)."""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if error is not None:
            raise error
        return httpx.Response(status_code, json=payload if payload is not None else {})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


DISCORD_USER = {"id": "1234", "username": "alex", "discriminator": "0", "global_name": "Alex", "avatar": "abc"}
GOOGLE_USER = {"sub": "g-99", "email": "Sam@Example.com", "name": "Sam"}


@pytest.fixture
def configured(repo, owner):
    run(
        SettingsService.save_discord_config(
            repo, owner, DiscordConfig(client_id="discord-cid", client_secret="s", is_enabled=True)
        )
    )
    run(
        SettingsService.save_google_config(
            repo,
            owner,
            GoogleConfig(client_id="google-cid", redirect_uri="https://portal.example/cb", is_enabled=True),
        )
    )
    return repo


def complete(repo, fragment, client):
    async def _go():
        async with client:
            return await OAuthService.complete_oauth(repo, fragment, client=client)

    return run(_go())


# ============================================================================
# URL building and parsing
# ============================================================================


class TestAuthorizeUrl:
    def test_discord_url(self):
        url = build_authorize_url("discord", DiscordConfig(client_id="cid", is_enabled=True), "https://site/")
        query = parse_qs(urlparse(url).query)
        assert url.startswith("https://discord.com/api/oauth2/authorize?")
        assert query["response_type"] == ["token"]
        assert query["state"] == ["discord"]
        assert query["redirect_uri"] == ["https://site/"]
        assert query["scope"] == ["identify email"]

    def test_configured_redirect_wins(self, configured):
        url = run(OAuthService.authorize_url(configured, "google", "https://fallback/"))
        assert parse_qs(urlparse(url).query)["redirect_uri"] == ["https://portal.example/cb"]

    def test_not_configured(self, repo):
        with pytest.raises(ValidationFailed, match="Discord login is currently not configured"):
            run(OAuthService.authorize_url(repo, "discord", "https://site/"))

    def test_unknown_provider(self, repo):
        with pytest.raises(ValidationFailed):
            run(OAuthService.authorize_url(repo, "myspace", "https://site/"))

    def test_parse_fragment(self):
        assert parse_callback_fragment("#access_token=abc&token_type=Bearer&state=google") == ("abc", "google")
        assert parse_callback_fragment("") == (None, None)


class TestProfiles:
    def test_discord_profile(self):
        profile = discord_profile(DISCORD_USER)
        assert profile["display_name"] == "Alex"
        assert profile["discord_username"] == "alex"
        assert profile["discord_avatar"] == "https://cdn.discordapp.com/avatars/1234/abc.png"

    def test_discord_legacy_discriminator(self):
        profile = discord_profile({"id": 1, "username": "bob", "discriminator": "4242"})
        assert profile["discord_username"] == "bob#4242"
        assert profile["discord_avatar"] is None

    def test_google_profile_fallback_name(self):
        assert google_profile({"sub": "1", "email": "pat@example.com"})["display_name"] == "pat"


# ============================================================================
# Callback completion
# ============================================================================


class TestCompleteOAuth:
    def test_discord_registers_then_reuses(self, configured):
        seen = []
        user = complete(configured, "access_token=tok&state=discord", mock_client(payload=DISCORD_USER, seen=seen))
        assert user.auth_method == "discord"
        assert user.discord_id == "1234"
        assert seen[0].headers["Authorization"] == "Bearer tok"

        again = complete(configured, "access_token=tok2&state=discord", mock_client(payload=DISCORD_USER))
        assert again.id == user.id

    def test_google(self, configured):
        user = complete(configured, "#access_token=tok&state=google", mock_client(payload=GOOGLE_USER))
        assert user.google_id == "g-99"
        assert user.email == "sam@example.com"

    def test_missing_token(self, configured):
        with pytest.raises(ValidationFailed, match="Missing access token"):
            complete(configured, "state=discord", mock_client())

    def test_provider_rejects(self, configured):
        with pytest.raises(IntegrationError, match="Redirect URI"):
            complete(configured, "access_token=bad&state=discord", mock_client(status_code=401))

    def test_provider_unreachable(self, configured):
        error = httpx.ConnectError("boom")
        with pytest.raises(IntegrationError, match="Failed to connect to Google"):
            complete(configured, "access_token=t&state=google", mock_client(error=error))

    def test_bad_payload(self, configured):
        with pytest.raises(IntegrationError):
            complete(configured, "access_token=t&state=google", mock_client(payload={"email": "x@example.com"}))

    def test_disabled_provider(self, repo):
        with pytest.raises(ValidationFailed):
            complete(repo, "access_token=t&state=google", mock_client(payload=GOOGLE_USER))

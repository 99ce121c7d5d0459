"""Discord and Google sign-in using the implicit grant.

The browser is sent to the provider's authorization page and comes back
with ``#access_token=...&state=<provider>`` in the URL fragment.  The
front-end forwards that fragment here; the server calls the provider's
user-info endpoint with the token and signs the user in (registering them
on first visit).  Client secrets are never sent anywhere.
"""

import logging
import os
from typing import Any, Dict, Optional, Tuple
from urllib.parse import parse_qs, quote, urlencode

import httpx
from dotenv import load_dotenv

from portal.exceptions import IntegrationError, ValidationFailed
from portal.models.site import OAuthProviderConfig, SiteSettings
from portal.models.users import UserAccount
from portal.services.user_service import UserService
from portal.store import PortalRepository

load_dotenv()

logger = logging.getLogger(__name__)

OAUTH_HTTP_TIMEOUT_SECONDS = float(os.getenv("OAUTH_HTTP_TIMEOUT_SECONDS", "10"))

PROVIDERS: Dict[str, Dict[str, str]] = {
    "discord": {
        "label": "Discord",
        "authorize_url": "https://discord.com/api/oauth2/authorize",
        "userinfo_url": "https://discord.com/api/users/@me",
        "scope": "identify email",
        "rejected": "Discord authorization failed. Please ensure your Redirect URI matches exactly.",
        "unreachable": "Failed to connect to Discord.",
    },
    "google": {
        "label": "Google",
        "authorize_url": "https://accounts.google.com/o/oauth2/v2/auth",
        "userinfo_url": "https://www.googleapis.com/oauth2/v3/userinfo",
        "scope": (
            "https://www.googleapis.com/auth/userinfo.profile "
            "https://www.googleapis.com/auth/userinfo.email"
        ),
        "rejected": "Google authorization failed. Please ensure your Client ID is correct.",
        "unreachable": "Failed to connect to Google.",
    },
}


def _provider(name: str) -> Dict[str, str]:
    if name not in PROVIDERS:
        raise ValidationFailed(f"Unknown sign-in provider: {name}")
    return PROVIDERS[name]


def provider_config(settings: SiteSettings, provider: str) -> OAuthProviderConfig:
    _provider(provider)
    return settings.discord_config if provider == "discord" else settings.google_config


def _require_configured(provider: str, config: OAuthProviderConfig) -> None:
    if not config.is_usable:
        label = _provider(provider)["label"]
        raise ValidationFailed(f"{label} login is currently not configured by the administrator.")


def build_authorize_url(provider: str, config: OAuthProviderConfig, fallback_redirect: str) -> str:
    """Authorization URL for the implicit flow, tagged with ``state=<provider>``."""
    meta = _provider(provider)
    _require_configured(provider, config)
    query = urlencode(
        {
            "client_id": config.client_id,
            "redirect_uri": config.redirect_uri or fallback_redirect,
            "response_type": "token",
            "scope": meta["scope"],
            "state": provider,
        },
        quote_via=quote,
    )
    return f"{meta['authorize_url']}?{query}"


def parse_callback_fragment(fragment: str) -> Tuple[Optional[str], Optional[str]]:
    """Extract ``(access_token, state)`` from a callback URL fragment."""
    params = parse_qs(fragment.lstrip("#"))
    token = params.get("access_token", [None])[0]
    state = params.get("state", [None])[0]
    return token, state


# ---------------------------------------------------------------------------
# Provider profile mapping
# ---------------------------------------------------------------------------


def discord_profile(data: Dict[str, Any]) -> Dict[str, Any]:
    discriminator = data.get("discriminator")
    username = data.get("username", "")
    avatar = data.get("avatar")
    return {
        "email": data.get("email"),
        "display_name": data.get("global_name") or username,
        "discord_id": str(data["id"]),
        "discord_username": username if discriminator in (None, "0") else f"{username}#{discriminator}",
        "discord_avatar": f"https://cdn.discordapp.com/avatars/{data['id']}/{avatar}.png" if avatar else None,
        "auth_method": "discord",
    }


def google_profile(data: Dict[str, Any]) -> Dict[str, Any]:
    email = data.get("email")
    fallback = email.split("@")[0] if email else "Member"
    return {
        "email": email,
        "google_id": str(data["sub"]),
        "display_name": data.get("name") or data.get("given_name") or fallback,
        "auth_method": "google",
    }


_PROFILE_MAPPERS = {"discord": discord_profile, "google": google_profile}


async def _fetch_userinfo(url: str, token: str, client: Optional[httpx.AsyncClient]) -> httpx.Response:
    headers = {"Authorization": f"Bearer {token}"}
    if client is not None:
        return await client.get(url, headers=headers)
    async with httpx.AsyncClient(timeout=OAUTH_HTTP_TIMEOUT_SECONDS) as owned:
        return await owned.get(url, headers=headers)


class OAuthService:
    @staticmethod
    async def authorize_url(repo: PortalRepository, provider: str, fallback_redirect: str) -> str:
        settings = await repo.get_settings()
        return build_authorize_url(provider, provider_config(settings, provider), fallback_redirect)

    @staticmethod
    async def complete_oauth(
        repo: PortalRepository,
        fragment: str,
        client: Optional[httpx.AsyncClient] = None,
    ) -> UserAccount:
        """Resolve a callback fragment to a signed-in user."""
        token, state = parse_callback_fragment(fragment)
        if not token:
            raise ValidationFailed("Missing access token.")
        if not state:
            raise ValidationFailed("Missing sign-in provider.")
        meta = _provider(state)
        _require_configured(state, provider_config(await repo.get_settings(), state))

        try:
            response = await _fetch_userinfo(meta["userinfo_url"], token, client)
        except httpx.HTTPError as e:
            logger.warning("%s user-info request failed: %s", meta["label"], e)
            raise IntegrationError(meta["unreachable"]) from e

        if response.status_code != 200:
            logger.warning("%s user-info returned %d: %s", meta["label"], response.status_code, response.text[:200])
            raise IntegrationError(meta["rejected"])

        try:
            profile = _PROFILE_MAPPERS[state](response.json())
        except (ValueError, KeyError, AttributeError, TypeError) as e:
            logger.warning("%s user-info payload unusable: %s", meta["label"], e)
            raise IntegrationError(meta["rejected"]) from e

        return await UserService.register_user(repo, **profile)

"""Map a URL fragment to the top-level view the front-end should render."""

from typing import Optional

from portal.models.site import SiteSettings
from portal.models.users import UserAccount
from portal.services.access_control import is_staff

ROUTE_HOME = "home"
ROUTE_AUTH = "auth"
ROUTE_PORTAL = "portal"
ROUTE_ADMIN_LOGIN = "admin-login"
ROUTE_ADMIN_DASHBOARD = "admin-dashboard"
ROUTE_MAINTENANCE = "maintenance"

# In-page sections of the marketing site
CONTENT_ANCHORS = frozenset({"about", "details", "team", "community", "apply"})


def resolve_route(fragment: Optional[str], user: Optional[UserAccount], settings: SiteSettings) -> str:
    name = (fragment or "").lstrip("#").split("?", 1)[0].strip().lower()
    staff = is_staff(user, settings.custom_roles)

    if name == "admin":
        return ROUTE_ADMIN_DASHBOARD if staff else ROUTE_ADMIN_LOGIN

    if not settings.login_enabled and not staff:
        return ROUTE_MAINTENANCE

    if name in ("login", "register"):
        return ROUTE_AUTH
    if name == "portal":
        return ROUTE_PORTAL if user is not None else ROUTE_AUTH
    return ROUTE_HOME

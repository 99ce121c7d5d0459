"""
Unit Tests for URL-fragment route resolution.

Usage:
    cd backend && pytest tests/test_routing.py -v
"""

import pytest

from conftest import make_user
from portal.models.site import SiteSettings
from portal.services.routing import resolve_route


@pytest.fixture
def settings():
    return SiteSettings()


class TestResolveRoute:
    @pytest.mark.parametrize(
        "fragment,expected",
        [("", "home"), ("#", "home"), ("#about", "home"), ("#login", "auth"), ("#register", "auth"), ("#unknown", "home")],
    )
    def test_anonymous(self, settings, fragment, expected):
        assert resolve_route(fragment, None, settings) == expected

    def test_portal_requires_sign_in(self, settings):
        assert resolve_route("#portal", None, settings) == "auth"
        assert resolve_route("#portal", make_user("user"), settings) == "portal"

    def test_admin(self, settings):
        assert resolve_route("#admin", make_user("user"), settings) == "admin-login"
        assert resolve_route("#admin", make_user("staff"), settings) == "admin-dashboard"

    def test_maintenance(self, settings):
        settings.login_enabled = False
        assert resolve_route("#portal", make_user("user"), settings) == "maintenance"
        assert resolve_route("#home", None, settings) == "maintenance"
        assert resolve_route("#portal", make_user("admin"), settings) == "portal"
        assert resolve_route("#admin", None, settings) == "admin-login"

    def test_case_and_query_ignored(self, settings):
        assert resolve_route("#LOGIN?next=portal", None, settings) == "auth"

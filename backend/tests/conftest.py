"""
Shared fixtures and factories for the portal test suite.

Every test runs against an in-memory document store, so nothing touches
the SQLite file or the network.  Async service calls are driven with
``run()`` (a thin ``asyncio.run`` wrapper).

Usage:
    cd backend && pytest tests -v
"""

import asyncio
import os
import sys

import pytest

# Environment must be set before the portal modules read it at import time
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("PORTAL_ENABLE_SCHEDULER", "false")
os.environ.setdefault("SUBMISSION_DELAY_SECONDS", "0")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from portal.models.users import UserAccount  # noqa: E402
from portal.store import InMemoryDocumentStore, PortalRepository  # noqa: E402


def run(coro):
    """Run one coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


# ============================================================================
# TEST DATA FACTORIES
# ============================================================================


def make_user(role: str = "user", name: str = None, **overrides) -> UserAccount:
    """Factory function to create a user account with the given role."""
    name = name or f"{role.title()} Tester"
    data = {
        "display_name": name,
        "email": f"{name.lower().replace(' ', '.')}@example.com",
        "role": role,
    }
    data.update(overrides)
    return UserAccount(**data)


def member_app_answers(**overrides) -> dict:
    """A complete, valid set of answers for the member-app form."""
    answers = {
        "username": "Steve",
        "discord": "steve#0001",
        "age": "18",
        "timezone": "UTC+00:00 to UTC+03:00 (Europe/Africa)",
        "why": "I like building castles.",
        "experience": "Three years on survival servers.",
    }
    answers.update(overrides)
    return answers


def ban_appeal_answers(**overrides) -> dict:
    answers = {
        "username": "Steve",
        "ban-reason": "Griefing",
        "appeal-reason": "It was a misunderstanding.",
        "learned": "To ask before editing other builds.",
    }
    answers.update(overrides)
    return answers


async def seed_users(repo: PortalRepository, *users: UserAccount) -> None:
    existing = await repo.get_users()
    existing.extend(users)
    await repo.save_users(existing)


# ============================================================================
# TEST FIXTURES
# ============================================================================


@pytest.fixture
def store():
    """Empty in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def repo(store):
    """Repository over the in-memory store."""
    return PortalRepository(store)


@pytest.fixture
def owner():
    return make_user("owner", "Owner")


@pytest.fixture
def admin():
    return make_user("admin", "Admin")


@pytest.fixture
def manager():
    return make_user("manager", "Manager")


@pytest.fixture
def staff():
    return make_user("staff", "Staff")


@pytest.fixture
def member():
    return make_user("user", "Member")


@pytest.fixture
def team(repo, owner, admin, manager, staff, member):
    """Seed one user of each common role and return them by role name."""
    run(seed_users(repo, owner, admin, manager, staff, member))
    return {"owner": owner, "admin": admin, "manager": manager, "staff": staff, "user": member}

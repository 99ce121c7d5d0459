"""
Unit Tests for Supabase cloud push/pull.

The Supabase client is replaced with a small in-memory table.

Usage:
    cd backend && pytest tests/test_sync_service.py -v
"""

from typing import Any, Dict, List
from unittest.mock import patch

import pytest

from conftest import make_user, run, seed_users
from portal.exceptions import IntegrationError, PermissionDenied, ValidationFailed
from portal.models.site import SupabaseConfig
from portal.services.settings_service import SettingsService
from portal.services.sync_service import SyncService
from portal.store import InMemoryDocumentStore, PortalRepository


# ============================================================================
# MOCK SUPABASE CLIENT
# ============================================================================


class MockSupabaseResponse:
    """Mock Supabase response object."""

    def __init__(self, data: List[Dict] = None):
        self.data = data if data is not None else []


class MockSupabaseTable:
    """Chainable query builder over a shared list of rows."""

    def __init__(self, rows: List[Dict[str, Any]]):
        self._rows = rows
        self._pending = None
        self._filters = {}

    def upsert(self, row: Dict[str, Any]):
        self._pending = row
        return self

    def select(self, *args, **kwargs):
        return self

    def eq(self, field: str, value: Any):
        self._filters[field] = value
        return self

    def execute(self):
        if self._pending is not None:
            self._rows[:] = [r for r in self._rows if r["id"] != self._pending["id"]] + [self._pending]
            return MockSupabaseResponse([self._pending])
        matched = [r for r in self._rows if all(r.get(k) == v for k, v in self._filters.items())]
        return MockSupabaseResponse(matched)


class MockSupabaseClient:
    def __init__(self, rows: List[Dict[str, Any]], fail: bool = False):
        self.rows = rows
        self.fail = fail
        self.tables = []

    def table(self, name: str):
        if self.fail:
            raise RuntimeError("network down")
        self.tables.append(name)
        return MockSupabaseTable(self.rows)


async def _configure(repo, owner, **overrides):
    config = {"url": "https://proj.supabase.co", "key": "anon", "is_enabled": True}
    config.update(overrides)
    await SettingsService.save_supabase_config(repo, owner, SupabaseConfig(**config))


# ============================================================================
# Tests
# ============================================================================


class TestSync:
    def test_push_then_pull_into_fresh_repo(self, repo, owner):
        rows: List[Dict[str, Any]] = []
        client = MockSupabaseClient(rows)
        run(_configure(repo, owner))
        run(seed_users(repo, owner, make_user("user", "Member")))

        with patch("portal.services.sync_service.create_client", return_value=client):
            pushed = run(SyncService.push(repo, owner))
            assert sorted(pushed) == ["applications", "chats", "settings", "users"]
            assert rows[0]["id"] == "main"
            assert client.tables == ["site_sync"]

            fresh = PortalRepository(InMemoryDocumentStore())
            run(_configure(fresh, owner))
            replaced = run(SyncService.pull(fresh, owner))

        assert sorted(replaced) == ["applications", "chats", "settings", "users"]
        names = sorted(u.display_name for u in run(fresh.get_users()))
        assert names == ["Member", "Owner"]

    def test_requires_manage_settings(self, repo, manager):
        with pytest.raises(PermissionDenied):
            run(SyncService.push(repo, manager))

    def test_not_configured(self, repo, owner):
        with pytest.raises(ValidationFailed):
            run(SyncService.push(repo, owner))

    def test_pull_without_backup(self, repo, owner):
        run(_configure(repo, owner))
        with patch("portal.services.sync_service.create_client", return_value=MockSupabaseClient([])):
            with pytest.raises(IntegrationError, match="No cloud backup"):
                run(SyncService.pull(repo, owner))

    def test_pull_unreadable_backup_keeps_local(self, repo, owner):
        run(_configure(repo, owner))
        run(seed_users(repo, owner))
        rows = [{"id": "main", "data": {"schema_version": 2, "users": "not-a-list"}}]
        with patch("portal.services.sync_service.create_client", return_value=MockSupabaseClient(rows)):
            with pytest.raises(IntegrationError, match="not readable"):
                run(SyncService.pull(repo, owner))
        assert [u.id for u in run(repo.get_users())] == [owner.id]

    def test_pull_with_extra_owner_rejected(self, repo, owner):
        run(_configure(repo, owner))
        run(seed_users(repo, owner))
        backup = run(repo.export_documents())
        backup["users"].append(make_user("owner", "Intruder").model_dump(mode="json"))
        rows = [{"id": "main", "data": backup}]
        with patch("portal.services.sync_service.create_client", return_value=MockSupabaseClient(rows)):
            with pytest.raises(IntegrationError, match="not readable"):
                run(SyncService.pull(repo, owner))
        assert [u.id for u in run(repo.get_users()) if u.role == "owner"] == [owner.id]

    def test_push_failure(self, repo, owner):
        run(_configure(repo, owner))
        with patch("portal.services.sync_service.create_client", return_value=MockSupabaseClient([], fail=True)):
            with pytest.raises(IntegrationError, match="Failed to push"):
                run(SyncService.push(repo, owner))

    def test_client_creation_failure(self, repo, owner):
        run(_configure(repo, owner))
        with patch("portal.services.sync_service.create_client", side_effect=Exception("bad url")):
            with pytest.raises(IntegrationError):
                run(SyncService.push(repo, owner))

"""Document store and the process-wide repository in front of it.

The portal persists four JSON documents: ``users``, ``applications``,
``settings`` and ``chats``.  ``DocumentStore`` implementations only know
how to load and save an opaque value under a key; ``PortalRepository``
adds versioned migration, pydantic validation and an in-memory cache.

Reads never raise: anything that fails to parse, migrate or validate is
replaced by the document's default value and logged.
"""

import copy
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from portal.helpers.migrations import (
    CURRENT_SCHEMA_VERSION,
    DOCUMENT_KINDS,
    migrate_document,
    unwrap,
    wrap,
)
from portal.models.applications import ApplicationEntry
from portal.models.chat import ApplicationChat
from portal.models.db.document import PortalDocument
from portal.models.roles import Role
from portal.models.site import SiteSettings
from portal.models.users import UserAccount
from portal.services.access_control import ROLE_OWNER

logger = logging.getLogger(__name__)

USERS = "users"
APPLICATIONS = "applications"
SETTINGS = "settings"
CHATS = "chats"


class DocumentStore(Protocol):
    """Minimal persistence interface: whole-document load and save."""

    async def init(self) -> None: ...

    async def load(self, key: str) -> Optional[Any]: ...

    async def save(self, key: str, value: Dict[str, Any]) -> None: ...


# ---------------------------------------------------------------------------
# Store implementations
# ---------------------------------------------------------------------------


class InMemoryDocumentStore:
    """Dict-backed store for tests and ephemeral deployments.

    ``initial`` may hold raw values (including legacy or corrupted ones) to
    exercise the migration and recovery paths.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self.documents: Dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self.save_count = 0

    async def init(self) -> None:
        return None

    async def load(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self.documents.get(key))

    async def save(self, key: str, value: Dict[str, Any]) -> None:
        self.documents[key] = copy.deepcopy(value)
        self.save_count += 1


class SqlDocumentStore:
    """Stores each document as one row of ``portal_documents``."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        engine: Optional[AsyncEngine] = None,
    ):
        if session_factory is None:
            from portal.database import async_session_factory

            session_factory = async_session_factory
        self._session_factory = session_factory
        self._engine = engine

    async def init(self) -> None:
        from portal.database import create_tables

        await create_tables(self._engine)

    async def load(self, key: str) -> Optional[Any]:
        async with self._session_factory() as session:
            row = await session.get(PortalDocument, key)
            if row is None:
                return None
            return {"schema_version": row.schema_version, "data": row.value}

    async def save(self, key: str, value: Dict[str, Any]) -> None:
        async with self._session_factory() as session:
            try:
                row = await session.get(PortalDocument, key)
                if row is None:
                    row = PortalDocument(key=key)
                    session.add(row)
                row.value = value["data"]
                row.schema_version = value["schema_version"]
                await session.commit()
            except Exception:
                await session.rollback()
                raise


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

_users_adapter = TypeAdapter(List[UserAccount])
_applications_adapter = TypeAdapter(List[ApplicationEntry])
_chats_adapter = TypeAdapter(List[ApplicationChat])


def _parse_settings(payload: Any) -> SiteSettings:
    return SiteSettings.model_validate(payload)


_PARSERS: Dict[str, Callable[[Any], Any]] = {
    USERS: _users_adapter.validate_python,
    APPLICATIONS: _applications_adapter.validate_python,
    SETTINGS: _parse_settings,
    CHATS: _chats_adapter.validate_python,
}

_DEFAULTS: Dict[str, Callable[[], Any]] = {
    USERS: list,
    APPLICATIONS: list,
    SETTINGS: SiteSettings,
    CHATS: list,
}


def _dump(value: Any) -> Any:
    if isinstance(value, list):
        return [item.model_dump(mode="json") for item in value]
    return value.model_dump(mode="json")


class PortalRepository:
    """Typed, cached access to the portal documents.

    Constructed once per process and shared by every request handler.
    Accessors hand out deep copies, so callers must call the matching
    ``save_*`` method for a change to take effect.
    """

    def __init__(self, store: DocumentStore):
        self.store = store
        self._cache: Dict[str, Any] = {}

    async def init(self) -> None:
        await self.store.init()

    def invalidate(self) -> None:
        """Drop the cache so the next read goes back to the store."""
        self._cache.clear()

    # -- internals ----------------------------------------------------------

    def _decode(self, kind: str, raw: Any) -> Any:
        payload = migrate_document(kind, raw)
        return _PARSERS[kind](payload)

    async def _get(self, kind: str) -> Any:
        if kind in self._cache:
            return copy.deepcopy(self._cache[kind])

        raw = await self.store.load(kind)
        value = None
        upgraded = False
        if raw is not None:
            try:
                version, _ = unwrap(raw)
                value = self._decode(kind, raw)
                upgraded = version < CURRENT_SCHEMA_VERSION
            except (ValueError, TypeError, ValidationError) as e:
                logger.warning("Discarding unreadable %s document: %s", kind, e)
                value = None
        if value is None:
            value = _DEFAULTS[kind]()

        self._cache[kind] = value
        if upgraded:
            await self.store.save(kind, wrap(_dump(value)))
        return copy.deepcopy(value)

    async def _put(self, kind: str, value: Any) -> None:
        self._cache[kind] = copy.deepcopy(value)
        await self.store.save(kind, wrap(_dump(value)))

    # -- typed accessors -----------------------------------------------------

    async def get_users(self) -> List[UserAccount]:
        return await self._get(USERS)

    async def save_users(self, users: List[UserAccount]) -> None:
        await self._put(USERS, users)

    async def get_applications(self) -> List[ApplicationEntry]:
        return await self._get(APPLICATIONS)

    async def save_applications(self, applications: List[ApplicationEntry]) -> None:
        await self._put(APPLICATIONS, applications)

    async def get_settings(self) -> SiteSettings:
        return await self._get(SETTINGS)

    async def save_settings(self, settings: SiteSettings) -> None:
        await self._put(SETTINGS, settings)

    async def get_chats(self) -> List[ApplicationChat]:
        return await self._get(CHATS)

    async def save_chats(self, chats: List[ApplicationChat]) -> None:
        await self._put(CHATS, chats)

    async def find_user(self, user_id: str) -> Optional[UserAccount]:
        return next((u for u in await self.get_users() if u.id == user_id), None)

    async def get_custom_roles(self) -> List[Role]:
        return (await self.get_settings()).custom_roles

    # -- bulk transfer (cloud sync) ------------------------------------------

    async def export_documents(self) -> Dict[str, Any]:
        """All four documents as JSON-safe payloads at the current version."""
        exported = {}
        for kind in DOCUMENT_KINDS:
            exported[kind] = _dump(await self._get(kind))
        exported["schema_version"] = CURRENT_SCHEMA_VERSION
        return exported

    async def import_documents(self, data: Dict[str, Any]) -> List[str]:
        """Overwrite local documents with ``data``.

        Every supplied document is migrated and validated before any is
        written, so a bad document aborts the whole import with
        ``ValueError``.  A users document may hold at most one owner; when it
        holds none the current owner account is carried over.  Returns the
        kinds that were replaced.
        """
        if not isinstance(data, dict):
            raise ValueError("Imported data must be an object")
        version = data.get("schema_version", 1)
        decoded = {}
        for kind in DOCUMENT_KINDS:
            if kind not in data or data[kind] is None:
                continue
            try:
                decoded[kind] = self._decode(kind, wrap(data[kind], version))
            except (TypeError, ValidationError) as e:
                raise ValueError(f"Invalid {kind} document: {e}") from e

        if USERS in decoded:
            decoded[USERS] = await self._keep_single_owner(decoded[USERS])

        for kind, value in decoded.items():
            await self._put(kind, value)
        return list(decoded)

    async def _keep_single_owner(self, users: List[UserAccount]) -> List[UserAccount]:
        owners = [u for u in users if u.role == ROLE_OWNER]
        if len(owners) > 1:
            raise ValueError(f"Invalid users document: {len(owners)} owner accounts")
        if owners:
            return users

        owner = next((u for u in await self.get_users() if u.role == ROLE_OWNER), None)
        if owner is None:
            return users
        logger.warning("Imported users have no owner; keeping local owner %s", owner.id)
        return [owner] + [u for u in users if u.id != owner.id]

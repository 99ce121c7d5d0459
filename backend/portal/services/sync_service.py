"""Manual cloud backup of the portal documents to a Supabase table.

The table (default ``site_sync``) needs two columns: ``id text primary
key`` and ``data jsonb``.  Push upserts row ``main`` with all four
documents; pull reads that row and overwrites the local documents.
"""

import asyncio
import logging
from typing import List

from supabase import Client, create_client

from portal.exceptions import IntegrationError, ValidationFailed
from portal.models.site import SupabaseConfig
from portal.models.users import UserAccount
from portal.services.access_control import Permission, authorize
from portal.store import PortalRepository

logger = logging.getLogger(__name__)

SYNC_ROW_ID = "main"


def _client(config: SupabaseConfig) -> Client:
    if not config.is_usable:
        raise ValidationFailed("Cloud sync is not configured.")
    try:
        return create_client(config.url, config.key)
    except Exception as e:
        logger.warning("Could not create Supabase client: %s", e)
        raise IntegrationError("Could not connect to the cloud backend.") from e


async def _config_for(repo: PortalRepository, actor: UserAccount) -> SupabaseConfig:
    settings = await repo.get_settings()
    authorize(actor, Permission.MANAGE_SETTINGS, settings.custom_roles, "You do not have permission to sync data.")
    return settings.supabase_config


class SyncService:
    @staticmethod
    async def push(repo: PortalRepository, actor: UserAccount) -> List[str]:
        """Upload every local document, replacing the remote copy."""
        config = await _config_for(repo, actor)
        client = _client(config)
        payload = await repo.export_documents()

        def _upsert():
            return client.table(config.table).upsert({"id": SYNC_ROW_ID, "data": payload}).execute()

        try:
            await asyncio.to_thread(_upsert)
        except Exception as e:
            logger.exception("Cloud push failed")
            raise IntegrationError("Failed to push data to the cloud.") from e

        logger.info("User %s pushed portal data to %s", actor.id, config.table)
        return [kind for kind in payload if kind != "schema_version"]

    @staticmethod
    async def pull(repo: PortalRepository, actor: UserAccount) -> List[str]:
        """Replace local documents with the remote copy.  Returns the kinds replaced."""
        config = await _config_for(repo, actor)
        client = _client(config)

        def _select():
            return client.table(config.table).select("data").eq("id", SYNC_ROW_ID).execute()

        try:
            response = await asyncio.to_thread(_select)
        except Exception as e:
            logger.exception("Cloud pull failed")
            raise IntegrationError("Failed to pull data from the cloud.") from e

        rows = response.data or []
        if not rows or not rows[0].get("data"):
            raise IntegrationError("No cloud backup found.")

        try:
            replaced = await repo.import_documents(rows[0]["data"])
        except ValueError as e:
            logger.warning("Cloud backup rejected: %s", e)
            raise IntegrationError("The cloud backup is not readable.") from e

        logger.info("User %s pulled portal data (%s)", actor.id, ", ".join(replaced))
        return replaced

"""Public endpoints: health, site content, route resolution and open forms."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from portal import __version__
from portal.deps import get_optional_user, get_repository
from portal.models.users import UserAccount
from portal.services.form_service import FormService
from portal.services.routing import resolve_route
from portal.services.settings_service import SettingsService
from portal.store import PortalRepository

logger = logging.getLogger(__name__)
router = APIRouter(tags=["public"])


@router.get("/health")
async def health_check():
    return {"status": "healthy", "version": __version__}


@router.get("/site")
async def get_site(repo: PortalRepository = Depends(get_repository)):
    """Public site content and access toggles."""
    return await SettingsService.public_settings(repo)


@router.get("/route")
async def get_route(
    fragment: str = Query("", description="URL fragment, with or without the leading '#'"),
    user: Optional[UserAccount] = Depends(get_optional_user),
    repo: PortalRepository = Depends(get_repository),
):
    """Which top-level view the front-end should render for ``fragment``."""
    settings = await repo.get_settings()
    return {"route": resolve_route(fragment, user, settings)}


@router.get("/forms")
async def list_forms(repo: PortalRepository = Depends(get_repository)):
    """Enabled forms with their current (schedule-evaluated) status."""
    forms = await FormService.get_app_forms(repo)
    return {"forms": [f.model_dump(mode="json") for f in forms if f.enabled]}


@router.get("/forms/{form_id}")
async def get_form(form_id: str, repo: PortalRepository = Depends(get_repository)):
    form = await FormService.get_form(repo, form_id)
    return form.model_dump(mode="json")


@router.get("/application-status")
async def get_application_status(repo: PortalRepository = Depends(get_repository)):
    status = await FormService.get_application_status(repo)
    schedule = await FormService.get_application_schedule(repo)
    return {
        "status": status,
        "applications_open": status in ("open", "ending_soon"),
        "schedule": schedule.model_dump(mode="json"),
    }

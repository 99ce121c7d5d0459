"""Form builder admin endpoints, including the site-wide status."""

import logging
from typing import List

from fastapi import APIRouter, Depends, status

from portal.deps import get_current_user, get_repository
from portal.models.forms import (
    AppForm,
    ApplicationStatusUpdate,
    FieldCreate,
    FieldEnabledRequest,
    FieldMoveRequest,
    FieldUpdate,
    FormCreate,
    FormUpdate,
)
from portal.models.users import UserAccount
from portal.services.form_service import FormService
from portal.store import PortalRepository

logger = logging.getLogger(__name__)
router = APIRouter()


def _forms_payload(forms: List[AppForm]) -> dict:
    return {"forms": [f.model_dump(mode="json") for f in forms]}


# ---------------------------------------------------------------------------
# Forms
# ---------------------------------------------------------------------------


@router.get("/forms")
async def list_forms(repo: PortalRepository = Depends(get_repository)):
    """All forms, including disabled ones."""
    return _forms_payload(await FormService.get_app_forms(repo))


@router.put("/forms")
async def replace_forms(
    forms: List[AppForm],
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    saved = await FormService.save_app_forms(repo, user, forms)
    return {"success": True, **_forms_payload(saved)}


@router.post("/forms", status_code=status.HTTP_201_CREATED)
async def create_form(
    body: FormCreate,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    form = await FormService.create_form(repo, user, body)
    return {"success": True, "form": form.model_dump(mode="json")}


@router.patch("/forms/{form_id}")
async def update_form(
    form_id: str,
    body: FormUpdate,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    form = await FormService.update_form(repo, user, form_id, body)
    return {"success": True, "form": form.model_dump(mode="json")}


@router.delete("/forms/{form_id}")
async def delete_form(
    form_id: str,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    selected = await FormService.delete_form(repo, user, form_id)
    return {"success": True, "selected_form_id": selected}


# ---------------------------------------------------------------------------
# Fields
# ---------------------------------------------------------------------------


@router.post("/forms/{form_id}/fields", status_code=status.HTTP_201_CREATED)
async def add_field(
    form_id: str,
    body: FieldCreate,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    field = await FormService.add_field(repo, user, form_id, body)
    return {"success": True, "field": field.model_dump()}


@router.patch("/forms/{form_id}/fields/{field_id}")
async def update_field(
    form_id: str,
    field_id: str,
    body: FieldUpdate,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    field = await FormService.update_field(repo, user, form_id, field_id, body)
    return {"success": True, "field": field.model_dump()}


@router.post("/forms/{form_id}/fields/{field_id}/move")
async def move_field(
    form_id: str,
    field_id: str,
    body: FieldMoveRequest,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    fields = await FormService.move_field(repo, user, form_id, field_id, body.direction)
    return {"success": True, "fields": [f.model_dump() for f in fields]}


@router.put("/forms/{form_id}/fields/{field_id}/enabled")
async def set_field_enabled(
    form_id: str,
    field_id: str,
    body: FieldEnabledRequest,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    field = await FormService.set_field_enabled(repo, user, form_id, field_id, body.enabled)
    return {"success": True, "field": field.model_dump()}


@router.delete("/forms/{form_id}/fields/{field_id}")
async def delete_field(
    form_id: str,
    field_id: str,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    await FormService.delete_field(repo, user, form_id, field_id)
    return {"success": True}


# ---------------------------------------------------------------------------
# Site-wide status
# ---------------------------------------------------------------------------


@router.get("/application-status")
async def get_application_status(repo: PortalRepository = Depends(get_repository)):
    status_value = await FormService.get_application_status(repo)
    schedule = await FormService.get_application_schedule(repo)
    return {"status": status_value, "schedule": schedule.model_dump(mode="json")}


@router.put("/application-status")
async def set_application_status(
    body: ApplicationStatusUpdate,
    user: UserAccount = Depends(get_current_user),
    repo: PortalRepository = Depends(get_repository),
):
    settings = await FormService.save_application_status(repo, user, body.status, body.schedule)
    return {
        "success": True,
        "status": settings.application_status,
        "applications_open": settings.applications_open,
        "schedule": settings.application_schedule.model_dump(mode="json"),
    }

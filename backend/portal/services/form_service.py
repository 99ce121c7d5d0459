"""Form schema engine: per-form scheduling and the form/field builder.

Schedules are evaluated lazily whenever the form list is read, and also by
the background ``tick`` so transitions happen without a client read.  When
an open date passes the form is forced ``open`` (an ``ending_soon`` form is
left alone) and the open date is cleared so it cannot retrigger; a passed
close date forces ``closed`` the same way.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from portal.exceptions import Conflict, NotFound, PermissionDenied, ValidationFailed
from portal.helpers.ids import is_meaningful_slug, slugify
from portal.models.forms import (
    PROTECTED_FORM_ID,
    AppField,
    AppForm,
    ApplicationSchedule,
    FieldCreate,
    FieldUpdate,
    FormCreate,
    FormStatus,
    FormUpdate,
)
from portal.models.site import SiteSettings
from portal.models.users import UserAccount
from portal.services.access_control import Permission, authorize
from portal.store import PortalRepository

logger = logging.getLogger(__name__)

OPEN_STATUSES = ("open", "ending_soon")


# ---------------------------------------------------------------------------
# Schedule evaluation (pure)
# ---------------------------------------------------------------------------


def _schedule_zone(name: Optional[str]):
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown schedule timezone %r, using UTC", name)
        return timezone.utc


def _aware(moment: datetime, tz_name: Optional[str]) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=_schedule_zone(tz_name))
    return moment


def apply_schedule(
    status: Optional[FormStatus], schedule: ApplicationSchedule, now: datetime
) -> Tuple[Optional[FormStatus], ApplicationSchedule, bool]:
    """Apply one schedule to one status.  Returns ``(status, schedule, changed)``."""
    schedule = schedule.model_copy()
    changed = False

    if schedule.open_date and _aware(schedule.open_date, schedule.timezone) <= now:
        if status not in OPEN_STATUSES:
            status = "open"
        schedule.open_date = None
        changed = True

    if schedule.close_date and _aware(schedule.close_date, schedule.timezone) <= now:
        status = "closed"
        schedule.close_date = None
        changed = True

    return status, schedule, changed


def evaluate_schedules(forms: List[AppForm], now: Optional[datetime] = None) -> Tuple[List[AppForm], bool]:
    """Return ``(forms, changed)`` with every due schedule applied."""
    now = now or datetime.now(timezone.utc)
    result = []
    any_changed = False
    for form in forms:
        status, schedule, changed = apply_schedule(form.status, form.schedule, now)
        if changed:
            any_changed = True
            logger.info("Form %s schedule fired: %s -> %s", form.id, form.status, status)
            form = form.model_copy(update={"status": status, "schedule": schedule})
        result.append(form)
    return result, any_changed


def _apply_legacy_schedule(settings: SiteSettings, now: datetime) -> bool:
    status, schedule, changed = apply_schedule(settings.application_status, settings.application_schedule, now)
    if changed:
        settings.application_status = status
        settings.application_schedule = schedule
        settings.applications_open = status in OPEN_STATUSES
    return changed


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _find_form(settings: SiteSettings, form_id: str) -> AppForm:
    form = next((f for f in settings.app_forms if f.id == form_id), None)
    if form is None:
        raise NotFound("Form not found.")
    return form


def _find_field(form: AppForm, field_id: str) -> AppField:
    field = form.find_field(field_id)
    if field is None:
        raise NotFound("Field not found.")
    return field


def _check_select_options(field_type: str, options: Optional[List[str]]) -> Optional[List[str]]:
    if field_type != "select":
        return None
    cleaned = [opt.strip() for opt in (options or []) if opt and opt.strip()]
    if not cleaned:
        raise ValidationFailed("Select fields need at least one option.")
    return cleaned


async def _settings_for_edit(repo: PortalRepository, actor: UserAccount) -> SiteSettings:
    settings = await repo.get_settings()
    authorize(actor, Permission.MANAGE_FORMS, settings.custom_roles, "You do not have permission to manage forms.")
    return settings


class FormService:
    """Service layer for application forms."""

    # ------------------------------------------------------------------
    # Reads and scheduling
    # ------------------------------------------------------------------

    @staticmethod
    async def get_app_forms(repo: PortalRepository, now: Optional[datetime] = None) -> List[AppForm]:
        """All forms with due schedules applied; persists any transition."""
        settings = await repo.get_settings()
        forms, changed = evaluate_schedules(settings.app_forms, now)
        if changed:
            settings.app_forms = forms
            await repo.save_settings(settings)
        return forms

    @staticmethod
    async def get_form(repo: PortalRepository, form_id: str, now: Optional[datetime] = None) -> AppForm:
        forms = await FormService.get_app_forms(repo, now)
        form = next((f for f in forms if f.id == form_id), None)
        if form is None:
            raise NotFound("Form not found.")
        return form

    @staticmethod
    async def tick(repo: PortalRepository, now: Optional[datetime] = None) -> bool:
        """Apply due form and site-wide schedules without a client read."""
        now = now or datetime.now(timezone.utc)
        settings = await repo.get_settings()
        forms, forms_changed = evaluate_schedules(settings.app_forms, now)
        legacy_changed = _apply_legacy_schedule(settings, now)
        if forms_changed or legacy_changed:
            settings.app_forms = forms
            await repo.save_settings(settings)
        return forms_changed or legacy_changed

    # ------------------------------------------------------------------
    # Forms
    # ------------------------------------------------------------------

    @staticmethod
    async def save_app_forms(repo: PortalRepository, actor: UserAccount, forms: List[AppForm]) -> List[AppForm]:
        settings = await _settings_for_edit(repo, actor)
        ids = [f.id for f in forms]
        if len(ids) != len(set(ids)):
            raise ValidationFailed("Form ids must be unique.")
        if PROTECTED_FORM_ID not in ids:
            raise ValidationFailed("Cannot delete default form.")
        settings.app_forms = forms
        await repo.save_settings(settings)
        logger.info("User %s replaced the form list (%d forms)", actor.id, len(forms))
        return forms

    @staticmethod
    async def create_form(repo: PortalRepository, actor: UserAccount, data: FormCreate) -> AppForm:
        settings = await _settings_for_edit(repo, actor)
        form_id = slugify(data.name)
        if not is_meaningful_slug(form_id):
            raise ValidationFailed("Form name must contain letters or digits.")
        if any(f.id == form_id for f in settings.app_forms):
            raise Conflict(f"A form with id '{form_id}' already exists.")

        form = AppForm(id=form_id, name=data.name, description=data.description)
        settings.app_forms.append(form)
        await repo.save_settings(settings)
        logger.info("User %s created form %s", actor.id, form_id)
        return form

    @staticmethod
    async def update_form(repo: PortalRepository, actor: UserAccount, form_id: str, data: FormUpdate) -> AppForm:
        settings = await _settings_for_edit(repo, actor)
        form = _find_form(settings, form_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            if value is None:
                continue
            if key == "schedule":
                value = ApplicationSchedule.model_validate(value)
            setattr(form, key, value)
        await repo.save_settings(settings)
        logger.info("User %s updated form %s", actor.id, form_id)
        return form

    @staticmethod
    async def delete_form(repo: PortalRepository, actor: UserAccount, form_id: str) -> str:
        """Delete a form and return the id the editor should select next."""
        settings = await _settings_for_edit(repo, actor)
        if form_id == PROTECTED_FORM_ID:
            raise PermissionDenied("Cannot delete default form.")
        _find_form(settings, form_id)
        settings.app_forms = [f for f in settings.app_forms if f.id != form_id]
        await repo.save_settings(settings)
        logger.info("User %s deleted form %s", actor.id, form_id)
        return PROTECTED_FORM_ID

    # ------------------------------------------------------------------
    # Fields
    # ------------------------------------------------------------------

    @staticmethod
    async def add_field(repo: PortalRepository, actor: UserAccount, form_id: str, data: FieldCreate) -> AppField:
        settings = await _settings_for_edit(repo, actor)
        form = _find_form(settings, form_id)
        field_id = slugify(data.label)
        if not is_meaningful_slug(field_id):
            raise ValidationFailed("Field label must contain letters or digits.")
        if form.find_field(field_id) is not None:
            raise Conflict(f"Field '{field_id}' already exists in this form.")

        field = AppField(
            id=field_id,
            label=data.label,
            type=data.type,
            placeholder=data.placeholder,
            required=data.required,
            enabled=True,
            options=_check_select_options(data.type, data.options),
        )
        form.fields.append(field)
        await repo.save_settings(settings)
        logger.info("User %s added field %s to form %s", actor.id, field_id, form_id)
        return field

    @staticmethod
    async def update_field(
        repo: PortalRepository, actor: UserAccount, form_id: str, field_id: str, data: FieldUpdate
    ) -> AppField:
        settings = await _settings_for_edit(repo, actor)
        field = _find_field(_find_form(settings, form_id), field_id)
        updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        for key, value in updates.items():
            setattr(field, key, value)
        field.options = _check_select_options(field.type, field.options)
        await repo.save_settings(settings)
        logger.info("User %s updated field %s of form %s", actor.id, field_id, form_id)
        return field

    @staticmethod
    async def move_field(
        repo: PortalRepository, actor: UserAccount, form_id: str, field_id: str, direction: str
    ) -> List[AppField]:
        """Swap a field with its neighbour.  Moves past either end are no-ops."""
        if direction not in ("up", "down"):
            raise ValidationFailed("Direction must be 'up' or 'down'.")
        settings = await _settings_for_edit(repo, actor)
        form = _find_form(settings, form_id)
        _find_field(form, field_id)
        index = next(i for i, f in enumerate(form.fields) if f.id == field_id)
        target = index - 1 if direction == "up" else index + 1
        if 0 <= target < len(form.fields):
            form.fields[index], form.fields[target] = form.fields[target], form.fields[index]
            await repo.save_settings(settings)
            logger.info("User %s moved field %s %s in form %s", actor.id, field_id, direction, form_id)
        return form.fields

    @staticmethod
    async def delete_field(repo: PortalRepository, actor: UserAccount, form_id: str, field_id: str) -> None:
        settings = await _settings_for_edit(repo, actor)
        form = _find_form(settings, form_id)
        _find_field(form, field_id)
        form.fields = [f for f in form.fields if f.id != field_id]
        await repo.save_settings(settings)
        logger.info("User %s deleted field %s from form %s", actor.id, field_id, form_id)

    @staticmethod
    async def set_field_enabled(
        repo: PortalRepository, actor: UserAccount, form_id: str, field_id: str, enabled: bool
    ) -> AppField:
        settings = await _settings_for_edit(repo, actor)
        field = _find_field(_find_form(settings, form_id), field_id)
        field.enabled = enabled
        await repo.save_settings(settings)
        return field

    # ------------------------------------------------------------------
    # Site-wide status (single status shared by all forms in older clients)
    # ------------------------------------------------------------------

    @staticmethod
    async def get_application_status(repo: PortalRepository, now: Optional[datetime] = None) -> FormStatus:
        settings = await repo.get_settings()
        if _apply_legacy_schedule(settings, now or datetime.now(timezone.utc)):
            await repo.save_settings(settings)
        if settings.application_status is None:
            return "open" if settings.applications_open else "closed"
        return settings.application_status

    @staticmethod
    async def get_application_schedule(repo: PortalRepository) -> ApplicationSchedule:
        return (await repo.get_settings()).application_schedule

    @staticmethod
    async def save_application_status(
        repo: PortalRepository,
        actor: UserAccount,
        status: FormStatus,
        schedule: Optional[ApplicationSchedule] = None,
    ) -> SiteSettings:
        settings = await _settings_for_edit(repo, actor)
        settings.application_status = status
        if schedule is not None:
            settings.application_schedule = ApplicationSchedule(
                open_date=schedule.open_date,
                close_date=schedule.close_date,
                timezone=schedule.timezone or settings.application_schedule.timezone,
            )
        settings.applications_open = status in OPEN_STATUSES
        await repo.save_settings(settings)
        logger.info("User %s set site-wide application status to %s", actor.id, status)
        return settings

"""Application lifecycle: submission, review and housekeeping.

Review is a manual-override model: any status may be set from any other
status by an authorized reviewer, and every change stamps ``reviewed_at``.
"""

import asyncio
import logging
import os
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from dotenv import load_dotenv

from portal.exceptions import AuthenticationFailed, NotFound, PermissionDenied, ValidationFailed
from portal.models.applications import (
    ACTIVE_STATUSES,
    ApplicationEntry,
    ApplicationStats,
    ApplicationStatus,
)
from portal.models.forms import BAN_APPEAL_FORM_ID, AppForm
from portal.models.users import UserAccount
from portal.services.access_control import Permission, authorize, is_staff
from portal.services.form_service import FormService
from portal.store import PortalRepository

load_dotenv()

logger = logging.getLogger(__name__)

SUBMISSION_DELAY_SECONDS = float(os.getenv("SUBMISSION_DELAY_SECONDS", "0"))

# Summary columns filled from the first answered field in each group
_SUMMARY_SOURCES = {
    "age": ("age",),
    "timezone": ("timezone",),
    "why": ("why", "ban-reason", "staff-experience"),
    "experience": ("experience", "availability", "learned"),
}


def _first_answer(responses: Dict[str, str], keys: Iterable[str]) -> str:
    for key in keys:
        if responses.get(key):
            return responses[key]
    return ""


def _is_number(value: str) -> bool:
    try:
        float(value)
    except ValueError:
        return False
    return True


def validate_responses(form: AppForm, responses: Dict[str, str]) -> Dict[str, str]:
    """Return the cleaned answers for ``form`` or raise ``ValidationFailed``.

    Answers to unknown or disabled fields are dropped.
    """
    cleaned = {}
    for field in form.enabled_fields():
        value = responses.get(field.id)
        value = value.strip() if isinstance(value, str) else ""
        if value:
            cleaned[field.id] = value

    missing = [f.label for f in form.enabled_fields() if f.required and f.id not in cleaned]
    if missing:
        raise ValidationFailed(f"Please fill in all required fields: {', '.join(missing)}")

    for field in form.enabled_fields():
        value = cleaned.get(field.id)
        if value is None:
            continue
        if field.type == "number" and not _is_number(value):
            raise ValidationFailed(f"{field.label} must be a number.")
        if field.type == "select" and value not in (field.options or []):
            raise ValidationFailed(f"{field.label} must be one of the listed options.")
    return cleaned


def _find(applications: List[ApplicationEntry], app_id: str) -> ApplicationEntry:
    entry = next((a for a in applications if a.id == app_id), None)
    if entry is None:
        raise NotFound("Application not found.")
    return entry


class ApplicationService:
    """Service layer for submitted applications."""

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    @staticmethod
    async def submit_application(
        repo: PortalRepository,
        user: Optional[UserAccount],
        form_id: str,
        responses: Dict[str, str],
    ) -> ApplicationEntry:
        if user is None:
            raise AuthenticationFailed("You must be signed in to apply.")

        form = await FormService.get_form(repo, form_id)
        if not form.enabled:
            raise ValidationFailed("This form is not accepting submissions.")
        if form.status == "closed":
            raise ValidationFailed("Applications for this form are closed.")
        if form.status == "coming_soon":
            raise ValidationFailed("Applications for this form are not open yet.")
        if user.is_banned and form.id != BAN_APPEAL_FORM_ID:
            raise PermissionDenied("Banned accounts can only submit a ban appeal.")

        answers = validate_responses(form, responses)

        if SUBMISSION_DELAY_SECONDS > 0:
            await asyncio.sleep(SUBMISSION_DELAY_SECONDS)

        settings = await repo.get_settings()
        applications = await repo.get_applications()
        limit = settings.max_applications_per_user
        if limit and form.id != BAN_APPEAL_FORM_ID:
            active = [
                a
                for a in applications
                if a.user_id == user.id and a.status in ACTIVE_STATUSES and a.form_id != BAN_APPEAL_FORM_ID
            ]
            if len(active) >= limit:
                raise ValidationFailed(f"You have reached the limit of {limit} active applications.")

        entry = ApplicationEntry(
            user_id=user.id,
            form_id=form.id,
            form_name=form.name,
            username=answers.get("username") or user.display_name,
            user_role=user.role,
            responses=answers,
            **{column: _first_answer(answers, keys) for column, keys in _SUMMARY_SOURCES.items()},
        )
        applications.insert(0, entry)
        await repo.save_applications(applications)
        logger.info("User %s submitted application %s for form %s", user.id, entry.id, form.id)
        return entry

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get_user_applications(repo: PortalRepository, user: UserAccount) -> List[ApplicationEntry]:
        return [a for a in await repo.get_applications() if a.user_id == user.id]

    @staticmethod
    async def get_application(repo: PortalRepository, viewer: UserAccount, app_id: str) -> ApplicationEntry:
        entry = _find(await repo.get_applications(), app_id)
        if entry.user_id != viewer.id and not is_staff(viewer, await repo.get_custom_roles()):
            raise NotFound("Application not found.")
        return entry

    @staticmethod
    async def list_applications(
        repo: PortalRepository,
        actor: UserAccount,
        status: Optional[ApplicationStatus] = None,
        search: Optional[str] = None,
        form_id: Optional[str] = None,
    ) -> List[ApplicationEntry]:
        authorize(actor, Permission.ACCESS_ADMIN, await repo.get_custom_roles())
        applications = await repo.get_applications()
        if status:
            applications = [a for a in applications if a.status == status]
        if form_id:
            applications = [a for a in applications if a.form_id == form_id]
        if search:
            needle = search.strip().lower()
            applications = [
                a
                for a in applications
                if needle in a.username.lower()
                or needle in a.form_name.lower()
                or any(needle in v.lower() for v in a.responses.values())
            ]
        return applications

    @staticmethod
    async def get_stats(repo: PortalRepository, actor: UserAccount) -> ApplicationStats:
        authorize(actor, Permission.ACCESS_ADMIN, await repo.get_custom_roles())
        applications = await repo.get_applications()
        stats = ApplicationStats(total=len(applications))
        for entry in applications:
            setattr(stats, entry.status, getattr(stats, entry.status) + 1)
        return stats

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    @staticmethod
    async def _update(repo: PortalRepository, actor: UserAccount, app_id: str, **changes) -> ApplicationEntry:
        authorize(
            actor,
            Permission.MANAGE_APPLICATIONS,
            await repo.get_custom_roles(),
            "You do not have permission to review applications.",
        )
        applications = await repo.get_applications()
        entry = _find(applications, app_id)
        for key, value in changes.items():
            setattr(entry, key, value)
        await repo.save_applications(applications)
        return entry

    @staticmethod
    async def update_status(
        repo: PortalRepository, actor: UserAccount, app_id: str, status: ApplicationStatus
    ) -> ApplicationEntry:
        entry = await ApplicationService._update(
            repo, actor, app_id, status=status, reviewed_at=datetime.now(timezone.utc)
        )
        logger.info("User %s set application %s to %s", actor.id, app_id, status)
        return entry

    @staticmethod
    async def add_note(repo: PortalRepository, actor: UserAccount, app_id: str, notes: str) -> ApplicationEntry:
        entry = await ApplicationService._update(repo, actor, app_id, notes=notes or None)
        logger.info("User %s updated notes on application %s", actor.id, app_id)
        return entry

    @staticmethod
    async def set_admin_message(
        repo: PortalRepository, actor: UserAccount, app_id: str, message: str
    ) -> ApplicationEntry:
        entry = await ApplicationService._update(repo, actor, app_id, admin_message=message or None)
        logger.info("User %s set the applicant message on %s", actor.id, app_id)
        return entry

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    @staticmethod
    async def delete_application(repo: PortalRepository, actor: UserAccount, app_id: str) -> None:
        await ApplicationService.bulk_delete(repo, actor, [app_id], require_all=True)

    @staticmethod
    async def bulk_delete(
        repo: PortalRepository, actor: UserAccount, app_ids: List[str], require_all: bool = False
    ) -> int:
        """Hard-delete applications and their chat threads.  Returns the count."""
        authorize(
            actor,
            Permission.MANAGE_APPLICATIONS,
            await repo.get_custom_roles(),
            "You do not have permission to delete applications.",
        )
        doomed = set(app_ids)
        applications = await repo.get_applications()
        remaining = [a for a in applications if a.id not in doomed]
        removed = len(applications) - len(remaining)
        if require_all and removed < len(doomed):
            raise NotFound("Application not found.")
        if removed == 0:
            return 0

        await repo.save_applications(remaining)
        chats = await repo.get_chats()
        kept_chats = [c for c in chats if c.app_id not in doomed]
        if len(kept_chats) != len(chats):
            await repo.save_chats(kept_chats)
        logger.info("User %s deleted %d application(s)", actor.id, removed)
        return removed

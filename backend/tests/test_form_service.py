"""
Unit Tests for the form engine: schedules, form CRUD and field editing.

Usage:
    cd backend && pytest tests/test_form_service.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import run
from portal.exceptions import Conflict, NotFound, PermissionDenied, ValidationFailed
from portal.models.forms import (
    AppForm,
    ApplicationSchedule,
    FieldCreate,
    FieldUpdate,
    FormCreate,
    FormUpdate,
)
from portal.scheduler import run_form_schedule_tick
from portal.services.form_service import FormService, apply_schedule, evaluate_schedules

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# Schedule evaluation
# ============================================================================


class TestApplySchedule:
    """Pure schedule transitions."""

    def test_open_date_passed_opens_and_clears(self):
        schedule = ApplicationSchedule(open_date=NOW - timedelta(minutes=1))
        status, schedule, changed = apply_schedule("coming_soon", schedule, NOW)
        assert (status, changed) == ("open", True)
        assert schedule.open_date is None

    def test_open_date_leaves_ending_soon(self):
        schedule = ApplicationSchedule(open_date=NOW - timedelta(minutes=1))
        status, _, changed = apply_schedule("ending_soon", schedule, NOW)
        assert status == "ending_soon"
        assert changed

    def test_close_date_passed_closes(self):
        schedule = ApplicationSchedule(close_date=NOW)
        status, schedule, _ = apply_schedule("open", schedule, NOW)
        assert status == "closed"
        assert schedule.close_date is None

    def test_future_dates_untouched(self):
        schedule = ApplicationSchedule(open_date=NOW + timedelta(days=1), close_date=NOW + timedelta(days=2))
        status, result, changed = apply_schedule("coming_soon", schedule, NOW)
        assert (status, changed) == ("coming_soon", False)
        assert result.open_date == schedule.open_date

    def test_both_due_ends_closed(self):
        schedule = ApplicationSchedule(open_date=NOW - timedelta(hours=2), close_date=NOW - timedelta(hours=1))
        status, _, _ = apply_schedule("coming_soon", schedule, NOW)
        assert status == "closed"

    def test_naive_dates_read_in_schedule_timezone(self):
        # 13:00 in Paris (UTC+2 in June) is 11:00 UTC, already past
        schedule = ApplicationSchedule(close_date=datetime(2025, 6, 1, 13, 0), timezone="Europe/Paris")
        status, _, changed = apply_schedule("open", schedule, NOW)
        assert (status, changed) == ("closed", True)

    def test_unknown_timezone_falls_back_to_utc(self):
        schedule = ApplicationSchedule(close_date=datetime(2025, 6, 1, 11, 0), timezone="Mars/Olympus")
        status, _, _ = apply_schedule("open", schedule, NOW)
        assert status == "closed"

    def test_blank_dates_accepted(self):
        assert ApplicationSchedule(open_date="", close_date="").open_date is None

    def test_evaluate_reports_change_once(self):
        forms = [AppForm(id="a", name="A", schedule=ApplicationSchedule(close_date=NOW))]
        forms, changed = evaluate_schedules(forms, NOW)
        assert changed and forms[0].status == "closed"
        _, changed_again = evaluate_schedules(forms, NOW)
        assert changed_again is False


class TestScheduledReads:
    """Reads and the background tick persist schedule transitions."""

    def _schedule_close(self, repo, admin, form_id="staff-app"):
        run(FormService.update_form(repo, admin, form_id, FormUpdate(schedule=ApplicationSchedule(close_date=NOW))))

    def test_get_form_applies_and_persists(self, repo, team):
        self._schedule_close(repo, team["admin"])
        form = run(FormService.get_form(repo, "staff-app", now=NOW))
        assert form.status == "closed"
        repo.invalidate()
        stored = run(repo.get_settings())
        assert next(f for f in stored.app_forms if f.id == "staff-app").status == "closed"

    def test_open_date_passed_opens_on_next_read(self, repo, team):
        schedule = ApplicationSchedule(open_date=NOW - timedelta(hours=1))
        run(FormService.update_form(repo, team["admin"], "staff-app", FormUpdate(status="coming_soon", schedule=schedule)))
        form = next(f for f in run(FormService.get_app_forms(repo, now=NOW)) if f.id == "staff-app")
        assert form.status == "open"
        assert form.schedule.open_date is None

    def test_save_then_get_round_trip(self, repo, team):
        forms = run(FormService.get_app_forms(repo))
        forms[1].name = "Crew Application"
        forms.append(AppForm(id="event", name="Event", status="ending_soon"))
        run(FormService.save_app_forms(repo, team["admin"], forms))
        assert run(FormService.get_app_forms(repo)) == forms

    def test_tick(self, repo, team):
        self._schedule_close(repo, team["admin"])
        assert run(FormService.tick(repo, now=NOW)) is True
        assert run(FormService.tick(repo, now=NOW)) is False

    def test_tick_applies_site_wide_schedule(self, repo, team):
        run(FormService.save_application_status(repo, team["admin"], "open", ApplicationSchedule(close_date=NOW)))
        run(FormService.tick(repo, now=NOW))
        settings = run(repo.get_settings())
        assert settings.application_status == "closed"
        assert settings.applications_open is False

    def test_application_status_from_legacy_flag(self, repo):
        async def legacy():
            settings = await repo.get_settings()
            settings.application_status = None
            settings.applications_open = False
            await repo.save_settings(settings)

        run(legacy())
        assert run(FormService.get_application_status(repo, now=NOW)) == "closed"


# ============================================================================
# Forms and fields
# ============================================================================


class TestFormCrud:
    """Form builder operations."""

    def test_default_forms_present(self, repo):
        ids = [f.id for f in run(FormService.get_app_forms(repo))]
        assert ids == ["member-app", "staff-app", "ban-appeal"]

    def test_create_form_slug_id(self, repo, team):
        form = run(FormService.create_form(repo, team["admin"], FormCreate(name="Builder Application!")))
        assert form.id == "builder-application-"
        assert form.status == "open"
        assert form.fields == []

    def test_create_duplicate(self, repo, team):
        run(FormService.create_form(repo, team["admin"], FormCreate(name="Event")))
        with pytest.raises(Conflict):
            run(FormService.create_form(repo, team["admin"], FormCreate(name="event")))

    def test_create_requires_permission(self, repo, team):
        with pytest.raises(PermissionDenied):
            run(FormService.create_form(repo, team["manager"], FormCreate(name="Event")))

    def test_member_app_cannot_be_deleted(self, repo, team):
        with pytest.raises(PermissionDenied, match="Cannot delete default form"):
            run(FormService.delete_form(repo, team["admin"], "member-app"))

    def test_delete_form_selects_member_app(self, repo, team):
        assert run(FormService.delete_form(repo, team["admin"], "staff-app")) == "member-app"
        assert "staff-app" not in [f.id for f in run(FormService.get_app_forms(repo))]

    def test_delete_missing_form(self, repo, team):
        with pytest.raises(NotFound):
            run(FormService.delete_form(repo, team["admin"], "nope"))

    def test_save_forms_requires_member_app(self, repo, team):
        with pytest.raises(ValidationFailed):
            run(FormService.save_app_forms(repo, team["admin"], [AppForm(id="x", name="X")]))

    def test_save_forms_rejects_duplicate_ids(self, repo, team):
        forms = [AppForm(id="member-app", name="A"), AppForm(id="member-app", name="B")]
        with pytest.raises(ValidationFailed):
            run(FormService.save_app_forms(repo, team["admin"], forms))

    def test_update_form(self, repo, team):
        form = run(FormService.update_form(repo, team["admin"], "staff-app", FormUpdate(status="coming_soon")))
        assert form.status == "coming_soon"


class TestFieldEditing:
    """Field add/edit/move/toggle/delete."""

    def test_add_field(self, repo, team):
        field = run(FormService.add_field(repo, team["admin"], "member-app", FieldCreate(label="Favourite Block")))
        assert field.id == "favourite-block"
        assert field.enabled

    def test_add_duplicate_field(self, repo, team):
        with pytest.raises(Conflict):
            run(FormService.add_field(repo, team["admin"], "member-app", FieldCreate(label="Age")))

    def test_select_requires_options(self, repo, team):
        with pytest.raises(ValidationFailed):
            run(FormService.add_field(repo, team["admin"], "member-app", FieldCreate(label="Color", type="select")))

    def test_update_field(self, repo, team):
        field = run(
            FormService.update_field(repo, team["admin"], "member-app", "why", FieldUpdate(required=False))
        )
        assert field.required is False

    def test_move_field(self, repo, team):
        fields = run(FormService.move_field(repo, team["admin"], "member-app", "discord", "up"))
        assert [f.id for f in fields][:2] == ["discord", "username"]

    def test_move_past_end_is_noop(self, repo, team):
        fields = run(FormService.move_field(repo, team["admin"], "member-app", "username", "up"))
        assert fields[0].id == "username"

    def test_move_bad_direction(self, repo, team):
        with pytest.raises(ValidationFailed):
            run(FormService.move_field(repo, team["admin"], "member-app", "username", "sideways"))

    def test_disable_and_delete_field(self, repo, team):
        run(FormService.set_field_enabled(repo, team["admin"], "member-app", "discord", False))
        form = run(FormService.get_form(repo, "member-app"))
        assert "discord" not in [f.id for f in form.enabled_fields()]
        run(FormService.delete_field(repo, team["admin"], "member-app", "discord"))
        assert run(FormService.get_form(repo, "member-app")).find_field("discord") is None

    def test_missing_field(self, repo, team):
        with pytest.raises(NotFound):
            run(FormService.delete_field(repo, team["admin"], "member-app", "nope"))


class TestScheduleJob:
    """The APScheduler job wrapper never lets an error escape."""

    def test_tick_job_swallows_store_errors(self, repo, monkeypatch):
        async def broken(*args, **kwargs):
            raise RuntimeError("store offline")

        monkeypatch.setattr(repo, "get_settings", broken)
        run(run_form_schedule_tick(repo))

    def test_tick_job_applies_schedule(self, repo, team):
        past = datetime.now(timezone.utc) - timedelta(minutes=1)
        run(FormService.update_form(repo, team["admin"], "staff-app", FormUpdate(schedule=ApplicationSchedule(close_date=past))))
        run(run_form_schedule_tick(repo))
        settings = run(repo.get_settings())
        assert next(f for f in settings.app_forms if f.id == "staff-app").status == "closed"

"""
Tests for the assignment distribution state machine.
"""
import pytest
from datetime import datetime, timedelta, timezone
from sqlalchemy.exc import OperationalError

from core.exceptions import AuthorizationError, InvalidTransitionError, UpstreamError, ValidationError
from core.tenancy import with_tenant
from models import AssignmentDistribution
from services.assignment_lifecycle import (
    TRANSITIONS,
    DistributionStatus,
    LifecycleEvent,
    apply_transition,
    available_actions,
    days_until_due,
    extend_due_date,
    is_overdue,
    is_terminal,
    lifecycle_progress,
    next_status,
    normalize_status,
)

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class TestNextStatus:
    """Pure transition table checks"""

    def test_happy_path_to_approved(self):
        status = "assigned"
        for event, actor in [
            ("acknowledge", "gym"),
            ("start", "gym"),
            ("submit", "gym"),
            ("begin_review", "admin"),
            ("approve", "admin"),
        ]:
            status = next_status(status, event, actor).to_status.value
        assert status == "approved"

    def test_assigned_cannot_jump_to_submitted(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            next_status("assigned", "submit", "gym")
        assert exc_info.value.error_code == "INVALID_TRANSITION"
        assert exc_info.value.status_code == 422

    def test_start_allowed_without_acknowledge(self):
        assert next_status("assigned", "start", "gym").to_status == DistributionStatus.IN_PROGRESS

    @pytest.mark.parametrize("terminal", ["approved", "rejected", "completed"])
    def test_terminal_states_accept_no_event(self, terminal):
        for event in LifecycleEvent:
            for actor in ("gym", "admin"):
                with pytest.raises(InvalidTransitionError):
                    next_status(terminal, event.value, actor)

    def test_no_transition_leaves_a_terminal_state(self):
        terminal = {DistributionStatus.APPROVED, DistributionStatus.REJECTED}
        assert not [key for key in TRANSITIONS if key[0] in terminal]

    def test_revision_loop_returns_to_in_progress(self):
        assert next_status("submitted", "request_revision", "admin").to_status == DistributionStatus.NEEDS_REVISION
        assert next_status("needs-revision", "resume", "gym").to_status == DistributionStatus.IN_PROGRESS

    def test_gym_cannot_approve(self):
        with pytest.raises(AuthorizationError):
            next_status("submitted", "approve", "gym")

    def test_admin_cannot_fire_gym_events(self):
        with pytest.raises(AuthorizationError):
            next_status("assigned", "acknowledge", "admin")

    def test_unknown_event_is_validation_error(self):
        with pytest.raises(ValidationError):
            next_status("assigned", "teleport", "gym")

    def test_approve_stamps_reviewed_and_completed(self):
        assert next_status("under-review", "approve", "admin").stamps == ("reviewed_at", "completed_at")


class TestStatusHelpers:
    def test_completed_normalizes_to_approved(self):
        assert normalize_status("completed") == DistributionStatus.APPROVED
        assert normalize_status(" Approved ") == DistributionStatus.APPROVED

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            normalize_status("archived")

    def test_is_terminal(self):
        assert is_terminal("approved")
        assert is_terminal("completed")
        assert is_terminal("rejected")
        assert not is_terminal("needs-revision")

    def test_available_actions(self):
        assert available_actions("assigned") == ["acknowledge", "start"]
        assert available_actions("acknowledged") == ["start"]
        assert available_actions("in-progress") == ["submit"]
        assert available_actions("needs-revision") == ["resume"]
        assert available_actions("submitted") == []
        assert available_actions("submitted", actor="admin") == ["begin_review", "approve", "request_revision", "reject"]

    def test_lifecycle_progress_lookup(self):
        assert lifecycle_progress("approved") == 100
        assert lifecycle_progress("completed") == 100
        assert lifecycle_progress("submitted") == 80
        assert lifecycle_progress("under-review") == 80
        assert lifecycle_progress("in-progress") == 40
        assert lifecycle_progress("acknowledged") == 20
        assert lifecycle_progress("assigned") == 0
        assert lifecycle_progress("needs-revision") == 0


class TestOverdue:
    def test_past_due_and_open_is_overdue(self):
        assert is_overdue(NOW - timedelta(hours=1), "in-progress", NOW)

    def test_done_is_never_overdue(self):
        assert not is_overdue(NOW - timedelta(days=3), "approved", NOW)
        assert not is_overdue(NOW - timedelta(days=3), "completed", NOW)

    def test_future_due_is_not_overdue(self):
        assert not is_overdue(NOW + timedelta(minutes=1), "assigned", NOW)

    def test_naive_due_date_treated_as_utc(self):
        assert is_overdue(datetime(2026, 3, 1, 12, 0), "assigned", NOW)

    def test_days_until_due_rounds_up(self):
        assert days_until_due(NOW + timedelta(days=2, hours=1), NOW) == 3
        assert days_until_due(NOW - timedelta(days=1), NOW) == -1


class TestApplyTransition:
    """Transitions persisted through the tenant scope"""

    def test_acknowledge_writes_status_and_timestamp(self, db_session, scope_a, gym_a, make_distribution):
        d = make_distribution(gym_a)
        result = apply_transition(scope_a, d.id, "acknowledge", now=NOW)
        assert result.success
        db_session.expire_all()
        stored = db_session.get(AssignmentDistribution, d.id)
        assert stored.status == "acknowledged"
        assert stored.acknowledged_at is not None

    def test_invalid_transition_is_tagged_failure(self, scope_a, gym_a, make_distribution):
        d = make_distribution(gym_a)
        result = apply_transition(scope_a, d.id, "submit")
        assert not result.success
        assert result.error_code == "INVALID_TRANSITION"
        with pytest.raises(InvalidTransitionError):
            result.unwrap()

    def test_submit_without_uploads_is_refused(self, db_session, scope_a, gym_a, make_distribution):
        d = make_distribution(gym_a, status="in-progress")
        result = apply_transition(scope_a, d.id, "submit")
        assert isinstance(result.error, ValidationError)
        assert result.error_code == "VALIDATION_ERROR_FILES"
        db_session.expire_all()
        assert db_session.get(AssignmentDistribution, d.id).status == "in-progress"

    def test_submit_with_an_upload_succeeds(self, scope_a, gym_a, make_distribution, make_submission):
        d = make_distribution(gym_a, status="in-progress")
        make_submission(d)
        result = apply_transition(scope_a, d.id, "submit", now=NOW)
        assert result.success
        assert result.value.status == "submitted"
        assert result.value.submitted_at is not None

    def test_uploads_for_another_assignment_do_not_count(self, scope_a, gym_a, make_distribution, make_submission):
        other = make_distribution(gym_a, status="in-progress")
        make_submission(other)
        d = make_distribution(gym_a, status="in-progress")
        assert apply_transition(scope_a, d.id, "submit").error_code == "VALIDATION_ERROR_FILES"

    def test_other_gym_cannot_touch_distribution(self, db_session, gym_a, gym_b, make_distribution):
        d = make_distribution(gym_a)
        result = apply_transition(with_tenant(db_session, gym_b), d.id, "acknowledge")
        assert not result.success
        assert isinstance(result.error, AuthorizationError)

    def test_admin_review_records_notes(self, db_session, admin_scope, gym_a, make_distribution):
        d = make_distribution(gym_a, status="submitted")
        result = apply_transition(admin_scope, d.id, "request_revision", admin_notes="Reshoot in landscape", now=NOW)
        assert result.success
        assert result.value.status == "needs-revision"
        assert result.value.admin_notes == "Reshoot in landscape"
        assert result.value.reviewed_at is not None

    def test_member_cannot_fire_admin_event(self, scope_a, gym_a, make_distribution):
        d = make_distribution(gym_a, status="submitted")
        result = apply_transition(scope_a, d.id, "approve")
        assert isinstance(result.error, AuthorizationError)

    def test_approved_never_regresses(self, admin_scope, scope_a, gym_a, make_distribution):
        d = make_distribution(gym_a, status="approved")
        for scope, event in [(scope_a, "start"), (scope_a, "resume"), (admin_scope, "request_revision")]:
            assert not apply_transition(scope, d.id, event).success
        assert apply_transition(scope_a, d.id, "start").error_code == "INVALID_TRANSITION"

    def test_missing_distribution_is_not_found(self, scope_a):
        result = apply_transition(scope_a, 424242, "acknowledge")
        assert result.error.status_code == 404

    def test_commit_failure_rolls_back_and_surfaces_upstream(self, db_session, scope_a, gym_a, make_distribution, monkeypatch):
        d = make_distribution(gym_a)

        def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(db_session, "commit", failing_commit)
        monkeypatch.setattr("services.assignment_lifecycle.time.sleep", lambda s: None)

        result = apply_transition(scope_a, d.id, "acknowledge")
        assert isinstance(result.error, UpstreamError)

        monkeypatch.undo()
        db_session.expire_all()
        stored = db_session.get(AssignmentDistribution, d.id)
        assert stored.status == "assigned"
        assert stored.acknowledged_at is None


class TestExtendDueDate:
    def test_admin_extends_open_assignment(self, admin_scope, gym_a, make_distribution):
        d = make_distribution(gym_a)
        new_due = NOW + timedelta(days=30)
        result = extend_due_date(admin_scope, d.id, new_due)
        assert result.success
        assert result.value.due_date.replace(tzinfo=timezone.utc) == new_due

    def test_member_cannot_extend(self, scope_a, gym_a, make_distribution):
        d = make_distribution(gym_a)
        assert isinstance(extend_due_date(scope_a, d.id, NOW).error, AuthorizationError)

    def test_finished_assignment_cannot_be_extended(self, admin_scope, gym_a, make_distribution):
        d = make_distribution(gym_a, status="approved")
        result = extend_due_date(admin_scope, d.id, NOW + timedelta(days=3))
        assert isinstance(result.error, ValidationError)

"""
Assignment Distribution Lifecycle

Status state machine for one gym's assignment:

    assigned -> acknowledged -> in-progress -> submitted -> under-review
        -> approved | needs-revision -> in-progress (resubmit loop) | rejected

Rules:
- States cannot be skipped (assigned -> submitted is invalid).
- Terminal states (approved, rejected) accept no further events.
- "completed" is a legacy synonym of "approved" and is normalized on read and write.
- Every transition writes its status and timestamp(s) in one commit.
- Overdue is derived on every read, never stored.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple
import logging
import math
import time

from sqlalchemy.exc import SQLAlchemyError

from core.clock import as_utc, utcnow
from core.config import settings
from core.exceptions import AuthorizationError, InvalidTransitionError, UpstreamError, ValidationError
from core.tenancy import TenantScope
from models import AssignmentDistribution, FormatSubmission
from services.results import ServiceResult, run_service

logger = logging.getLogger(__name__)


class DistributionStatus(str, Enum):
    ASSIGNED = "assigned"
    ACKNOWLEDGED = "acknowledged"
    IN_PROGRESS = "in-progress"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under-review"
    APPROVED = "approved"
    NEEDS_REVISION = "needs-revision"
    REJECTED = "rejected"


class LifecycleEvent(str, Enum):
    ACKNOWLEDGE = "acknowledge"
    START = "start"
    SUBMIT = "submit"
    BEGIN_REVIEW = "begin_review"
    APPROVE = "approve"
    REQUEST_REVISION = "request_revision"
    REJECT = "reject"
    RESUME = "resume"


class Actor(str, Enum):
    GYM = "gym"
    ADMIN = "admin"


# Single terminal "done" value; "completed" rows from older data map onto it.
LEGACY_STATUS_ALIASES = {"completed": DistributionStatus.APPROVED.value}

TERMINAL_STATUSES = frozenset({DistributionStatus.APPROVED, DistributionStatus.REJECTED})

# Statuses that count as done for overdue and completion counting.
DONE_STATUSES = frozenset({"approved", "completed"})

ACTIVE_STATUSES = frozenset({"assigned", "acknowledged", "in-progress"})
AWAITING_REVIEW_STATUSES = frozenset({"submitted"})


@dataclass(frozen=True)
class Transition:
    to_status: DistributionStatus
    actor: Actor
    stamps: Tuple[str, ...]


S = DistributionStatus
E = LifecycleEvent

TRANSITIONS: Dict[Tuple[DistributionStatus, LifecycleEvent], Transition] = {
    (S.ASSIGNED, E.ACKNOWLEDGE): Transition(S.ACKNOWLEDGED, Actor.GYM, ("acknowledged_at",)),
    (S.ASSIGNED, E.START): Transition(S.IN_PROGRESS, Actor.GYM, ("started_at",)),
    (S.ACKNOWLEDGED, E.START): Transition(S.IN_PROGRESS, Actor.GYM, ("started_at",)),
    (S.IN_PROGRESS, E.SUBMIT): Transition(S.SUBMITTED, Actor.GYM, ("submitted_at",)),
    (S.SUBMITTED, E.BEGIN_REVIEW): Transition(S.UNDER_REVIEW, Actor.ADMIN, ()),
    (S.SUBMITTED, E.APPROVE): Transition(S.APPROVED, Actor.ADMIN, ("reviewed_at", "completed_at")),
    (S.UNDER_REVIEW, E.APPROVE): Transition(S.APPROVED, Actor.ADMIN, ("reviewed_at", "completed_at")),
    (S.SUBMITTED, E.REQUEST_REVISION): Transition(S.NEEDS_REVISION, Actor.ADMIN, ("reviewed_at",)),
    (S.UNDER_REVIEW, E.REQUEST_REVISION): Transition(S.NEEDS_REVISION, Actor.ADMIN, ("reviewed_at",)),
    (S.SUBMITTED, E.REJECT): Transition(S.REJECTED, Actor.ADMIN, ("reviewed_at",)),
    (S.UNDER_REVIEW, E.REJECT): Transition(S.REJECTED, Actor.ADMIN, ("reviewed_at",)),
    (S.NEEDS_REVISION, E.RESUME): Transition(S.IN_PROGRESS, Actor.GYM, ("started_at",)),
}

ADMIN_EVENTS = frozenset(
    event for (_, event), transition in TRANSITIONS.items() if transition.actor == Actor.ADMIN
)

del S, E

# Coarse, status-based progress bar value. Not derived from uploads.
LIFECYCLE_PROGRESS = {
    "approved": 100,
    "completed": 100,
    "submitted": 80,
    "under-review": 80,
    "in-progress": 40,
    "acknowledged": 20,
    "assigned": 0,
}


def normalize_status(status: Optional[str]) -> DistributionStatus:
    """Map a stored/input status to the canonical enum (completed -> approved)."""
    raw = (status or "").strip().lower()
    raw = LEGACY_STATUS_ALIASES.get(raw, raw)
    try:
        return DistributionStatus(raw)
    except ValueError:
        raise ValidationError(f"Unknown assignment status: {status}", field="status")


def parse_event(event: str) -> LifecycleEvent:
    try:
        return LifecycleEvent(event)
    except ValueError:
        raise ValidationError(f"Unknown lifecycle event: {event}", field="event")


def is_terminal(status: Optional[str]) -> bool:
    return normalize_status(status) in TERMINAL_STATUSES


def next_status(current: str, event: str, actor: str) -> Transition:
    """
    Resolve a lifecycle event against the current status.

    Raises InvalidTransitionError for any (status, event) pair outside the
    transition table, and AuthorizationError when the wrong actor fires it.
    """
    current_status = normalize_status(current)
    lifecycle_event = parse_event(event)

    transition = TRANSITIONS.get((current_status, lifecycle_event))
    if transition is None:
        raise InvalidTransitionError(current_status.value, lifecycle_event.value)
    if transition.actor != Actor(actor):
        raise AuthorizationError(f"Only the {transition.actor.value} can {lifecycle_event.value} an assignment")
    return transition


def available_actions(status: Optional[str], actor: str = Actor.GYM.value) -> List[str]:
    """Events the given actor may fire from this status, in table order."""
    current_status = normalize_status(status)
    return [
        event.value
        for (from_status, event), transition in TRANSITIONS.items()
        if from_status == current_status and transition.actor == Actor(actor)
    ]


def is_overdue(due_date: Optional[datetime], status: Optional[str], now: Optional[datetime] = None) -> bool:
    """due_date < now and the assignment is not done. The only overdue predicate in the codebase."""
    if due_date is None:
        return False
    now = as_utc(now) if now is not None else utcnow()
    return as_utc(due_date) < now and (status or "").strip().lower() not in DONE_STATUSES


def lifecycle_progress(status: Optional[str]) -> int:
    """0-100 progress bar value looked up from the status alone."""
    return LIFECYCLE_PROGRESS.get((status or "").strip().lower(), 0)


def days_until_due(due_date: datetime, now: Optional[datetime] = None) -> int:
    """Whole days until due, rounded up; negative once past due."""
    now = as_utc(now) if now is not None else utcnow()
    delta = as_utc(due_date) - now
    return math.ceil(delta.total_seconds() / 86400)


def _require_uploads(db, distribution: AssignmentDistribution) -> None:
    uploaded = (
        db.query(FormatSubmission.id)
        .filter(FormatSubmission.distribution_id == distribution.id)
        .first()
    )
    if uploaded is None:
        raise ValidationError("Please upload at least one file before submitting", field="files")


def _apply_transition(
    scope: TenantScope,
    distribution_id: int,
    event: str,
    admin_notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> AssignmentDistribution:
    db = scope.db
    actor = Actor.ADMIN.value if parse_event(event) in ADMIN_EVENTS else Actor.GYM.value
    if actor == Actor.ADMIN.value:
        scope.require_admin()

    attempts = settings.EXTERNAL_API_RETRY_ATTEMPTS
    for attempt in range(1, attempts + 1):
        distribution = scope.get(AssignmentDistribution, distribution_id, resource="Assignment")
        if actor == Actor.GYM.value and distribution.assigned_to_gym_id != scope.gym_id:
            raise AuthorizationError("Only the assigned gym can update this assignment")

        previous = distribution.status
        transition = next_status(previous, event, actor)
        if parse_event(event) == LifecycleEvent.SUBMIT:
            _require_uploads(db, distribution)
        stamp = as_utc(now) if now is not None else utcnow()

        try:
            distribution.status = transition.to_status.value
            for field in transition.stamps:
                setattr(distribution, field, stamp)
            if admin_notes is not None and actor == Actor.ADMIN.value:
                distribution.admin_notes = admin_notes
            db.commit()
        except SQLAlchemyError as e:
            # Status and timestamp go together or not at all.
            db.rollback()
            if attempt == attempts:
                logger.error(
                    f"Lifecycle transition failed after {attempts} attempts",
                    exc_info=True,
                    extra={"extra_fields": {"distribution_id": distribution_id, "event": event}},
                )
                raise UpstreamError("Could not update assignment, please retry", cause=e) from e
            logger.warning(f"Lifecycle transition attempt {attempt} failed, retrying...")
            time.sleep(0.1 * (2 ** (attempt - 1)))
            continue

        db.refresh(distribution)
        logger.info(
            f"Assignment {distribution_id}: {previous} -> {distribution.status}",
            extra={"extra_fields": {
                "distribution_id": distribution_id,
                "event": event,
                "gym_id": distribution.assigned_to_gym_id,
                "actor_gym_id": scope.gym_id,
            }},
        )
        return distribution

    raise UpstreamError("Could not update assignment, please retry")


def apply_transition(
    scope: TenantScope,
    distribution_id: int,
    event: str,
    admin_notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ServiceResult[AssignmentDistribution]:
    """Fire a lifecycle event on one distribution within the caller's tenant scope."""
    return run_service(_apply_transition, scope, distribution_id, event, admin_notes=admin_notes, now=now)


def _extend_due_date(scope: TenantScope, distribution_id: int, new_due_date: datetime) -> AssignmentDistribution:
    scope.require_admin()
    distribution = scope.get(AssignmentDistribution, distribution_id, resource="Assignment")
    if is_terminal(distribution.status):
        raise ValidationError("Cannot extend a finished assignment", field="due_date")
    if new_due_date is None:
        raise ValidationError("Due date is required", field="due_date")

    # Previous value is overwritten, no history is kept.
    distribution.due_date = as_utc(new_due_date)
    try:
        scope.db.commit()
    except SQLAlchemyError as e:
        scope.db.rollback()
        raise UpstreamError("Could not extend due date, please retry", cause=e) from e
    scope.db.refresh(distribution)
    return distribution


def extend_due_date(scope: TenantScope, distribution_id: int, new_due_date: datetime) -> ServiceResult[AssignmentDistribution]:
    """Admin due-date extension."""
    return run_service(_extend_due_date, scope, distribution_id, new_due_date)

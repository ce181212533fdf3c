"""
Gym-side assignment views.

Resolves per-gym overrides against the shared template and attaches the
derived fields (overdue, days until due, lifecycle progress, allowed actions)
computed at read time.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from core.clock import as_utc, utcnow
from core.tenancy import TenantScope
from models import AssignmentDistribution, ContentFormat
from services.assignment_lifecycle import (
    DONE_STATUSES,
    available_actions,
    days_until_due,
    is_overdue,
    lifecycle_progress,
    normalize_status,
)

UNTITLED = "Untitled Assignment"
NO_DESCRIPTION = "No description provided"
DEFAULT_PRIORITY = "medium"
DASHBOARD_LIMIT = 6


@dataclass
class AssignmentView:
    id: int
    title: str
    description: str
    priority: str
    status: str
    due_date: datetime
    created_at: datetime
    is_overdue: bool
    days_until_due: int
    progress: int
    available_actions: List[str]
    formats: List[ContentFormat] = field(default_factory=list)
    setup_planning: Optional[str] = None
    production_tips: Optional[str] = None
    clips_required: Optional[int] = None
    content_requirements: list = field(default_factory=list)
    admin_notes: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None


def _active_formats(db: Session) -> dict:
    return {f.format_key: f for f in db.query(ContentFormat).filter(ContentFormat.is_active.is_(True)).all()}


def build_view(distribution: AssignmentDistribution, formats_by_key: dict, now: datetime) -> AssignmentView:
    template = distribution.template
    status = distribution.status
    required = (template.formats_required if template is not None else None) or []

    return AssignmentView(
        id=distribution.id,
        title=distribution.custom_title or (template.title if template else None) or UNTITLED,
        description=distribution.custom_description or (template.description if template else None) or NO_DESCRIPTION,
        priority=distribution.priority_override or (template.priority if template else None) or DEFAULT_PRIORITY,
        status=status,
        due_date=as_utc(distribution.due_date),
        created_at=as_utc(distribution.created_at),
        is_overdue=is_overdue(distribution.due_date, status, now),
        days_until_due=days_until_due(distribution.due_date, now),
        progress=lifecycle_progress(status),
        available_actions=available_actions(status),
        # Format keys no longer in the active catalog are dropped from the view.
        formats=[formats_by_key[k] for k in required if k in formats_by_key],
        setup_planning=template.setup_planning if template else None,
        production_tips=template.production_tips if template else None,
        clips_required=template.clips_required if template else None,
        content_requirements=(template.content_requirements if template else None) or [],
        admin_notes=distribution.admin_notes,
        acknowledged_at=as_utc(distribution.acknowledged_at),
        started_at=as_utc(distribution.started_at),
        submitted_at=as_utc(distribution.submitted_at),
        reviewed_at=as_utc(distribution.reviewed_at),
    )


def _matches_status(status: str, wanted: str) -> bool:
    if wanted == "approved":
        return status in DONE_STATUSES
    return status == wanted


def list_gym_assignments(
    scope: TenantScope,
    status: Optional[str] = None,
    search: Optional[str] = None,
    gym_id: Optional[str] = None,
    now: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> List[AssignmentView]:
    """One gym's assignments, newest first."""
    now = as_utc(now) if now is not None else utcnow()
    wanted = normalize_status(status).value if status and status != "all" else None

    rows = (
        scope.query_for_gym(AssignmentDistribution, gym_id or scope.gym_id)
        .order_by(AssignmentDistribution.created_at.desc(), AssignmentDistribution.id.desc())
        .all()
    )
    formats_by_key = _active_formats(scope.db)
    views = [build_view(d, formats_by_key, now) for d in rows if wanted is None or _matches_status(d.status, wanted)]

    if search:
        needle = search.strip().lower()
        views = [v for v in views if needle in v.title.lower() or needle in v.description.lower()]
    if limit is not None:
        views = views[:limit]
    return views


def get_gym_assignment(scope: TenantScope, distribution_id: int, now: Optional[datetime] = None) -> AssignmentView:
    now = as_utc(now) if now is not None else utcnow()
    distribution = scope.get(AssignmentDistribution, distribution_id, resource="Assignment")
    return build_view(distribution, _active_formats(scope.db), now)


def dashboard_assignments(scope: TenantScope, limit: int = DASHBOARD_LIMIT, now: Optional[datetime] = None) -> List[AssignmentView]:
    """Most recent assignments for the gym dashboard."""
    return list_gym_assignments(scope, now=now, limit=limit)

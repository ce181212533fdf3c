"""
Gym Performance Classifier

Labels each gym's assignment health for the admin dashboard.

Classification (first match wins):
    1. critical   overdue > 0 or completion rate < 50
    2. warning    completion rate < 80 or average response > 7 days
    3. good       completion rate < 95
    4. excellent

A gym with no assignments at all is labelled `warning`: it has nothing
overdue and nothing completed, so neither "critical" nor a healthy label
describes it.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional
import logging

from core.clock import as_utc, utcnow
from core.tenancy import TenantScope
from models import AssignmentDistribution, GymTenant
from services.assignment_lifecycle import ACTIVE_STATUSES, AWAITING_REVIEW_STATUSES, DONE_STATUSES, is_overdue
from services.format_progress import round_half_up

logger = logging.getLogger(__name__)

CRITICAL_COMPLETION_RATE = 50
WARNING_COMPLETION_RATE = 80
GOOD_COMPLETION_RATE = 95
WARNING_RESPONSE_DAYS = 7


class GymHealth(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class GymPerformance:
    id: str
    gym_name: str
    gym_location: Optional[str]
    total_assignments: int
    completed_assignments: int
    overdue_assignments: int
    in_progress_assignments: int
    completion_rate: int
    average_response_time: float
    last_submission: Optional[datetime]
    status: GymHealth


def completion_rate(total: int, completed: int) -> int:
    """Rounded percentage of completed assignments; 0 when there are none."""
    if total <= 0:
        return 0
    return round_half_up(completed / total * 100)


def average_response_time_days(distributions: Iterable[Any]) -> float:
    """
    Mean days from creation to submission.

    Distributions never submitted are excluded from the mean; 0.0 when none
    have been submitted.
    """
    durations = [
        (as_utc(d.submitted_at) - as_utc(d.created_at)).total_seconds() / 86400
        for d in distributions
        if d.submitted_at is not None and d.created_at is not None
    ]
    if not durations:
        return 0.0
    return sum(durations) / len(durations)


def classify_gym(total: int, completed: int, overdue: int, avg_response_days: float) -> GymHealth:
    if total == 0:
        return GymHealth.WARNING

    rate = completion_rate(total, completed)
    if overdue > 0 or rate < CRITICAL_COMPLETION_RATE:
        return GymHealth.CRITICAL
    if rate < WARNING_COMPLETION_RATE or avg_response_days > WARNING_RESPONSE_DAYS:
        return GymHealth.WARNING
    if rate < GOOD_COMPLETION_RATE:
        return GymHealth.GOOD
    return GymHealth.EXCELLENT


def _gym_performance(gym: GymTenant, distributions: List[AssignmentDistribution], now: datetime) -> GymPerformance:
    total = len(distributions)
    completed = sum(1 for d in distributions if d.status in DONE_STATUSES)
    overdue = sum(1 for d in distributions if is_overdue(d.due_date, d.status, now))
    in_progress = sum(1 for d in distributions if d.status in ACTIVE_STATUSES)
    avg_days = average_response_time_days(distributions)

    submitted = [as_utc(d.submitted_at) for d in distributions if d.submitted_at is not None]

    return GymPerformance(
        id=gym.id,
        gym_name=gym.gym_name,
        gym_location=gym.gym_location,
        total_assignments=total,
        completed_assignments=completed,
        overdue_assignments=overdue,
        in_progress_assignments=in_progress,
        completion_rate=completion_rate(total, completed),
        average_response_time=round_half_up(avg_days * 10) / 10,
        last_submission=max(submitted) if submitted else None,
        status=classify_gym(total, completed, overdue, avg_days),
    )


def build_gym_performance(
    gyms: Iterable[GymTenant],
    distributions: Iterable[AssignmentDistribution],
    now: Optional[datetime] = None,
) -> List[GymPerformance]:
    """One performance row per gym, in the order the gyms are given."""
    now = as_utc(now) if now is not None else utcnow()
    by_gym: Dict[str, List[AssignmentDistribution]] = {}
    for d in distributions:
        by_gym.setdefault(d.assigned_to_gym_id, []).append(d)
    return [_gym_performance(gym, by_gym.get(gym.id, []), now) for gym in gyms]


def gym_performance_report(scope: TenantScope, now: Optional[datetime] = None) -> List[GymPerformance]:
    """Admin dashboard: performance of every active gym."""
    scope.require_admin()
    db = scope.db
    gyms = (
        db.query(GymTenant)
        .filter(GymTenant.active.is_(True))
        .order_by(GymTenant.gym_name, GymTenant.id)
        .all()
    )
    distributions = scope.query(AssignmentDistribution).all()
    report = build_gym_performance(gyms, distributions, now)
    logger.info(
        "Built gym performance report",
        extra={"extra_fields": {
            "gyms": len(report),
            "critical": sum(1 for g in report if g.status == GymHealth.CRITICAL),
        }},
    )
    return report


def admin_stats(scope: TenantScope, now: Optional[datetime] = None) -> Dict[str, int]:
    """Headline numbers for the admin overview."""
    scope.require_admin()
    now = as_utc(now) if now is not None else utcnow()
    db = scope.db

    total_gyms = db.query(GymTenant).filter(GymTenant.active.is_(True)).count()
    distributions = scope.query(AssignmentDistribution).all()

    total = len(distributions)
    completed = sum(1 for d in distributions if d.status in DONE_STATUSES)
    return {
        "total_gyms": total_gyms,
        "total_assignments": total,
        "active_assignments": sum(1 for d in distributions if d.status in ACTIVE_STATUSES),
        "overdue_assignments": sum(1 for d in distributions if is_overdue(d.due_date, d.status, now)),
        "pending_review": sum(1 for d in distributions if d.status in AWAITING_REVIEW_STATUSES),
        "completed_assignments": completed,
        "completion_rate": completion_rate(total, completed),
    }


def gym_dashboard_stats(scope: TenantScope, now: Optional[datetime] = None) -> Dict[str, int]:
    """Counters for the signed-in gym's own dashboard."""
    now = as_utc(now) if now is not None else utcnow()
    distributions = scope.query_for_gym(AssignmentDistribution, scope.gym_id).all()
    return {
        "total_assignments": len(distributions),
        "active_assignments": sum(1 for d in distributions if d.status in ACTIVE_STATUSES),
        "completed_assignments": sum(1 for d in distributions if d.status in DONE_STATUSES),
        "overdue_assignments": sum(1 for d in distributions if is_overdue(d.due_date, d.status, now)),
    }

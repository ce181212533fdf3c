"""
Format Progress Aggregation

Turns FormatSubmission rows into per-(gym, format) counters and completion
percentages.

Two different progress models exist and stay separate:
- upload_progress(): real counts, approved uploads against the format quota
- assignment_lifecycle.lifecycle_progress(): fixed lookup from the assignment status

Counter rules (each counted row lands in exactly one bucket):
    completed_count = #approved
    pending_count   = #pending
    revision_count  = #needs_revision + #rejected

Resubmissions add rows without retiring old ones. Raw counters keep every
row for audit; `outstanding_revision_count` drops revision rows that a later
upload for the same (gym, format) has answered.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from core.clock import as_utc, utcnow
from models import ContentFormat, FormatProgress, FormatSubmission

logger = logging.getLogger(__name__)

SUBMISSION_STATUSES = ("pending", "approved", "needs_revision", "rejected")
REVISION_STATUSES = frozenset({"needs_revision", "rejected"})


@dataclass
class ProgressCounts:
    """Aggregated counters for one (gym, format) pair."""
    completed_count: int = 0
    pending_count: int = 0
    revision_count: int = 0
    outstanding_revision_count: int = 0
    last_submission_date: Optional[datetime] = None

    @property
    def total_counted(self) -> int:
        return self.completed_count + self.pending_count + self.revision_count


@dataclass
class ProgressSummary:
    """Totals across every format for one gym."""
    total_completed: int = 0
    total_pending: int = 0
    total_revisions: int = 0
    overall_progress: int = 0
    format_progress: Dict[str, FormatProgress] = field(default_factory=dict)


def round_half_up(value: float) -> int:
    """Math.round semantics: .5 always rounds up (Python's round() is banker's)."""
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def aggregate_submissions(rows: Iterable[Any]) -> ProgressCounts:
    """
    Count submission rows by status.

    Rows only need `.status` and `.submitted_at`. Rows with a status outside
    SUBMISSION_STATUSES are ignored.
    """
    counts = ProgressCounts()
    rows = list(rows)
    ordered = sorted(
        (r for r in rows if r.submitted_at is not None),
        key=lambda r: as_utc(r.submitted_at),
    )
    undated = [r for r in rows if r.submitted_at is None]

    open_revisions = 0
    for row in ordered + undated:
        status = row.status
        if status == "approved":
            counts.completed_count += 1
        elif status == "pending":
            counts.pending_count += 1
        elif status in REVISION_STATUSES:
            counts.revision_count += 1
        else:
            continue

        if status in REVISION_STATUSES:
            open_revisions += 1
        elif open_revisions > 0:
            # A newer upload answers the oldest open revision request.
            open_revisions -= 1

        if row.submitted_at is not None:
            submitted_at = as_utc(row.submitted_at)
            if counts.last_submission_date is None or submitted_at > counts.last_submission_date:
                counts.last_submission_date = submitted_at

    counts.outstanding_revision_count = open_revisions
    return counts


def upload_progress(completed_count: int, total_required: int) -> int:
    """
    Completion percentage for one format quota, clamped to [0, 100].

    Approved uploads beyond the quota still count in the raw counters but
    never push the display past 100.
    """
    if not total_required or total_required <= 0:
        return 0
    pct = round_half_up(completed_count / total_required * 100)
    return max(0, min(100, pct))


def recalculate_format_progress(db: Session, gym_id: str, format_id: UUID) -> FormatProgress:
    """
    Recompute and upsert the cached counters for one (gym, format).

    Flushes but does not commit: callers commit together with the write
    that changed the submissions.
    """
    rows = (
        db.query(FormatSubmission)
        .filter(FormatSubmission.gym_id == gym_id, FormatSubmission.format_id == format_id)
        .all()
    )
    counts = aggregate_submissions(rows)

    progress = (
        db.query(FormatProgress)
        .filter(FormatProgress.gym_id == gym_id, FormatProgress.format_id == format_id)
        .first()
    )
    if progress is None:
        progress = FormatProgress(gym_id=gym_id, format_id=format_id)
        db.add(progress)

    progress.completed_count = counts.completed_count
    progress.pending_count = counts.pending_count
    progress.revision_count = counts.revision_count
    progress.last_submission_date = counts.last_submission_date
    progress.calculated_at = utcnow()
    db.flush()

    logger.debug(
        "Recalculated format progress",
        extra={"extra_fields": {
            "gym_id": gym_id,
            "format_id": str(format_id),
            "completed": counts.completed_count,
            "pending": counts.pending_count,
            "revisions": counts.revision_count,
        }},
    )
    return progress


def progress_summary(progress_rows: Iterable[FormatProgress], format_keys: Optional[Dict[UUID, str]] = None) -> ProgressSummary:
    """
    Totals across formats.

    overall_progress = approved share of everything submitted, 0 when nothing
    has been submitted yet.
    """
    summary = ProgressSummary()
    for progress in progress_rows:
        summary.total_completed += progress.completed_count
        summary.total_pending += progress.pending_count
        summary.total_revisions += progress.revision_count
        key = (format_keys or {}).get(progress.format_id, str(progress.format_id))
        summary.format_progress[key] = progress

    total = summary.total_completed + summary.total_pending + summary.total_revisions
    summary.overall_progress = round_half_up(summary.total_completed / total * 100) if total > 0 else 0
    return summary


def format_progress_report(db: Session, gym_id: str, formats: List[ContentFormat]) -> List[Dict[str, Any]]:
    """
    Per-format view for one gym computed from the submission rows.

    The cached FormatProgress table is not read here: the report is always
    recomputed so it cannot drift.
    """
    rows_by_format: Dict[UUID, List[FormatSubmission]] = {}
    for row in db.query(FormatSubmission).filter(FormatSubmission.gym_id == gym_id).all():
        rows_by_format.setdefault(row.format_id, []).append(row)

    report = []
    for fmt in formats:
        counts = aggregate_submissions(rows_by_format.get(fmt.id, []))
        report.append({
            "format_id": fmt.id,
            "format_key": fmt.format_key,
            "title": fmt.title,
            "total_required": fmt.total_required,
            "completed_count": counts.completed_count,
            "pending_count": counts.pending_count,
            "revision_count": counts.revision_count,
            "outstanding_revision_count": counts.outstanding_revision_count,
            "last_submission_date": counts.last_submission_date,
            "percent_complete": upload_progress(counts.completed_count, fmt.total_required),
        })
    return report

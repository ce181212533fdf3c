"""
Format Submissions

Gym uploads against a content format, and admin review of those uploads.

Upload batches are all-or-nothing at the record level: files go to the
object store in parallel, every upload is awaited, and submission rows are
only written when every file made it. Objects already stored by a failed
batch stay in the bucket (the object store has no delete contract).
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence
from uuid import UUID
import logging
import mimetypes
import os

from fastapi import Request
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from core.clock import as_utc, utcnow
from core.config import settings
from core.exceptions import AuthorizationError, UpstreamError, ValidationError
from core.tenancy import TenantScope
from models import AssignmentDistribution, FormatSubmission, GymTenant
from services.admin_audit import record_admin_audit_event
from services.content_catalog import get_format
from services.format_progress import recalculate_format_progress
from services.object_storage import ObjectStore
from services.results import ServiceResult, run_service

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif")
VIDEO_EXTENSIONS = (".mp4", ".mov", ".avi", ".mkv")

REVIEW_DECISIONS = ("approved", "needs_revision", "rejected")

# Files not tied to an assignment are filed under the content library.
LIBRARY_FOLDER = "library"


@dataclass
class UploadedFile:
    file_name: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class SubmissionListing:
    submissions: List[FormatSubmission]
    counts: Dict[str, int] = field(default_factory=dict)


def file_extension(file_name: str) -> str:
    return os.path.splitext(file_name or "")[1].lower()


def classify_file_type(file_name: str) -> str:
    """`image` or `video` from the extension; anything else is rejected."""
    ext = file_extension(file_name)
    if ext in IMAGE_EXTENSIONS:
        return "image"
    if ext in VIDEO_EXTENSIONS:
        return "video"
    allowed = ", ".join(IMAGE_EXTENSIONS + VIDEO_EXTENSIONS)
    raise ValidationError(f"File type not allowed: {file_name or '(unnamed)'} (allowed: {allowed})", field="files")


def build_object_path(gym_id: str, distribution_id: Optional[int], format_key: str, timestamp_ms: int, index: int, file_name: str) -> str:
    folder = str(distribution_id) if distribution_id is not None else LIBRARY_FOLDER
    return f"{gym_id}/{folder}/{format_key}/{timestamp_ms}_{index}{file_extension(file_name)}"


def _parse_id(value, resource: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError(f"Invalid {resource} id: {value}", field="id")


def _upload_all(store: ObjectStore, items: Sequence[tuple]) -> List[str]:
    """
    Upload (path, file) pairs in parallel and wait for every one.

    Raises UpstreamError naming the failed/total counts when any upload failed.
    """
    max_workers = max(1, min(settings.UPLOAD_MAX_PARALLEL, len(items)))
    failures = []
    stored = []
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [
            pool.submit(store.upload, path, f.data, f.content_type or mimetypes.guess_type(f.file_name)[0])
            for path, f in items
        ]
        for (path, f), future in zip(items, futures):
            try:
                stored.append(future.result())
            except Exception as e:
                failures.append((f.file_name, e))

    if failures:
        logger.error(
            f"Upload batch failed: {len(failures)} of {len(items)} files",
            extra={"extra_fields": {"failed_files": [name for name, _ in failures]}},
        )
        raise UpstreamError(
            f"{len(failures)} of {len(items)} uploads failed; nothing was submitted",
            cause=failures[0][1],
        )
    return stored


def _upload_format_files(
    scope: TenantScope,
    store: ObjectStore,
    format_key: str,
    files: Sequence[UploadedFile],
    distribution_id: Optional[int] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[FormatSubmission]:
    gym = scope.gym
    db = scope.db
    if not files:
        raise ValidationError("Select at least one file to upload", field="files")

    fmt = get_format(db, format_key)
    if distribution_id is not None:
        distribution = scope.get(AssignmentDistribution, distribution_id, resource="Assignment")
        if distribution.assigned_to_gym_id != gym.id:
            raise AuthorizationError("Only the assigned gym can upload content for this assignment")
        if fmt.format_key not in (distribution.template.formats_required or []):
            raise ValidationError(
                f"Format {fmt.format_key} is not required by this assignment",
                field="format_key",
            )

    # Every file is checked before the first byte goes out.
    file_types = [classify_file_type(f.file_name) for f in files]
    too_large = [f.file_name for f in files if f.size > settings.UPLOAD_MAX_FILE_BYTES]
    if too_large:
        raise ValidationError(f"Files over the size limit: {', '.join(too_large)}", field="files")

    stamp = as_utc(now) if now is not None else utcnow()
    timestamp_ms = int(stamp.timestamp() * 1000)
    items = [
        (build_object_path(gym.id, distribution_id, fmt.format_key, timestamp_ms, index, f.file_name), f)
        for index, f in enumerate(files)
    ]
    stored_paths = _upload_all(store, items)

    submissions = [
        FormatSubmission(
            format_id=fmt.id,
            gym_id=gym.id,
            distribution_id=distribution_id,
            file_name=f.file_name,
            file_path=path,
            file_url=store.get_public_url(path),
            file_type=file_type,
            file_size=f.size,
            status="pending",
            submission_notes=notes,
            submitted_at=stamp,
        )
        for (_, f), path, file_type in zip(items, stored_paths, file_types)
    ]
    try:
        db.add_all(submissions)
        db.flush()
        recalculate_format_progress(db, gym.id, fmt.id)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Saving submission records failed", exc_info=True)
        raise UpstreamError("Could not save submissions, please retry", cause=e) from e

    for submission in submissions:
        db.refresh(submission)
    logger.info(
        f"Gym {gym.id} uploaded {len(submissions)} files for {fmt.format_key}",
        extra={"extra_fields": {"gym_id": gym.id, "format_key": fmt.format_key, "distribution_id": distribution_id}},
    )
    return submissions


def upload_format_files(
    scope: TenantScope,
    store: ObjectStore,
    format_key: str,
    files: Sequence[UploadedFile],
    distribution_id: Optional[int] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ServiceResult[List[FormatSubmission]]:
    """Upload a batch of files for one format; one pending submission per file."""
    return run_service(
        _upload_format_files, scope, store, format_key, files,
        distribution_id=distribution_id, notes=notes, now=now,
    )


def _review_submission(
    scope: TenantScope,
    submission_id,
    decision: str,
    feedback_notes: Optional[str] = None,
    request: Optional[Request] = None,
    now: Optional[datetime] = None,
) -> FormatSubmission:
    admin = scope.require_admin()
    if decision not in REVIEW_DECISIONS:
        raise ValidationError(f"Decision must be one of: {', '.join(REVIEW_DECISIONS)}", field="decision")

    db = scope.db
    submission = scope.get(FormatSubmission, _parse_id(submission_id, "submission"), resource="Submission")
    if submission.status != "pending":
        raise ValidationError(f"Submission was already reviewed ({submission.status})", field="status")

    previous = submission.status
    try:
        submission.status = decision
        submission.feedback_notes = feedback_notes
        submission.reviewed_at = as_utc(now) if now is not None else utcnow()
        submission.reviewed_by = admin.id
        db.flush()
        recalculate_format_progress(db, submission.gym_id, submission.format_id)
        record_admin_audit_event(
            db,
            request=request,
            actor=admin,
            action="submission.review",
            target_gym_id=submission.gym_id,
            target_id=str(submission.id),
            reason=feedback_notes,
            payload={"from": previous, "to": decision},
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Submission review failed", exc_info=True)
        raise UpstreamError("Could not save review, please retry", cause=e) from e

    db.refresh(submission)
    return submission


def review_submission(
    scope: TenantScope,
    submission_id,
    decision: str,
    feedback_notes: Optional[str] = None,
    request: Optional[Request] = None,
    now: Optional[datetime] = None,
) -> ServiceResult[FormatSubmission]:
    """Admin decision on a pending submission: approved, needs_revision or rejected."""
    return run_service(
        _review_submission, scope, submission_id, decision,
        feedback_notes=feedback_notes, request=request, now=now,
    )


def list_format_submissions(scope: TenantScope, format_key: str, gym_id: Optional[str] = None) -> List[FormatSubmission]:
    """One gym's submissions for a format, newest first."""
    fmt = get_format(scope.db, format_key)
    return (
        scope.query_for_gym(FormatSubmission, gym_id or scope.gym_id)
        .filter(FormatSubmission.format_id == fmt.id)
        .order_by(FormatSubmission.submitted_at.desc())
        .all()
    )


def list_all_submissions(
    scope: TenantScope,
    status: Optional[str] = None,
    gym_id: Optional[str] = None,
    format_key: Optional[str] = None,
    search: Optional[str] = None,
) -> SubmissionListing:
    """
    Admin content manager listing.

    `counts` summarises statuses over every row matching the gym, format and
    search filters; the status filter only narrows `submissions`.
    """
    scope.require_admin()
    q = scope.query(FormatSubmission).join(GymTenant, GymTenant.id == FormatSubmission.gym_id)
    if gym_id:
        q = q.filter(FormatSubmission.gym_id == gym_id)
    if format_key:
        q = q.filter(FormatSubmission.format_id == get_format(scope.db, format_key).id)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(FormatSubmission.file_name.ilike(pattern), GymTenant.gym_name.ilike(pattern)))

    rows = q.order_by(FormatSubmission.submitted_at.desc()).all()
    counts = {"total": len(rows)}
    for s in ("pending", "approved", "needs_revision", "rejected"):
        counts[s] = sum(1 for r in rows if r.status == s)

    if status:
        if status not in counts or status == "total":
            raise ValidationError(f"Unknown submission status: {status}", field="status")
        rows = [r for r in rows if r.status == status]
    return SubmissionListing(submissions=rows, counts=counts)


def _delete_submission(scope: TenantScope, submission_id) -> None:
    db = scope.db
    submission = scope.get(FormatSubmission, _parse_id(submission_id, "submission"), resource="Submission")
    if submission.gym_id != scope.gym_id:
        raise AuthorizationError("Only the submitting gym can withdraw a submission")
    if submission.status != "pending":
        raise ValidationError("Reviewed submissions cannot be withdrawn", field="status")

    gym_id, format_id = submission.gym_id, submission.format_id
    try:
        db.delete(submission)
        db.flush()
        recalculate_format_progress(db, gym_id, format_id)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise UpstreamError("Could not withdraw submission, please retry", cause=e) from e
    logger.info(f"Gym {gym_id} withdrew submission {submission_id}")


def delete_submission(scope: TenantScope, submission_id) -> ServiceResult[None]:
    """Withdraw one of the gym's own pending submissions."""
    return run_service(_delete_submission, scope, submission_id)


"""
Content library endpoints.

Format catalog, per-format uploads and the gym's upload progress.
"""
from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from typing import List, Optional
from uuid import UUID
import logging

from core.auth import get_tenant_scope
from core.config import settings
from core.exceptions import ValidationError
from core.tenancy import TenantScope
from models import FormatProgress
from schemas import (
    ContentFormatResponse,
    FormatProgressResponse,
    ProgressSummaryResponse,
    SubmissionResponse,
)
from services.content_catalog import get_format, list_formats
from services.format_progress import format_progress_report, progress_summary
from services.object_storage import ObjectStore, get_object_store
from services.submissions import (
    UploadedFile,
    delete_submission,
    list_format_submissions,
    upload_format_files,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/content", tags=["content"])

UPLOAD_CHUNK_BYTES = 1024 * 1024


def read_upload(upload: UploadFile) -> bytes:
    """Read an upload in chunks, stopping as soon as it passes the size limit."""
    chunks = []
    total = 0
    while True:
        chunk = upload.file.read(UPLOAD_CHUNK_BYTES)
        if not chunk:
            break
        total += len(chunk)
        if total > settings.UPLOAD_MAX_FILE_BYTES:
            raise ValidationError(f"File over the size limit: {upload.filename}", field="files")
        chunks.append(chunk)
    return b"".join(chunks)


@router.get("/formats", response_model=List[ContentFormatResponse])
def get_formats(scope: TenantScope = Depends(get_tenant_scope)):
    return list_formats(scope.db)


@router.get("/formats/{format_key}", response_model=ContentFormatResponse)
def get_content_format(format_key: str, scope: TenantScope = Depends(get_tenant_scope)):
    return get_format(scope.db, format_key)


@router.get("/formats/{format_key}/submissions", response_model=List[SubmissionResponse])
def get_format_submissions(format_key: str, scope: TenantScope = Depends(get_tenant_scope)):
    return list_format_submissions(scope, format_key)


@router.post(
    "/formats/{format_key}/submissions",
    response_model=List[SubmissionResponse],
    status_code=status.HTTP_201_CREATED,
)
def upload_submissions(
    format_key: str,
    files: List[UploadFile] = File(...),
    notes: Optional[str] = Form(None),
    distribution_id: Optional[int] = Form(None),
    scope: TenantScope = Depends(get_tenant_scope),
    store: ObjectStore = Depends(get_object_store),
):
    """
    Upload one or more files for a format.

    The batch either fully succeeds (one pending submission per file) or
    fails with nothing recorded.
    """
    uploads = []
    for f in files:
        try:
            uploads.append(UploadedFile(file_name=f.filename or "", data=read_upload(f), content_type=f.content_type))
        finally:
            f.file.close()
    return upload_format_files(
        scope, store, format_key, uploads, distribution_id=distribution_id, notes=notes
    ).unwrap()


@router.delete("/submissions/{submission_id}", status_code=status.HTTP_204_NO_CONTENT)
def withdraw_submission(submission_id: UUID, scope: TenantScope = Depends(get_tenant_scope)):
    delete_submission(scope, submission_id).unwrap()


@router.get("/progress", response_model=List[FormatProgressResponse])
def get_progress(scope: TenantScope = Depends(get_tenant_scope)):
    return format_progress_report(scope.db, scope.gym_id, list_formats(scope.db))


@router.get("/progress/summary", response_model=ProgressSummaryResponse)
def get_progress_summary(scope: TenantScope = Depends(get_tenant_scope)):
    rows = scope.query_for_gym(FormatProgress, scope.gym_id).all()
    summary = progress_summary(rows)
    return ProgressSummaryResponse(
        total_completed=summary.total_completed,
        total_pending=summary.total_pending,
        total_revisions=summary.total_revisions,
        overall_progress=summary.overall_progress,
    )

"""
Admin API Router

Assignment fan-out, review of distributions and submissions, and the
gym performance dashboard. Admin role only.
"""
from dataclasses import asdict
from fastapi import APIRouter, Depends, Query, Request, status
from typing import List, Optional
from uuid import UUID

from core.auth import get_admin_scope
from core.exceptions import ValidationError
from core.tenancy import TenantScope
from models import AssignmentDistribution
from schemas import (
    AdminStatsResponse,
    AssignmentCreate,
    AssignmentDistributeResponse,
    AssignmentDraftCreate,
    AssignmentDraftResponse,
    AssignmentResponse,
    AssignmentReviewRequest,
    DistributionResponse,
    DueDateExtensionRequest,
    GymPerformanceResponse,
    SubmissionListResponse,
    SubmissionResponse,
    SubmissionReviewRequest,
)
from services.assignment_distribution import (
    AssignmentDefinition,
    distribute_assignment,
    list_drafts,
    save_draft,
)
from services.assignment_lifecycle import ADMIN_EVENTS, apply_transition, extend_due_date, normalize_status
from services.assignment_views import list_gym_assignments
from services.gym_performance import admin_stats, gym_performance_report
from services.submissions import list_all_submissions, review_submission

router = APIRouter(prefix="/v1/admin", tags=["admin"])


@router.post(
    "/assignments",
    response_model=AssignmentDistributeResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_assignment(
    body: AssignmentCreate,
    request: Request,
    scope: TenantScope = Depends(get_admin_scope),
):
    """Distribute one assignment to every selected gym (all or nothing)."""
    definition = AssignmentDefinition(
        title=body.title,
        description=body.description,
        formats=body.formats,
        gym_ids=body.gym_ids,
        due_date=body.due_date,
        setup_planning=body.setup_planning,
        production_tips=body.production_tips,
        priority=body.priority,
        clips_required=body.clips_required,
        content_requirements=[r.model_dump() for r in body.content_requirements],
        admin_notes=body.admin_notes,
    )
    batch = distribute_assignment(scope, definition, request=request).unwrap()
    return AssignmentDistributeResponse(
        template_id=batch.template.id,
        gym_count=len(batch.distributions),
        distributions=[DistributionResponse.model_validate(d) for d in batch.distributions],
    )


@router.get("/assignments", response_model=List[DistributionResponse])
def get_distributions(
    gym_id: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    scope: TenantScope = Depends(get_admin_scope),
):
    q = scope.query(AssignmentDistribution)
    if gym_id:
        q = q.filter(AssignmentDistribution.assigned_to_gym_id == gym_id)
    if status_filter:
        wanted = normalize_status(status_filter).value
        statuses = ["approved", "completed"] if wanted == "approved" else [wanted]
        q = q.filter(AssignmentDistribution.status.in_(statuses))
    return q.order_by(AssignmentDistribution.created_at.desc(), AssignmentDistribution.id.desc()).all()


@router.get("/gyms/{gym_id}/assignments", response_model=List[AssignmentResponse])
def get_gym_assignments(
    gym_id: str,
    status_filter: Optional[str] = Query(None, alias="status"),
    scope: TenantScope = Depends(get_admin_scope),
):
    return list_gym_assignments(scope, status=status_filter, gym_id=gym_id)


@router.post("/assignments/{assignment_id}/review", response_model=DistributionResponse)
def review_assignment(
    assignment_id: int,
    body: AssignmentReviewRequest,
    scope: TenantScope = Depends(get_admin_scope),
):
    """Admin lifecycle events: begin_review, approve, request_revision, reject."""
    if body.event not in {e.value for e in ADMIN_EVENTS}:
        allowed = ", ".join(sorted(e.value for e in ADMIN_EVENTS))
        raise ValidationError(f"Event must be one of: {allowed}", field="event")
    return apply_transition(scope, assignment_id, body.event, admin_notes=body.admin_notes).unwrap()


@router.post("/assignments/{assignment_id}/extend", response_model=DistributionResponse)
def extend_assignment_due_date(
    assignment_id: int,
    body: DueDateExtensionRequest,
    scope: TenantScope = Depends(get_admin_scope),
):
    return extend_due_date(scope, assignment_id, body.due_date).unwrap()


@router.post("/drafts", response_model=AssignmentDraftResponse, status_code=status.HTTP_201_CREATED)
def create_draft(body: AssignmentDraftCreate, scope: TenantScope = Depends(get_admin_scope)):
    definition = AssignmentDefinition(
        title=body.title,
        description=body.description,
        formats=body.formats,
        setup_planning=body.setup_planning,
        production_tips=body.production_tips,
        content_requirements=[r.model_dump() for r in body.content_requirements],
    )
    return save_draft(scope, definition, file_requirements=body.file_requirements).unwrap()


@router.get("/drafts", response_model=List[AssignmentDraftResponse])
def get_drafts(scope: TenantScope = Depends(get_admin_scope)):
    return list_drafts(scope)


@router.get("/submissions", response_model=SubmissionListResponse)
def get_submissions(
    status_filter: Optional[str] = Query(None, alias="status"),
    gym_id: Optional[str] = Query(None),
    format_key: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    scope: TenantScope = Depends(get_admin_scope),
):
    listing = list_all_submissions(
        scope, status=status_filter, gym_id=gym_id, format_key=format_key, search=search
    )
    return SubmissionListResponse(
        submissions=[SubmissionResponse.model_validate(s) for s in listing.submissions],
        counts=listing.counts,
    )


@router.post("/submissions/{submission_id}/review", response_model=SubmissionResponse)
def review_format_submission(
    submission_id: UUID,
    body: SubmissionReviewRequest,
    request: Request,
    scope: TenantScope = Depends(get_admin_scope),
):
    return review_submission(
        scope, submission_id, body.decision, feedback_notes=body.feedback_notes, request=request
    ).unwrap()


@router.get("/gym-performance", response_model=List[GymPerformanceResponse])
def get_gym_performance(scope: TenantScope = Depends(get_admin_scope)):
    return [
        GymPerformanceResponse(**{**asdict(g), "status": g.status.value})
        for g in gym_performance_report(scope)
    ]


@router.get("/stats", response_model=AdminStatsResponse)
def get_admin_stats(scope: TenantScope = Depends(get_admin_scope)):
    return admin_stats(scope)

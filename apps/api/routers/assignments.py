"""
Gym-side assignment endpoints.

A gym lists its assignments and moves them through its half of the
lifecycle: acknowledge, start, submit, resume after a revision request.
"""
from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from core.auth import get_tenant_scope
from core.tenancy import TenantScope
from schemas import AssignmentResponse, DashboardStatsResponse
from services.assignment_lifecycle import LifecycleEvent, apply_transition
from services.assignment_views import DASHBOARD_LIMIT, dashboard_assignments, get_gym_assignment, list_gym_assignments
from services.gym_performance import gym_dashboard_stats

router = APIRouter(prefix="/v1/assignments", tags=["assignments"])


@router.get("", response_model=List[AssignmentResponse])
def get_assignments(
    status: Optional[str] = Query(None, description="Status filter; 'completed' is accepted for 'approved'"),
    search: Optional[str] = Query(None, max_length=200),
    scope: TenantScope = Depends(get_tenant_scope),
):
    return list_gym_assignments(scope, status=status, search=search)


@router.get("/dashboard", response_model=List[AssignmentResponse])
def get_dashboard_assignments(
    limit: int = Query(DASHBOARD_LIMIT, ge=1, le=50),
    scope: TenantScope = Depends(get_tenant_scope),
):
    return dashboard_assignments(scope, limit=limit)


@router.get("/stats", response_model=DashboardStatsResponse)
def get_dashboard_stats(scope: TenantScope = Depends(get_tenant_scope)):
    return gym_dashboard_stats(scope)


@router.get("/{assignment_id}", response_model=AssignmentResponse)
def get_assignment(assignment_id: int, scope: TenantScope = Depends(get_tenant_scope)):
    return get_gym_assignment(scope, assignment_id)


def _transition(scope: TenantScope, assignment_id: int, event: LifecycleEvent) -> AssignmentResponse:
    apply_transition(scope, assignment_id, event.value).unwrap()
    return get_gym_assignment(scope, assignment_id)


@router.post("/{assignment_id}/acknowledge", response_model=AssignmentResponse)
def acknowledge_assignment(assignment_id: int, scope: TenantScope = Depends(get_tenant_scope)):
    return _transition(scope, assignment_id, LifecycleEvent.ACKNOWLEDGE)


@router.post("/{assignment_id}/start", response_model=AssignmentResponse)
def start_assignment(assignment_id: int, scope: TenantScope = Depends(get_tenant_scope)):
    return _transition(scope, assignment_id, LifecycleEvent.START)


@router.post("/{assignment_id}/submit", response_model=AssignmentResponse)
def submit_assignment(assignment_id: int, scope: TenantScope = Depends(get_tenant_scope)):
    return _transition(scope, assignment_id, LifecycleEvent.SUBMIT)


@router.post("/{assignment_id}/resume", response_model=AssignmentResponse)
def resume_assignment(assignment_id: int, scope: TenantScope = Depends(get_tenant_scope)):
    return _transition(scope, assignment_id, LifecycleEvent.RESUME)

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from uuid import UUID
from typing import Optional, List, Dict, Any


class PinLoginRequest(BaseModel):
    pin_code: str


class GymResponse(BaseModel):
    id: str
    gym_name: str
    gym_location: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    timezone: Optional[str] = None
    role: str
    active: bool

    model_config = ConfigDict(from_attributes=True)


class GymSummary(BaseModel):
    """Gym picker entry for the admin fan-out form"""
    id: str
    gym_name: str
    gym_location: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    gym: GymResponse


class ContentFormatSummary(BaseModel):
    id: UUID
    format_key: str
    title: str
    format_type: str

    model_config = ConfigDict(from_attributes=True)


class ContentFormatResponse(BaseModel):
    id: UUID
    format_key: str
    title: str
    description: Optional[str] = None
    format_type: str
    dimensions: Optional[str] = None
    duration: Optional[str] = None
    total_required: int
    setup_planning: Dict[str, Any] = {}
    production_tips: Dict[str, Any] = {}
    examples: Dict[str, Any] = {}
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class AssignmentResponse(BaseModel):
    """Gym-side assignment with derived fields computed at read time"""
    id: int
    title: str
    description: str
    priority: str
    status: str
    due_date: datetime
    created_at: datetime
    is_overdue: bool
    days_until_due: int
    progress: int  # status based, 0-100
    available_actions: List[str]
    formats: List[ContentFormatSummary] = []
    setup_planning: Optional[str] = None
    production_tips: Optional[str] = None
    clips_required: Optional[int] = None
    content_requirements: List[Dict[str, Any]] = []
    admin_notes: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class DistributionResponse(BaseModel):
    """Raw distribution row, used by admin endpoints"""
    id: int
    template_id: int
    assigned_to_gym_id: str
    assigned_by_admin: Optional[str] = None
    custom_title: Optional[str] = None
    custom_description: Optional[str] = None
    priority_override: Optional[str] = None
    admin_notes: Optional[str] = None
    due_date: datetime
    status: str
    created_at: datetime
    acknowledged_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ContentRequirement(BaseModel):
    title: str
    description: Optional[str] = None
    duration: Optional[str] = None
    type: str = "video"  # photo | video | reel


class AssignmentCreate(BaseModel):
    """Admin fan-out request; emptiness checks happen in the service so each field gets its own error"""
    title: str = ""
    description: Optional[str] = None
    formats: List[str] = []
    gym_ids: List[str] = []
    due_date: Optional[datetime] = None
    setup_planning: Optional[str] = None
    production_tips: Optional[str] = None
    priority: str = "medium"
    clips_required: Optional[int] = None
    content_requirements: List[ContentRequirement] = []
    admin_notes: Optional[str] = None


class AssignmentDistributeResponse(BaseModel):
    template_id: int
    gym_count: int
    distributions: List[DistributionResponse]


class AssignmentDraftCreate(BaseModel):
    title: str = ""
    description: Optional[str] = None
    formats: List[str] = []
    setup_planning: Optional[str] = None
    production_tips: Optional[str] = None
    content_requirements: List[ContentRequirement] = []
    file_requirements: Optional[str] = None


class AssignmentDraftResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    setup_planning: Optional[str] = None
    production_tips: Optional[str] = None
    formats_required: List[str] = []
    content_requirements: List[Dict[str, Any]] = []
    file_requirements: Optional[str] = None
    status: str
    created_by_admin: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AssignmentReviewRequest(BaseModel):
    event: str  # begin_review | approve | request_revision | reject
    admin_notes: Optional[str] = None


class DueDateExtensionRequest(BaseModel):
    due_date: datetime


class SubmissionResponse(BaseModel):
    id: UUID
    format_id: UUID
    gym_id: str
    distribution_id: Optional[int] = None
    file_name: str
    file_path: str
    file_url: Optional[str] = None
    file_type: str
    file_size: Optional[int] = None
    status: str
    submission_notes: Optional[str] = None
    feedback_notes: Optional[str] = None
    submitted_at: datetime
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SubmissionListResponse(BaseModel):
    submissions: List[SubmissionResponse]
    counts: Dict[str, int]


class SubmissionReviewRequest(BaseModel):
    decision: str  # approved | needs_revision | rejected
    feedback_notes: Optional[str] = None


class FormatProgressResponse(BaseModel):
    format_id: UUID
    format_key: str
    title: str
    total_required: int
    completed_count: int
    pending_count: int
    revision_count: int
    outstanding_revision_count: int
    last_submission_date: Optional[datetime] = None
    percent_complete: int


class ProgressSummaryResponse(BaseModel):
    total_completed: int
    total_pending: int
    total_revisions: int
    overall_progress: int


class GymPerformanceResponse(BaseModel):
    id: str
    gym_name: str
    gym_location: Optional[str] = None
    total_assignments: int
    completed_assignments: int
    overdue_assignments: int
    in_progress_assignments: int
    completion_rate: int
    average_response_time: float = Field(description="Mean days from assignment to submission, 1 decimal")
    last_submission: Optional[datetime] = None
    status: str

    model_config = ConfigDict(from_attributes=True)


class AdminStatsResponse(BaseModel):
    total_gyms: int
    total_assignments: int
    active_assignments: int
    overdue_assignments: int
    pending_review: int
    completed_assignments: int
    completion_rate: int


class DashboardStatsResponse(BaseModel):
    total_assignments: int
    active_assignments: int
    completed_assignments: int
    overdue_assignments: int

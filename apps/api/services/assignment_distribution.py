"""
Assignment Distribution Service

Admin-side fan-out of one assignment definition to N gyms.

The template and every per-gym distribution are written in one transaction:
either all N distributions exist afterwards or none do.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError

from core.clock import as_utc
from core.exceptions import UpstreamError, ValidationError
from core.tenancy import TenantScope
from models import AssignmentDistribution, AssignmentDraft, AssignmentTemplate, ContentFormat, GymTenant
from services.admin_audit import record_admin_audit_event
from services.assignment_lifecycle import DistributionStatus
from services.results import ServiceResult, run_service

logger = logging.getLogger(__name__)

PRIORITIES = ("low", "medium", "high", "urgent")
DEFAULT_FILE_REQUIREMENTS = "MP4, MOV files accepted. Maximum 100MB per file."


@dataclass
class AssignmentDefinition:
    """Everything an admin fills in before distributing an assignment."""
    title: str
    formats: List[str] = field(default_factory=list)
    gym_ids: List[str] = field(default_factory=list)
    due_date: Optional[datetime] = None
    description: Optional[str] = None
    setup_planning: Optional[str] = None
    production_tips: Optional[str] = None
    priority: str = "medium"
    clips_required: Optional[int] = None
    content_requirements: List[Dict[str, Any]] = field(default_factory=list)
    admin_notes: Optional[str] = None


@dataclass
class DistributionBatch:
    template: AssignmentTemplate
    distributions: List[AssignmentDistribution]

    @property
    def gym_ids(self) -> List[str]:
        return [d.assigned_to_gym_id for d in self.distributions]


def _distinct(values: List[str]) -> List[str]:
    seen = []
    for value in values:
        value = (value or "").strip()
        if value and value not in seen:
            seen.append(value)
    return seen


def validate_definition(scope: TenantScope, definition: AssignmentDefinition) -> List[str]:
    """
    Check every precondition before anything is written.

    Returns the distinct gym ids to distribute to. Each missing field raises
    its own ValidationError naming that field.
    """
    if not (definition.title or "").strip():
        raise ValidationError("Assignment title is required", field="title")

    format_keys = _distinct(definition.formats)
    if not format_keys:
        raise ValidationError("Select at least one content format", field="formats")

    if definition.due_date is None:
        raise ValidationError("Due date is required", field="due_date")

    gym_ids = _distinct(definition.gym_ids)
    if not gym_ids:
        raise ValidationError("Select at least one gym", field="gym_ids")

    if definition.priority not in PRIORITIES:
        raise ValidationError(
            f"Priority must be one of: {', '.join(PRIORITIES)}", field="priority"
        )
    if definition.clips_required is not None and definition.clips_required < 0:
        raise ValidationError("Clips required cannot be negative", field="clips_required")

    db = scope.db
    known_formats = {
        key for (key,) in db.query(ContentFormat.format_key)
        .filter(ContentFormat.format_key.in_(format_keys), ContentFormat.is_active.is_(True))
        .all()
    }
    unknown_formats = [k for k in format_keys if k not in known_formats]
    if unknown_formats:
        raise ValidationError(f"Unknown content formats: {', '.join(unknown_formats)}", field="formats")

    active_gyms = {
        gym_id for (gym_id,) in db.query(GymTenant.id)
        .filter(GymTenant.id.in_(gym_ids), GymTenant.active.is_(True))
        .all()
    }
    unknown_gyms = [g for g in gym_ids if g not in active_gyms]
    if unknown_gyms:
        raise ValidationError(f"Unknown or inactive gyms: {', '.join(unknown_gyms)}", field="gym_ids")

    return gym_ids


def _distribute(scope: TenantScope, definition: AssignmentDefinition, request: Optional[Request] = None) -> DistributionBatch:
    admin = scope.require_admin()
    gym_ids = validate_definition(scope, definition)
    due_date = as_utc(definition.due_date)
    db = scope.db

    try:
        template = AssignmentTemplate(
            title=definition.title.strip(),
            description=definition.description,
            priority=definition.priority,
            formats_required=_distinct(definition.formats),
            clips_required=definition.clips_required,
            setup_planning=definition.setup_planning,
            production_tips=definition.production_tips,
            content_requirements=list(definition.content_requirements or []),
            created_by_admin=admin.id,
        )
        db.add(template)
        db.flush()

        distributions = [
            AssignmentDistribution(
                template_id=template.id,
                assigned_to_gym_id=gym_id,
                assigned_by_admin=admin.id,
                admin_notes=definition.admin_notes,
                due_date=due_date,
                status=DistributionStatus.ASSIGNED.value,
            )
            for gym_id in gym_ids
        ]
        db.add_all(distributions)
        record_admin_audit_event(
            db,
            request=request,
            actor=admin,
            action="assignment.distribute",
            target_id=str(template.id),
            payload={"gym_count": len(gym_ids), "formats": template.formats_required},
        )
        db.flush()
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            "Assignment distribution failed, rolled back",
            exc_info=True,
            extra={"extra_fields": {"gym_count": len(gym_ids), "title": definition.title}},
        )
        raise UpstreamError("Could not distribute assignment; nothing was created", cause=e) from e

    for distribution in distributions:
        db.refresh(distribution)

    logger.info(
        f"Distributed assignment {template.id} to {len(distributions)} gyms",
        extra={"extra_fields": {"template_id": template.id, "gym_ids": gym_ids}},
    )
    return DistributionBatch(template=template, distributions=distributions)


def distribute_assignment(
    scope: TenantScope,
    definition: AssignmentDefinition,
    request: Optional[Request] = None,
) -> ServiceResult[DistributionBatch]:
    """Create one template and one `assigned` distribution per selected gym."""
    return run_service(_distribute, scope, definition, request=request)


def _save_draft(scope: TenantScope, definition: AssignmentDefinition, file_requirements: Optional[str]) -> AssignmentDraft:
    admin = scope.require_admin()
    if not (definition.title or "").strip():
        raise ValidationError("Assignment title is required", field="title")

    db = scope.db
    draft = AssignmentDraft(
        title=definition.title.strip(),
        description=definition.description,
        setup_planning=definition.setup_planning,
        production_tips=definition.production_tips,
        formats_required=_distinct(definition.formats),
        content_requirements=list(definition.content_requirements or []),
        file_requirements=file_requirements or DEFAULT_FILE_REQUIREMENTS,
        created_by_admin=admin.id,
        status="draft",
    )
    try:
        db.add(draft)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise UpstreamError("Could not save assignment draft", cause=e) from e
    db.refresh(draft)
    return draft


def save_draft(
    scope: TenantScope,
    definition: AssignmentDefinition,
    file_requirements: Optional[str] = None,
) -> ServiceResult[AssignmentDraft]:
    """Store an unpublished definition; only the title is required."""
    return run_service(_save_draft, scope, definition, file_requirements)


def list_drafts(scope: TenantScope) -> List[AssignmentDraft]:
    scope.require_admin()
    return (
        scope.db.query(AssignmentDraft)
        .order_by(AssignmentDraft.created_at.desc(), AssignmentDraft.id.desc())
        .all()
    )

from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey, Text, Index, UniqueConstraint, JSON, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from core.clock import utcnow
from core.database import Base
import uuid

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in dev/tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")


class GymTenant(Base):
    """
    A gym account: the tenant / row isolation boundary.

    Gyms sign in with a PIN. 'admin' gyms see every tenant, 'member' gyms
    only their own rows.
    """

    __tablename__ = "gym_profile"

    id = Column(Text, primary_key=True)  # short code, e.g. "CPF"
    gym_name = Column(Text, nullable=False)
    gym_location = Column(Text, nullable=True)
    pin_code = Column(Text, nullable=False, index=True)
    contact_email = Column(Text, nullable=True)
    contact_phone = Column(Text, nullable=True)
    timezone = Column(Text, nullable=True)  # IANA timezone
    role = Column(Text, default="member", nullable=False)  # 'member' | 'admin'
    active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class ContentFormat(Base):
    """
    Catalog entry for a required content type (video reel, carousel, ...).

    Admin-curated, read-only from the gym side. `total_required` is the
    per-gym submission quota for the format.
    """

    __tablename__ = "content_format"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    format_key = Column(Text, unique=True, nullable=False, index=True)  # e.g. 'video-reel'
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    format_type = Column(Text, nullable=False)  # photo | video | carousel | story | animated
    dimensions = Column(Text, nullable=True)  # e.g. '1080x1920'
    duration = Column(Text, nullable=True)  # e.g. '15-60s'
    total_required = Column(Integer, default=12, nullable=False)

    # Guidance blocks shown on the content library screens.
    setup_planning = Column(JSONType, nullable=False, default=dict)
    production_tips = Column(JSONType, nullable=False, default=dict)
    examples = Column(JSONType, nullable=False, default=dict)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)


class AssignmentTemplate(Base):
    """
    Author-defined assignment shared by every gym it is distributed to.

    Immutable once distributions reference it.
    """

    __tablename__ = "assignment_template"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(Text, default="medium", nullable=False)  # low | medium | high | urgent
    formats_required = Column(JSONType, nullable=False, default=list)  # list of format_key
    clips_required = Column(Integer, nullable=True)
    setup_planning = Column(Text, nullable=True)
    production_tips = Column(Text, nullable=True)
    # Serialized content requirements (shot list) shared by all distributions.
    content_requirements = Column(JSONType, nullable=False, default=list)

    created_by_admin = Column(Text, ForeignKey("gym_profile.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    distributions = relationship("AssignmentDistribution", back_populates="template", lazy="dynamic")


class AssignmentDraft(Base):
    """Unpublished assignment definition saved by an admin."""

    __tablename__ = "assignment_draft"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    setup_planning = Column(Text, nullable=True)
    production_tips = Column(Text, nullable=True)
    formats_required = Column(JSONType, nullable=False, default=list)
    content_requirements = Column(JSONType, nullable=False, default=list)
    file_requirements = Column(Text, nullable=True)
    status = Column(Text, default="draft", nullable=False)

    created_by_admin = Column(Text, ForeignKey("gym_profile.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


class AssignmentDistribution(Base):
    """
    One gym's instance of an assignment template; owns the lifecycle status.

    Rows are created in one batch at distribution time and never deleted,
    only transitioned. Each transition stamps its timestamp in the same write.
    """

    __tablename__ = "assignment_distribution"

    id = Column(Integer, primary_key=True, autoincrement=True)
    template_id = Column(Integer, ForeignKey("assignment_template.id"), nullable=False, index=True)
    assigned_to_gym_id = Column(Text, ForeignKey("gym_profile.id"), nullable=False, index=True)
    assigned_by_admin = Column(Text, ForeignKey("gym_profile.id"), nullable=True)

    custom_title = Column(Text, nullable=True)
    custom_description = Column(Text, nullable=True)
    priority_override = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)

    due_date = Column(DateTime(timezone=True), nullable=False)
    status = Column(Text, default="assigned", nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)
    acknowledged_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    template = relationship("AssignmentTemplate", back_populates="distributions", lazy="joined")

    __table_args__ = (
        Index("ix_assignment_distribution_gym_status", "assigned_to_gym_id", "status"),
    )


class FormatSubmission(Base):
    """
    One uploaded artifact for a content format.

    Resubmission adds rows; nothing is unique per (gym, format). Status is
    only changed by admin review.
    """

    __tablename__ = "format_submission"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    format_id = Column(Uuid, ForeignKey("content_format.id"), nullable=False, index=True)
    gym_id = Column(Text, ForeignKey("gym_profile.id"), nullable=False, index=True)
    distribution_id = Column(Integer, ForeignKey("assignment_distribution.id"), nullable=True, index=True)

    file_name = Column(Text, nullable=False)
    file_path = Column(Text, nullable=False)
    file_url = Column(Text, nullable=True)
    file_type = Column(Text, nullable=False)  # image | video
    file_size = Column(Integer, nullable=True)

    status = Column(Text, default="pending", nullable=False, index=True)  # pending | approved | needs_revision | rejected
    submission_notes = Column(Text, nullable=True)
    feedback_notes = Column(Text, nullable=True)

    submitted_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(Text, ForeignKey("gym_profile.id"), nullable=True)

    content_format = relationship("ContentFormat", lazy="joined")

    __table_args__ = (
        Index("ix_format_submission_gym_format", "gym_id", "format_id"),
    )


class FormatProgress(Base):
    """
    Cached per-(gym, format) counters.

    Materialized view over format_submission; recomputable at any time and
    never treated as the source of truth.
    """

    __tablename__ = "format_progress"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    gym_id = Column(Text, ForeignKey("gym_profile.id"), nullable=False, index=True)
    format_id = Column(Uuid, ForeignKey("content_format.id"), nullable=False, index=True)

    completed_count = Column(Integer, default=0, nullable=False)
    pending_count = Column(Integer, default=0, nullable=False)
    revision_count = Column(Integer, default=0, nullable=False)
    last_submission_date = Column(DateTime(timezone=True), nullable=True)

    calculated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("gym_id", "format_id", name="uq_format_progress_gym_format"),
    )


class AdminAuditEvent(Base):
    """
    Append-only audit log for admin actions.

    Non-negotiable invariants:
    - write-only from the application (no update/delete in code paths)
    - bounded payload (no secrets; minimal PII)
    """

    __tablename__ = "admin_audit_event"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True)

    actor_gym_id = Column(Text, ForeignKey("gym_profile.id"), nullable=False, index=True)
    action = Column(Text, nullable=False, index=True)  # e.g., assignment.distribute | submission.review

    target_gym_id = Column(Text, ForeignKey("gym_profile.id"), nullable=True, index=True)
    target_id = Column(Text, nullable=True)
    reason = Column(Text, nullable=True)

    ip_address = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)

    payload = Column(JSONType, nullable=False, default=dict)

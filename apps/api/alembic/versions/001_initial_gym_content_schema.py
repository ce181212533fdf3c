"""initial gym content schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    # Gyms (tenants)
    op.create_table(
        'gym_profile',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('gym_name', sa.Text(), nullable=False),
        sa.Column('gym_location', sa.Text(), nullable=True),
        sa.Column('pin_code', sa.Text(), nullable=False),
        sa.Column('contact_email', sa.Text(), nullable=True),
        sa.Column('contact_phone', sa.Text(), nullable=True),
        sa.Column('timezone', sa.Text(), nullable=True),
        sa.Column('role', sa.Text(), server_default='member', nullable=False),
        sa.Column('active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_gym_profile_pin_code', 'gym_profile', ['pin_code'])

    # Content format catalog
    op.create_table(
        'content_format',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('format_key', sa.Text(), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('format_type', sa.Text(), nullable=False),
        sa.Column('dimensions', sa.Text(), nullable=True),
        sa.Column('duration', sa.Text(), nullable=True),
        sa.Column('total_required', sa.Integer(), server_default='12', nullable=False),
        sa.Column('setup_planning', JSONType, nullable=False),
        sa.Column('production_tips', JSONType, nullable=False),
        sa.Column('examples', JSONType, nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_content_format_format_key', 'content_format', ['format_key'], unique=True)

    # Assignment templates and drafts
    op.create_table(
        'assignment_template',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('priority', sa.Text(), server_default='medium', nullable=False),
        sa.Column('formats_required', JSONType, nullable=False),
        sa.Column('clips_required', sa.Integer(), nullable=True),
        sa.Column('setup_planning', sa.Text(), nullable=True),
        sa.Column('production_tips', sa.Text(), nullable=True),
        sa.Column('content_requirements', JSONType, nullable=False),
        sa.Column('created_by_admin', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['created_by_admin'], ['gym_profile.id'], ),
    )
    op.create_index('ix_assignment_template_created_by_admin', 'assignment_template', ['created_by_admin'])

    op.create_table(
        'assignment_draft',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('setup_planning', sa.Text(), nullable=True),
        sa.Column('production_tips', sa.Text(), nullable=True),
        sa.Column('formats_required', JSONType, nullable=False),
        sa.Column('content_requirements', JSONType, nullable=False),
        sa.Column('file_requirements', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), server_default='draft', nullable=False),
        sa.Column('created_by_admin', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['created_by_admin'], ['gym_profile.id'], ),
    )
    op.create_index('ix_assignment_draft_created_by_admin', 'assignment_draft', ['created_by_admin'])

    # Per-gym distributions (lifecycle unit)
    op.create_table(
        'assignment_distribution',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('template_id', sa.Integer(), nullable=False),
        sa.Column('assigned_to_gym_id', sa.Text(), nullable=False),
        sa.Column('assigned_by_admin', sa.Text(), nullable=True),
        sa.Column('custom_title', sa.Text(), nullable=True),
        sa.Column('custom_description', sa.Text(), nullable=True),
        sa.Column('priority_override', sa.Text(), nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.Text(), server_default='assigned', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('acknowledged_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['template_id'], ['assignment_template.id'], ),
        sa.ForeignKeyConstraint(['assigned_to_gym_id'], ['gym_profile.id'], ),
        sa.ForeignKeyConstraint(['assigned_by_admin'], ['gym_profile.id'], ),
    )
    op.create_index('ix_assignment_distribution_template_id', 'assignment_distribution', ['template_id'])
    op.create_index('ix_assignment_distribution_assigned_to_gym_id', 'assignment_distribution', ['assigned_to_gym_id'])
    op.create_index('ix_assignment_distribution_status', 'assignment_distribution', ['status'])
    op.create_index('ix_assignment_distribution_gym_status', 'assignment_distribution', ['assigned_to_gym_id', 'status'])

    # Uploaded artifacts
    op.create_table(
        'format_submission',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('format_id', sa.Uuid(), nullable=False),
        sa.Column('gym_id', sa.Text(), nullable=False),
        sa.Column('distribution_id', sa.Integer(), nullable=True),
        sa.Column('file_name', sa.Text(), nullable=False),
        sa.Column('file_path', sa.Text(), nullable=False),
        sa.Column('file_url', sa.Text(), nullable=True),
        sa.Column('file_type', sa.Text(), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('status', sa.Text(), server_default='pending', nullable=False),
        sa.Column('submission_notes', sa.Text(), nullable=True),
        sa.Column('feedback_notes', sa.Text(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_by', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['format_id'], ['content_format.id'], ),
        sa.ForeignKeyConstraint(['gym_id'], ['gym_profile.id'], ),
        sa.ForeignKeyConstraint(['distribution_id'], ['assignment_distribution.id'], ),
        sa.ForeignKeyConstraint(['reviewed_by'], ['gym_profile.id'], ),
    )
    op.create_index('ix_format_submission_format_id', 'format_submission', ['format_id'])
    op.create_index('ix_format_submission_gym_id', 'format_submission', ['gym_id'])
    op.create_index('ix_format_submission_distribution_id', 'format_submission', ['distribution_id'])
    op.create_index('ix_format_submission_status', 'format_submission', ['status'])
    op.create_index('ix_format_submission_gym_format', 'format_submission', ['gym_id', 'format_id'])

    # Cached counters per (gym, format)
    op.create_table(
        'format_progress',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('gym_id', sa.Text(), nullable=False),
        sa.Column('format_id', sa.Uuid(), nullable=False),
        sa.Column('completed_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('pending_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('revision_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('last_submission_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('calculated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['gym_id'], ['gym_profile.id'], ),
        sa.ForeignKeyConstraint(['format_id'], ['content_format.id'], ),
        sa.UniqueConstraint('gym_id', 'format_id', name='uq_format_progress_gym_format'),
    )
    op.create_index('ix_format_progress_gym_id', 'format_progress', ['gym_id'])
    op.create_index('ix_format_progress_format_id', 'format_progress', ['format_id'])

    # Admin audit log (append-only)
    op.create_table(
        'admin_audit_event',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('actor_gym_id', sa.Text(), nullable=False),
        sa.Column('action', sa.Text(), nullable=False),
        sa.Column('target_gym_id', sa.Text(), nullable=True),
        sa.Column('target_id', sa.Text(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.Text(), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('payload', JSONType, nullable=False),
        sa.ForeignKeyConstraint(['actor_gym_id'], ['gym_profile.id'], ),
        sa.ForeignKeyConstraint(['target_gym_id'], ['gym_profile.id'], ),
    )
    op.create_index('ix_admin_audit_event_created_at', 'admin_audit_event', ['created_at'])
    op.create_index('ix_admin_audit_event_actor_gym_id', 'admin_audit_event', ['actor_gym_id'])
    op.create_index('ix_admin_audit_event_action', 'admin_audit_event', ['action'])
    op.create_index('ix_admin_audit_event_target_gym_id', 'admin_audit_event', ['target_gym_id'])


def downgrade() -> None:
    op.drop_table('admin_audit_event')
    op.drop_table('format_progress')
    op.drop_table('format_submission')
    op.drop_table('assignment_distribution')
    op.drop_table('assignment_draft')
    op.drop_table('assignment_template')
    op.drop_table('content_format')
    op.drop_table('gym_profile')

"""Initial schema - submissions, deadlines, evaluation and results

Revision ID: 0001
Revises: 
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Deadline batches
    op.create_table(
        'deadline_batches',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('applies_from', sa.DateTime(timezone=True), nullable=False),
        sa.Column('applies_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, default=True),
        *_timestamps(),
    )

    # Document types and their score weights
    op.create_table(
        'document_types',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('code', sa.String(50), unique=True, nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('weight_supervisor', sa.Integer(), nullable=False, default=20),
        sa.Column('weight_committee', sa.Integer(), nullable=False, default=80),
        sa.Column('display_order', sa.Integer(), nullable=False, default=0),
        sa.Column('is_active', sa.Boolean(), nullable=False, default=True),
        *_timestamps(),
        sa.CheckConstraint(
            'weight_supervisor >= 0 AND weight_committee >= 0 '
            'AND weight_supervisor + weight_committee = 100',
            name='ck_document_types_weights',
        ),
    )

    # Projects
    op.create_table(
        'projects',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('status', sa.String(30), nullable=False, default='REGISTERED'),
        sa.Column('supervisor_id', sa.Uuid(), nullable=True, index=True),
        sa.Column('group_leader_id', sa.Uuid(), nullable=True),
        sa.Column('member_ids', sa.JSON(), nullable=True),
        sa.Column(
            'deadline_batch_id',
            sa.Uuid(),
            sa.ForeignKey('deadline_batches.id', ondelete='SET NULL'),
            nullable=True,
            index=True,
        ),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    # Committee membership
    op.create_table(
        'committee_members',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('committee', sa.String(20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, default=True),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'committee', name='uq_committee_members_user_committee'),
    )

    # Deadlines
    op.create_table(
        'deadlines',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('batch_id', sa.Uuid(), sa.ForeignKey('deadline_batches.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('document_type_id', sa.Uuid(), sa.ForeignKey('document_types.id', ondelete='CASCADE'), nullable=False),
        sa.Column('due_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False, default=0),
        sa.Column('locked', sa.Boolean(), nullable=False, default=False),
        *_timestamps(),
        sa.UniqueConstraint('batch_id', 'document_type_id', name='uq_deadlines_batch_doc_type'),
    )
    op.create_index('ix_deadlines_due_locked', 'deadlines', ['due_at', 'locked'])

    # Submissions
    op.create_table(
        'submissions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('project_id', sa.Uuid(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('document_type_id', sa.Uuid(), sa.ForeignKey('document_types.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('file_id', sa.Text(), nullable=True),
        sa.Column('uploaded_by', sa.Uuid(), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(40), nullable=False, default='PENDING_SUPERVISOR'),
        sa.Column('is_final', sa.Boolean(), nullable=False, default=False),
        sa.Column('supervisor_reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('status_changed_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('project_id', 'document_type_id', 'version', name='uq_submissions_project_doc_version'),
    )
    op.create_index('ix_submissions_project_doc', 'submissions', ['project_id', 'document_type_id'])
    op.create_index('ix_submissions_status', 'submissions', ['status'])

    # Supervisor marks
    op.create_table(
        'supervisor_marks',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('submission_id', sa.Uuid(), sa.ForeignKey('submissions.id', ondelete='CASCADE'), unique=True, nullable=False),
        sa.Column('supervisor_id', sa.Uuid(), nullable=True),
        sa.Column('score', sa.Numeric(5, 2), nullable=False),
        sa.Column('comments', sa.Text(), nullable=True),
        *_timestamps(),
    )

    # Evaluation committee marks
    op.create_table(
        'evaluation_marks',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('submission_id', sa.Uuid(), sa.ForeignKey('submissions.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('evaluator_id', sa.Uuid(), nullable=False),
        sa.Column('score', sa.Numeric(5, 2), nullable=False),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('is_final', sa.Boolean(), nullable=False, default=False),
        sa.Column('finalized_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('submission_id', 'evaluator_id', name='uq_evaluation_marks_submission_evaluator'),
    )

    # Final results
    op.create_table(
        'final_results',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('project_id', sa.Uuid(), sa.ForeignKey('projects.id', ondelete='CASCADE'), unique=True, nullable=False),
        sa.Column('total_score', sa.Numeric(7, 4), nullable=False),
        sa.Column('breakdown', sa.JSON(), nullable=False),
        sa.Column('computed_by', sa.Uuid(), nullable=True),
        sa.Column('computed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('released', sa.Boolean(), nullable=False, default=False),
        sa.Column('released_by', sa.Uuid(), nullable=True),
        sa.Column('released_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    # Deadline sweep ledger
    op.create_table(
        'deadline_sweep_records',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('deadline_id', sa.Uuid(), sa.ForeignKey('deadlines.id', ondelete='CASCADE'), nullable=False),
        sa.Column('project_id', sa.Uuid(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('outcome', sa.String(20), nullable=False),
        sa.Column('submission_id', sa.Uuid(), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('deadline_id', 'project_id', name='uq_sweep_records_deadline_project'),
    )

    # Event logs (audit trail)
    op.create_table(
        'event_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_event_logs_entity', 'event_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_event_logs_type', 'event_logs', ['event_type'])


def downgrade() -> None:
    op.drop_table('event_logs')
    op.drop_table('deadline_sweep_records')
    op.drop_table('final_results')
    op.drop_table('evaluation_marks')
    op.drop_table('supervisor_marks')
    op.drop_table('submissions')
    op.drop_table('deadlines')
    op.drop_table('committee_members')
    op.drop_table('projects')
    op.drop_table('document_types')
    op.drop_table('deadline_batches')

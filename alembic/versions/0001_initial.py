"""Initial schema - users, forms, versioned fields, submissions

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

Creates the account table, form definitions with immutable field
versions, and submissions with their files and reviewer notes.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
TIMESTAMP = sa.DateTime(timezone=True)


def upgrade() -> None:
    """Create all tables."""

    # ==========================================================================
    # Users
    # ==========================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('first_name', sa.String(50), nullable=False),
        sa.Column('last_name', sa.String(50), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('token_version', sa.Integer(), nullable=False),
        sa.Column('created_at', TIMESTAMP, nullable=False),
        sa.Column('updated_at', TIMESTAMP, nullable=False),
    )
    op.create_index('idx_users_role', 'users', ['role'])

    # ==========================================================================
    # Forms
    # ==========================================================================
    op.create_table(
        'forms',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column(
            'created_by', sa.Uuid(),
            sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('allow_multiple_submissions', sa.Boolean(), nullable=False),
        sa.Column('require_login', sa.Boolean(), nullable=False),
        sa.Column('confirmation_message', sa.Text(), nullable=False),
        sa.Column('redirect_url', sa.String(2048), nullable=True),
        sa.Column('submission_limit', sa.Integer(), nullable=False),
        sa.Column('start_date', TIMESTAMP, nullable=True),
        sa.Column('end_date', TIMESTAMP, nullable=True),
        sa.Column('appearance', JSON, nullable=False),
        sa.Column('total_submissions', sa.Integer(), nullable=False),
        sa.Column('unique_submitters', sa.Integer(), nullable=False),
        sa.Column('last_submission_at', TIMESTAMP, nullable=True),
        sa.Column('created_at', TIMESTAMP, nullable=False),
        sa.Column('updated_at', TIMESTAMP, nullable=False),
    )
    op.create_index('idx_forms_active', 'forms', ['is_active'])
    op.create_index('idx_forms_created_by', 'forms', ['created_by'])

    # ==========================================================================
    # Field versions
    # ==========================================================================
    op.create_table(
        'form_fields',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'form_id', sa.Uuid(),
            sa.ForeignKey('forms.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('field_key', sa.Uuid(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('label', sa.String(100), nullable=False),
        sa.Column('field_type', sa.String(20), nullable=False),
        sa.Column('placeholder', sa.String(100), nullable=True),
        sa.Column('help_text', sa.String(200), nullable=True),
        sa.Column('default_value', JSON, nullable=True),
        sa.Column('options', JSON, nullable=False),
        sa.Column('validation', JSON, nullable=False),
        sa.Column('layout', JSON, nullable=False),
        sa.Column('order', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', TIMESTAMP, nullable=False),
        sa.UniqueConstraint('field_key', 'version', name='uq_form_fields_key_version'),
    )
    op.create_index('idx_form_fields_form_active', 'form_fields', ['form_id', 'is_active'])

    # ==========================================================================
    # Submissions
    # ==========================================================================
    op.create_table(
        'form_submissions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'form_id', sa.Uuid(),
            sa.ForeignKey('forms.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column(
            'submitted_by', sa.Uuid(),
            sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('dedupe_key', sa.String(64), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('submission_data', JSON, nullable=False),
        sa.Column('schema_snapshot', JSON, nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('user_agent', sa.String(512), nullable=True),
        sa.Column('referrer', sa.String(2048), nullable=True),
        sa.Column('completion_time', sa.Integer(), nullable=True),
        sa.Column('is_edited', sa.Boolean(), nullable=False),
        sa.Column('edit_history', JSON, nullable=False),
        sa.Column('submitted_at', TIMESTAMP, nullable=False),
        sa.Column('updated_at', TIMESTAMP, nullable=False),
        sa.UniqueConstraint('form_id', 'dedupe_key', name='uq_form_submissions_dedupe'),
    )
    op.create_index(
        'idx_form_submissions_form_submitted', 'form_submissions', ['form_id', 'submitted_at']
    )
    op.create_index('idx_form_submissions_submitted_by', 'form_submissions', ['submitted_by'])
    op.create_index('idx_form_submissions_status', 'form_submissions', ['status'])

    op.create_table(
        'form_submission_files',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'submission_id', sa.Uuid(),
            sa.ForeignKey('form_submissions.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('field_name', sa.String(100), nullable=False),
        sa.Column('original_name', sa.String(255), nullable=False),
        sa.Column('stored_name', sa.String(512), nullable=False),
        sa.Column('size', sa.Integer(), nullable=False),
        sa.Column('mime_type', sa.String(100), nullable=False),
        sa.Column('checksum_sha256', sa.String(64), nullable=True),
        sa.Column('created_at', TIMESTAMP, nullable=False),
    )
    op.create_index(
        'idx_form_submission_files_submission', 'form_submission_files', ['submission_id']
    )

    op.create_table(
        'form_submission_notes',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'submission_id', sa.Uuid(),
            sa.ForeignKey('form_submissions.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column(
            'created_by', sa.Uuid(),
            sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('created_at', TIMESTAMP, nullable=False),
    )
    op.create_index(
        'idx_form_submission_notes_submission', 'form_submission_notes', ['submission_id']
    )


def downgrade() -> None:
    op.drop_table('form_submission_notes')
    op.drop_table('form_submission_files')
    op.drop_table('form_submissions')
    op.drop_table('form_fields')
    op.drop_table('forms')
    op.drop_table('users')

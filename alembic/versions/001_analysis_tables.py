"""analysis tables: analyses, analysis_jobs, analysis_findings, analysis_reports

Revision ID: 001
Revises: 
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

analysis_status = sa.Enum('pending', 'running', 'finalizing', 'completed', 'failed', name='analysisstatus')
job_status = sa.Enum('pending', 'running', 'completed', 'failed', name='jobstatus')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'analyses',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('target_url', sa.String(2048), nullable=False),
        sa.Column('normalized_url', sa.String(2048), nullable=False),
        sa.Column('language', sa.String(8), nullable=False),
        sa.Column('user_id', sa.String(), nullable=True),
        sa.Column('status', analysis_status, nullable=False),
        sa.Column('finalized', sa.Boolean(), nullable=False),
        sa.Column('overall_score', sa.Integer(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('error_category', sa.String(32), nullable=True),
        sa.Column('requested_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_analyses_id'), 'analyses', ['id'], unique=False)
    op.create_index(op.f('ix_analyses_normalized_url'), 'analyses', ['normalized_url'], unique=False)
    op.create_index(op.f('ix_analyses_user_id'), 'analyses', ['user_id'], unique=False)
    op.create_index(op.f('ix_analyses_status'), 'analyses', ['status'], unique=False)
    op.create_index('idx_analyses_normalized_url_status', 'analyses', ['normalized_url', 'status'], unique=False)

    op.create_table(
        'analysis_jobs',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('analysis_id', sa.String(), nullable=False),
        sa.Column('module_name', sa.String(64), nullable=False),
        sa.Column('status', job_status, nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('celery_task_id', sa.String(128), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('deadline_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['analysis_id'], ['analyses.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('analysis_id', 'module_name', name='uq_analysis_jobs_module'),
    )
    op.create_index(op.f('ix_analysis_jobs_id'), 'analysis_jobs', ['id'], unique=False)
    op.create_index(op.f('ix_analysis_jobs_analysis_id'), 'analysis_jobs', ['analysis_id'], unique=False)
    op.create_index(op.f('ix_analysis_jobs_status'), 'analysis_jobs', ['status'], unique=False)
    op.create_index(op.f('ix_analysis_jobs_celery_task_id'), 'analysis_jobs', ['celery_task_id'], unique=False)
    op.create_index(op.f('ix_analysis_jobs_deadline_at'), 'analysis_jobs', ['deadline_at'], unique=False)
    op.create_index('idx_analysis_jobs_status_deadline', 'analysis_jobs', ['status', 'deadline_at'], unique=False)

    op.create_table(
        'analysis_findings',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('analysis_id', sa.String(), nullable=False),
        sa.Column('job_id', sa.String(), nullable=True),
        sa.Column('module_name', sa.String(64), nullable=False),
        sa.Column('rule_id', sa.String(128), nullable=False),
        sa.Column('severity', sa.String(16), nullable=False),
        sa.Column('category', sa.String(64), nullable=False),
        sa.Column('location_path', sa.Text(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('fix_suggestion', sa.Text(), nullable=False),
        sa.Column('affected_element_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['analysis_id'], ['analyses.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['job_id'], ['analysis_jobs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_analysis_findings_id'), 'analysis_findings', ['id'], unique=False)
    op.create_index(op.f('ix_analysis_findings_analysis_id'), 'analysis_findings', ['analysis_id'], unique=False)
    op.create_index(op.f('ix_analysis_findings_job_id'), 'analysis_findings', ['job_id'], unique=False)
    op.create_index(op.f('ix_analysis_findings_rule_id'), 'analysis_findings', ['rule_id'], unique=False)
    op.create_index(op.f('ix_analysis_findings_category'), 'analysis_findings', ['category'], unique=False)

    op.create_table(
        'analysis_reports',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('analysis_id', sa.String(), nullable=False),
        sa.Column('tier', sa.String(16), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['analysis_id'], ['analyses.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('analysis_id', 'tier', name='uq_analysis_reports_tier'),
    )
    op.create_index(op.f('ix_analysis_reports_id'), 'analysis_reports', ['id'], unique=False)
    op.create_index(op.f('ix_analysis_reports_analysis_id'), 'analysis_reports', ['analysis_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('analysis_reports')
    op.drop_table('analysis_findings')
    op.drop_table('analysis_jobs')
    op.drop_table('analyses')
    job_status.drop(op.get_bind(), checkfirst=True)
    analysis_status.drop(op.get_bind(), checkfirst=True)

import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from pageaudit.platform.db.base import BaseModel


class JobStatus(enum.Enum):
    """Module job state machine: pending -> running -> completed | failed"""
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"


TERMINAL_JOB_STATUSES = (JobStatus.completed, JobStatus.failed)
ACTIVE_JOB_STATUSES = (JobStatus.pending, JobStatus.running)


class AnalysisJob(BaseModel):
    """One analysis module scheduled against one analysis."""

    __tablename__ = "analysis_jobs"

    analysis_id = Column(String, ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False, index=True)
    module_name = Column(String(64), nullable=False)

    status = Column(Enum(JobStatus), default=JobStatus.pending, nullable=False, index=True)
    error_message = Column(Text, nullable=True)

    celery_task_id = Column(String(128), nullable=True, index=True)

    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    deadline_at = Column(DateTime, nullable=True, index=True)

    analysis = relationship("Analysis", back_populates="jobs")

    __table_args__ = (
        UniqueConstraint('analysis_id', 'module_name', name='uq_analysis_jobs_module'),
        Index('idx_analysis_jobs_status_deadline', 'status', 'deadline_at'),
    )

from datetime import datetime
import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from pageaudit.platform.db.base import BaseModel


class AnalysisStatus(enum.Enum):
    """Run-level status of an analysis"""
    pending = "pending"
    running = "running"
    finalizing = "finalizing"
    completed = "completed"
    failed = "failed"


class Analysis(BaseModel):
    """One analysis run of one target page."""

    __tablename__ = "analyses"

    target_url = Column(String(2048), nullable=False)
    normalized_url = Column(String(2048), nullable=False, index=True)
    language = Column(String(8), nullable=False, default="en")

    user_id = Column(String, nullable=True, index=True)

    status = Column(Enum(AnalysisStatus), default=AnalysisStatus.pending, nullable=False, index=True)

    # Set by the single winner of the finalization claim
    finalized = Column(Boolean, default=False, nullable=False)

    overall_score = Column(Integer, nullable=True)  # 0-100

    error_message = Column(Text, nullable=True)
    error_category = Column(String(32), nullable=True)

    requested_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    jobs = relationship("AnalysisJob", back_populates="analysis", cascade="all, delete-orphan", lazy="select")
    reports = relationship("AnalysisReport", back_populates="analysis", cascade="all, delete-orphan", lazy="select")

    __table_args__ = (
        Index('idx_analyses_normalized_url_status', 'normalized_url', 'status'),
    )

from sqlalchemy import JSON, Column, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from pageaudit.platform.db.base import BaseModel


class AnalysisReport(BaseModel):
    """Generated report payload, one row per (analysis, tier)."""

    __tablename__ = "analysis_reports"

    analysis_id = Column(String, ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False, index=True)
    tier = Column(String(16), nullable=False)
    payload = Column(JSON, nullable=False)

    analysis = relationship("Analysis", back_populates="reports")

    __table_args__ = (
        UniqueConstraint('analysis_id', 'tier', name='uq_analysis_reports_tier'),
    )

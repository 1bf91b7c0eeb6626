from sqlalchemy import Column, ForeignKey, Integer, String, Text

from pageaudit.platform.db.base import BaseModel


class AnalysisFinding(BaseModel):
    """
    Persisted finding. Rows are converted to Finding objects by the
    repository only; nothing else reads this table directly.
    """

    __tablename__ = "analysis_findings"

    analysis_id = Column(String, ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False, index=True)
    job_id = Column(String, ForeignKey("analysis_jobs.id", ondelete="CASCADE"), nullable=True, index=True)
    module_name = Column(String(64), nullable=False)

    rule_id = Column(String(128), nullable=False, index=True)
    severity = Column(String(16), nullable=False)
    category = Column(String(64), nullable=False, index=True)
    location_path = Column(Text, nullable=False, default="")
    message = Column(Text, nullable=False)
    fix_suggestion = Column(Text, nullable=False, default="")
    affected_element_count = Column(Integer, nullable=False, default=1)

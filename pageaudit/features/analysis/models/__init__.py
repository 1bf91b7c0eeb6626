"""
Analysis models package.
"""
from pageaudit.features.analysis.models.analysis import Analysis, AnalysisStatus
from pageaudit.features.analysis.models.analysis_finding import AnalysisFinding
from pageaudit.features.analysis.models.analysis_job import AnalysisJob, JobStatus
from pageaudit.features.analysis.models.analysis_report import AnalysisReport

__all__ = [
    "Analysis",
    "AnalysisStatus",
    "AnalysisJob",
    "JobStatus",
    "AnalysisFinding",
    "AnalysisReport",
]

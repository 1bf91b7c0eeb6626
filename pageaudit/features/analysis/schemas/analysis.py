"""
Analysis Schemas

Request and response models for the analysis API endpoints.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, HttpUrl
from pydantic.alias_generators import to_camel


class AnalysisStartRequest(BaseModel):
    """Request to analyze one page."""
    url: HttpUrl
    language: str = "en"
    modules: Optional[List[str]] = None

    class Config:
        json_schema_extra = {
            "example": {
                "url": "https://example.com",
                "language": "en",
            }
        }


class InstantAnalysisRequest(AnalysisStartRequest):
    """Single-process run that returns the report directly."""
    tier: str = "detailed"


class AnalysisStartResponse(BaseModel):
    analysis_id: str
    status: str
    message: str
    cached: bool = False


class JobStatusItem(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    module_name: str
    status: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None


class AnalysisStatusResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    analysis_id: str
    url: str
    status: str
    overall_complete: bool
    overall_score: Optional[int] = None
    error_message: Optional[str] = None
    error_category: Optional[str] = None
    jobs: List[JobStatusItem]
    job_counts: Dict[str, int]

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from pageaudit.features.analysis.models.analysis import AnalysisStatus
from pageaudit.features.analysis.schemas.analysis import (
    AnalysisStartRequest,
    AnalysisStartResponse,
    AnalysisStatusResponse,
    InstantAnalysisRequest,
    JobStatusItem,
)
from pageaudit.features.analysis.services import repository
from pageaudit.features.analysis.services.orchestrator import JobOrchestrator
from pageaudit.features.analysis.services.pipeline import InstantAnalysisService, get_report
from pageaudit.features.analysis.workers.tasks import dispatch_finalize, fetch_page
from pageaudit.features.recommendations.services.i18n import validate_language
from pageaudit.features.reports.dependencies.entitlement import get_caller_entitlement
from pageaudit.features.reports.services.access import (
    DETAILED,
    TIERS,
    CallerEntitlement,
    access_restrictions,
    decide,
)
from pageaudit.platform.cache.manager import get_cache_manager
from pageaudit.platform.db.session import get_db
from pageaudit.platform.logger import get_logger
from pageaudit.platform.response import api_response
from pageaudit.platform.utils.url_validator import validate_url

logger = get_logger(__name__)

router = APIRouter(prefix="/analysis", tags=["analysis"])


def _validated_url(url) -> str:
    is_valid, url_str, error_message = validate_url(str(url))
    if not is_valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid URL: {error_message}",
        )
    return url_str


@router.post("")
def start_analysis(
    request: Request,
    payload: AnalysisStartRequest,
    db: Session = Depends(get_db),
    entitlement: Optional[CallerEntitlement] = Depends(get_caller_entitlement),
):
    url_str = _validated_url(payload.url)
    language = validate_language(payload.language)

    cached = get_cache_manager().get_analysis(url_str, language)
    if cached:
        analysis_id = cached["analysisId"]
        logger.info(f"[{analysis_id}] Fresh report cached for {url_str}, not queueing")
        return api_response(
            data=AnalysisStartResponse(
                analysis_id=analysis_id,
                status=AnalysisStatus.completed.value,
                message=f"Analysis of {url_str} served from cache",
                cached=True,
            ),
            message="Analysis already available",
            headers={"Location": str(request.url_for("get_analysis_status", analysis_id=analysis_id))},
        )

    orchestrator = JobOrchestrator(db, on_complete=dispatch_finalize)
    analysis = orchestrator.start_analysis(
        url_str,
        language=language,
        modules=payload.modules,
        user_id=entitlement.user_id if entitlement else None,
    )

    try:
        fetch_page.delay(analysis.id)
    except Exception as e:
        logger.error(f"[{analysis.id}] Failed to dispatch analysis: {e}")
        repository.mark_failed(db, analysis.id, "Could not queue analysis", "dispatch_failed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Analysis queue unavailable, please try again later",
            headers={"Retry-After": "30"},
        )

    return api_response(
        data=AnalysisStartResponse(
            analysis_id=analysis.id,
            status=analysis.status.value,
            message=f"Analysis of {url_str} queued",
        ),
        message="Analysis started",
        status_code=status.HTTP_202_ACCEPTED,
        headers={"Location": str(request.url_for("get_analysis_status", analysis_id=analysis.id))},
    )


@router.post("/instant")
def instant_analysis(
    payload: InstantAnalysisRequest,
    db: Session = Depends(get_db),
    entitlement: Optional[CallerEntitlement] = Depends(get_caller_entitlement),
):
    url_str = _validated_url(payload.url)
    if payload.tier not in TIERS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown tier: {payload.tier}")

    result = InstantAnalysisService(db).analyze(
        url_str,
        language=payload.language,
        entitlement=entitlement,
        requested_tier=payload.tier,
        modules=payload.modules,
    )
    result["access"] = access_restrictions(entitlement)
    return api_response(data=result, message="Analysis completed")


@router.get("/{analysis_id}")
def get_analysis_status(analysis_id: str, db: Session = Depends(get_db)):
    analysis = repository.get_analysis(db, analysis_id)
    jobs = repository.get_jobs(db, analysis_id)
    counts = repository.job_counts(db, analysis_id)

    return api_response(
        data=AnalysisStatusResponse(
            analysis_id=analysis.id,
            url=analysis.target_url,
            status=analysis.status.value,
            overall_complete=repository.is_overall_complete(db, analysis_id),
            overall_score=analysis.overall_score,
            error_message=analysis.error_message,
            error_category=analysis.error_category,
            jobs=[
                JobStatusItem(
                    module_name=job.module_name,
                    status=job.status.value,
                    started_at=job.started_at,
                    completed_at=job.completed_at,
                    error_message=job.error_message,
                )
                for job in jobs
            ],
            job_counts=counts,
        ),
        message="Analysis status retrieved",
    )


@router.get("/{analysis_id}/report")
def get_analysis_report(
    analysis_id: str,
    tier: str = Query(DETAILED, pattern="^(free|detailed)$"),
    db: Session = Depends(get_db),
    entitlement: Optional[CallerEntitlement] = Depends(get_caller_entitlement),
):
    granted = decide(entitlement, tier)
    report = get_report(db, analysis_id, granted)
    return api_response(
        data={
            "analysisId": analysis_id,
            "tier": granted,
            "report": report,
            "access": access_restrictions(entitlement),
        },
        message="Report retrieved",
    )

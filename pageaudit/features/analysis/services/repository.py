"""
Persistence for analyses, module jobs, findings and reports.

All row <-> domain conversion happens here; callers only ever see Finding
objects and plain report payloads.
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pageaudit.features.analysis.models.analysis import Analysis, AnalysisStatus
from pageaudit.features.analysis.models.analysis_finding import AnalysisFinding
from pageaudit.features.analysis.models.analysis_job import (
    ACTIVE_JOB_STATUSES,
    TERMINAL_JOB_STATUSES,
    AnalysisJob,
    JobStatus,
)
from pageaudit.features.analysis.models.analysis_report import AnalysisReport
from pageaudit.features.analysis.schemas.finding import Finding, Severity
from pageaudit.platform.db.base import new_id
from pageaudit.platform.exceptions import AnalysisNotFoundError, InvalidJobTransition
from pageaudit.platform.utils.url_validator import normalize_target_url

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    JobStatus.pending: {JobStatus.running},
    JobStatus.running: {JobStatus.completed, JobStatus.failed},
}
# Only deadline enforcement and dispatch failures may skip the running state.
FORCED_TRANSITIONS = {
    JobStatus.pending: {JobStatus.running, JobStatus.failed},
    JobStatus.running: {JobStatus.completed, JobStatus.failed},
}


# ── analyses ────────────────────────────────────

def create_analysis(
    db: Session, url: str, language: str = "en", user_id: Optional[str] = None
) -> Analysis:
    analysis = Analysis(
        id=new_id(),
        target_url=url,
        normalized_url=normalize_target_url(url),
        language=language,
        user_id=user_id,
        status=AnalysisStatus.pending,
        finalized=False,
        requested_at=datetime.utcnow(),
    )
    db.add(analysis)
    db.commit()
    db.refresh(analysis)
    return analysis


def get_analysis(db: Session, analysis_id: str) -> Analysis:
    analysis = db.get(Analysis, analysis_id, populate_existing=True)
    if analysis is None:
        raise AnalysisNotFoundError(f"Analysis {analysis_id} not found")
    return analysis


def set_analysis_status(db: Session, analysis_id: str, status: AnalysisStatus) -> None:
    db.execute(
        update(Analysis)
        .where(Analysis.id == analysis_id, Analysis.status.in_([AnalysisStatus.pending, AnalysisStatus.running]))
        .values(status=status)
        .execution_options(synchronize_session=False)
    )
    db.commit()


def mark_completed(db: Session, analysis_id: str, overall_score: int) -> None:
    db.execute(
        update(Analysis)
        .where(Analysis.id == analysis_id)
        .values(status=AnalysisStatus.completed, overall_score=overall_score, completed_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()


def mark_failed(db: Session, analysis_id: str, message: str, category: str = "analysis_failed") -> None:
    """
    Fail the whole run. The run is also flagged as finalized so no later
    completion check can claim it and produce a report.
    """
    now = datetime.utcnow()
    db.execute(
        update(Analysis)
        .where(Analysis.id == analysis_id)
        .values(
            status=AnalysisStatus.failed,
            finalized=True,
            error_message=message,
            error_category=category,
            completed_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    db.execute(
        update(AnalysisJob)
        .where(AnalysisJob.analysis_id == analysis_id, AnalysisJob.status.in_(ACTIVE_JOB_STATUSES))
        .values(status=JobStatus.failed, error_message=message, completed_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    logger.warning(f"[{analysis_id}] Analysis failed ({category}): {message}")


def claim_finalization(db: Session, analysis_id: str) -> bool:
    """
    Atomically claim the right to finalize: succeeds for exactly one caller,
    and only once no job is pending or running.
    """
    active_jobs = (
        select(AnalysisJob.id)
        .where(AnalysisJob.analysis_id == analysis_id, AnalysisJob.status.in_(ACTIVE_JOB_STATUSES))
        .exists()
    )
    result = db.execute(
        update(Analysis)
        .where(Analysis.id == analysis_id, Analysis.finalized.is_(False), ~active_jobs)
        .values(finalized=True, status=AnalysisStatus.finalizing)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


# ── jobs ────────────────────────────────────────

def create_jobs(
    db: Session, analysis_id: str, modules: Iterable[str], deadline_seconds: int
) -> List[AnalysisJob]:
    deadline = datetime.utcnow() + timedelta(seconds=deadline_seconds)
    jobs = [
        AnalysisJob(
            analysis_id=analysis_id,
            module_name=module,
            status=JobStatus.pending,
            deadline_at=deadline,
        )
        for module in dict.fromkeys(modules)
    ]
    db.add_all(jobs)
    db.commit()
    for job in jobs:
        db.refresh(job)
    return jobs


def get_jobs(db: Session, analysis_id: str) -> List[AnalysisJob]:
    return list(
        db.execute(
            select(AnalysisJob)
            .where(AnalysisJob.analysis_id == analysis_id)
            .order_by(AnalysisJob.module_name)
            .execution_options(populate_existing=True)
        ).scalars()
    )


def get_job(db: Session, analysis_id: str, module_name: str) -> AnalysisJob:
    job = db.execute(
        select(AnalysisJob).where(
            AnalysisJob.analysis_id == analysis_id, AnalysisJob.module_name == module_name
        ).execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if job is None:
        raise AnalysisNotFoundError(f"No {module_name} job for analysis {analysis_id}")
    return job


def update_job_status(
    db: Session,
    job_id: str,
    status: JobStatus,
    error_message: Optional[str] = None,
    force: bool = False,
    **kwargs,
) -> AnalysisJob:
    """
    Move a job to a new status. Invalid or lost-race transitions raise
    InvalidJobTransition; terminal states are final.
    """
    job = db.get(AnalysisJob, job_id, populate_existing=True)
    if job is None:
        raise AnalysisNotFoundError(f"Job {job_id} not found")

    current = job.status
    allowed = (FORCED_TRANSITIONS if force else ALLOWED_TRANSITIONS).get(current, set())
    if status not in allowed:
        raise InvalidJobTransition(
            f"Job {job.module_name} of {job.analysis_id}: {current.value} -> {status.value} not allowed"
        )

    values = {"status": status}
    now = datetime.utcnow()
    if status == JobStatus.running:
        values["started_at"] = now
    if status in TERMINAL_JOB_STATUSES:
        values["completed_at"] = now
    if error_message is not None:
        values["error_message"] = error_message
    for key, value in kwargs.items():
        if hasattr(AnalysisJob, key):
            values[key] = value

    # Conditional on the status we read, so concurrent writers cannot both win.
    result = db.execute(
        update(AnalysisJob)
        .where(AnalysisJob.id == job_id, AnalysisJob.status == current)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount != 1:
        raise InvalidJobTransition(f"Job {job_id} changed status concurrently")

    db.refresh(job)
    return job


def job_counts(db: Session, analysis_id: str) -> Dict[str, int]:
    rows = db.execute(
        select(AnalysisJob.status, func.count(AnalysisJob.id))
        .where(AnalysisJob.analysis_id == analysis_id)
        .group_by(AnalysisJob.status)
    ).all()
    counts = {status.value: 0 for status in JobStatus}
    for status, count in rows:
        counts[status.value] = count
    return counts


def is_overall_complete(db: Session, analysis_id: str) -> bool:
    counts = job_counts(db, analysis_id)
    total = sum(counts.values())
    return total > 0 and counts["pending"] == 0 and counts["running"] == 0


def overdue_jobs(db: Session, now: Optional[datetime] = None) -> List[AnalysisJob]:
    now = now or datetime.utcnow()
    return list(
        db.execute(
            select(AnalysisJob).where(
                AnalysisJob.status.in_(ACTIVE_JOB_STATUSES),
                AnalysisJob.deadline_at.is_not(None),
                AnalysisJob.deadline_at < now,
            ).order_by(AnalysisJob.deadline_at)
        ).scalars()
    )


# ── findings ────────────────────────────────────

def insert_findings(
    db: Session,
    analysis_id: str,
    module_name: str,
    findings: Iterable[Finding],
    job_id: Optional[str] = None,
) -> int:
    rows = [
        AnalysisFinding(
            analysis_id=analysis_id,
            job_id=job_id,
            module_name=module_name,
            rule_id=f.rule_id,
            severity=f.severity.value,
            category=f.category,
            location_path=f.location_path,
            message=f.message,
            fix_suggestion=f.fix_suggestion,
            affected_element_count=f.affected_element_count,
        )
        for f in findings
    ]
    db.add_all(rows)
    db.commit()
    return len(rows)


def _to_finding(row: AnalysisFinding) -> Finding:
    severity = Severity.parse(row.severity)
    if severity is None:
        logger.warning(f"[{row.analysis_id}] Stored finding {row.id} has unknown severity {row.severity}")
        severity = Severity.moderate
    return Finding(
        rule_id=row.rule_id,
        severity=severity,
        category=row.category,
        location_path=row.location_path or "",
        message=row.message,
        fix_suggestion=row.fix_suggestion or "",
        affected_element_count=max(1, row.affected_element_count or 1),
    )


def get_findings(db: Session, analysis_id: str) -> List[Finding]:
    """Findings of completed modules only; a failed or unfinished module contributes nothing."""
    rows = db.execute(
        select(AnalysisFinding)
        .join(
            AnalysisJob,
            (AnalysisJob.analysis_id == AnalysisFinding.analysis_id)
            & (AnalysisJob.module_name == AnalysisFinding.module_name),
        )
        .where(AnalysisFinding.analysis_id == analysis_id, AnalysisJob.status == JobStatus.completed)
        .order_by(AnalysisFinding.module_name, AnalysisFinding.id)
    ).scalars()
    return [_to_finding(row) for row in rows]


def delete_findings(db: Session, analysis_id: str, module_name: str) -> int:
    result = db.execute(
        delete(AnalysisFinding)
        .where(AnalysisFinding.analysis_id == analysis_id, AnalysisFinding.module_name == module_name)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount


# ── reports ─────────────────────────────────────

def save_reports(db: Session, analysis_id: str, reports: Dict[str, dict]) -> None:
    """Store one row per tier. Reports are generated once; existing rows are kept."""
    for tier, payload in reports.items():
        db.add(AnalysisReport(analysis_id=analysis_id, tier=tier, payload=payload))
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(f"[{analysis_id}] {tier} report already stored, keeping the existing one")


def get_report(db: Session, analysis_id: str, tier: str) -> Optional[dict]:
    report = db.execute(
        select(AnalysisReport).where(AnalysisReport.analysis_id == analysis_id, AnalysisReport.tier == tier)
    ).scalar_one_or_none()
    return report.payload if report is not None else None


# ── retention ───────────────────────────────────

FINISHED_ANALYSIS_STATUSES = (AnalysisStatus.completed, AnalysisStatus.failed)
EXECUTING_ANALYSIS_STATUSES = (AnalysisStatus.pending, AnalysisStatus.running)


def expired_analysis_ids(db: Session, cutoff: datetime, anonymous_only: bool = False) -> List[str]:
    """Finished runs requested before cutoff. Runs still executing are never returned."""
    query = select(Analysis.id).where(
        Analysis.status.in_(FINISHED_ANALYSIS_STATUSES),
        Analysis.requested_at < cutoff,
    )
    if anonymous_only:
        query = query.where(Analysis.user_id.is_(None))
    return list(db.execute(query.order_by(Analysis.requested_at)).scalars())


def purge_analyses(db: Session, analysis_ids: Iterable[str]) -> int:
    """Delete runs together with their jobs, findings and reports."""
    ids = list(dict.fromkeys(analysis_ids))
    if not ids:
        return 0
    for model in (AnalysisFinding, AnalysisReport, AnalysisJob):
        db.execute(
            delete(model).where(model.analysis_id.in_(ids)).execution_options(synchronize_session=False)
        )
    result = db.execute(
        delete(Analysis).where(Analysis.id.in_(ids)).execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount


def executing_analysis_ids(db: Session, analysis_ids: Iterable[str]) -> Set[str]:
    ids = list(analysis_ids)
    if not ids:
        return set()
    return set(
        db.execute(
            select(Analysis.id).where(Analysis.id.in_(ids), Analysis.status.in_(EXECUTING_ANALYSIS_STATUSES))
        ).scalars()
    )

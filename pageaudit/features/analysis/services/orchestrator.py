"""
Job Orchestrator.

Creates one job per analysis module, validates job transitions and detects
overall completion. Completion is claimed through a single conditional
update so that, however many workers finish at the same moment, exactly one
of them triggers finalization.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional

from sqlalchemy.orm import Session

from pageaudit.features.analysis.models.analysis import Analysis, AnalysisStatus
from pageaudit.features.analysis.models.analysis_job import AnalysisJob, JobStatus
from pageaudit.features.analysis.services import repository
from pageaudit.platform.config import settings
from pageaudit.platform.exceptions import InvalidJobTransition

logger = logging.getLogger(__name__)


class JobOrchestrator:
    def __init__(
        self,
        db: Session,
        on_complete: Callable[[str], Any],
        deadline_seconds: Optional[int] = None,
    ):
        self.db = db
        self.on_complete = on_complete
        self.deadline_seconds = deadline_seconds or settings.MODULE_JOB_DEADLINE_SECONDS

    def start_analysis(
        self,
        url: str,
        language: str = "en",
        modules: Optional[Iterable[str]] = None,
        user_id: Optional[str] = None,
    ) -> Analysis:
        modules = list(dict.fromkeys(modules or settings.DEFAULT_MODULES))
        analysis = repository.create_analysis(self.db, url, language=language, user_id=user_id)
        repository.create_jobs(self.db, analysis.id, modules, self.deadline_seconds)
        logger.info(f"[{analysis.id}] Analysis of {url} started with {len(modules)} modules")
        return analysis

    def transition(
        self,
        analysis_id: str,
        module_name: str,
        status: JobStatus,
        error_message: Optional[str] = None,
        force: bool = False,
        **kwargs,
    ) -> AnalysisJob:
        job = repository.get_job(self.db, analysis_id, module_name)
        job = repository.update_job_status(
            self.db, job.id, status, error_message=error_message, force=force, **kwargs
        )

        if status == JobStatus.running:
            repository.set_analysis_status(self.db, analysis_id, AnalysisStatus.running)
        elif status == JobStatus.failed:
            logger.warning(f"[{analysis_id}] Module {module_name} failed: {error_message}")
        else:
            logger.info(f"[{analysis_id}] Module {module_name} -> {status.value}")

        self.check_completion(analysis_id)
        return job

    def check_completion(self, analysis_id: str) -> bool:
        """Finalize if every job is terminal and nobody has claimed it yet."""
        if not repository.claim_finalization(self.db, analysis_id):
            return False
        logger.info(f"[{analysis_id}] All modules terminal, finalizing")
        self.on_complete(analysis_id)
        return True

    def enforce_deadlines(self, now: Optional[datetime] = None) -> List[str]:
        """Fail overdue pending/running jobs and re-check completion of their runs."""
        touched = []
        for job in repository.overdue_jobs(self.db, now):
            try:
                repository.update_job_status(
                    self.db,
                    job.id,
                    JobStatus.failed,
                    error_message="Processing deadline exceeded",
                    force=True,
                )
            except InvalidJobTransition:
                # finished between the query and the update
                continue
            logger.warning(f"[{job.analysis_id}] Module {job.module_name} exceeded its deadline")
            if job.analysis_id not in touched:
                touched.append(job.analysis_id)

        for analysis_id in touched:
            self.check_completion(analysis_id)
        return touched

import json
import logging
from typing import Any, Dict, List

from celery import group
from celery.signals import worker_process_init, worker_process_shutdown

from pageaudit.features.analysis.models.analysis_job import JobStatus
from pageaudit.features.analysis.services import repository
from pageaudit.features.analysis.services.cleanup import AnalysisCleanup
from pageaudit.features.analysis.services.orchestrator import JobOrchestrator
from pageaudit.features.analysis.services.pipeline import AnalysisPipeline
from pageaudit.features.analyzers.base import Snapshot
from pageaudit.features.analyzers.engine import AnalyzerEngine
from pageaudit.features.analyzers.page_loader import SeleniumPageLoader
from pageaudit.platform.cache.manager import get_cache_manager
from pageaudit.platform.celery_app import celery_app
from pageaudit.platform.config import settings
from pageaudit.platform.db.session import get_sync_db
from pageaudit.platform.exceptions import InvalidJobTransition, PageLoadError
from pageaudit.platform.storage import LocalObjectStorage

logger = logging.getLogger(__name__)

TASKS = "pageaudit.features.analysis.workers.tasks"


def snapshot_path(analysis_id: str) -> str:
    return f"{analysis_id}/snapshot.json"


def dispatch_finalize(analysis_id: str):
    finalize_analysis.delay(analysis_id)


def discard_snapshot(analysis_id: str) -> None:
    try:
        LocalObjectStorage().delete(snapshot_path(analysis_id))
    except OSError as e:
        logger.warning(f"[{analysis_id}] Could not remove snapshot: {e}")


@worker_process_init.connect
def _start_cache(**kwargs):
    get_cache_manager().start()


@worker_process_shutdown.connect
def _stop_cache(**kwargs):
    get_cache_manager().stop()


# Phase 1: fetch the page once, then fan out one task per module

@celery_app.task(
    bind=True,
    name=f"{TASKS}.fetch_page",
    soft_time_limit=settings.PAGE_LOAD_TIMEOUT_SECONDS + 30,
)
def fetch_page(self, analysis_id: str) -> Dict[str, Any]:
    db = get_sync_db()
    try:
        analysis = repository.get_analysis(db, analysis_id)
        modules: List[str] = [job.module_name for job in repository.get_jobs(db, analysis_id)]
        url = analysis.target_url

        logger.info(f"[{analysis_id}] Fetching {url}")
        try:
            snapshot = SeleniumPageLoader().load_page(url, settings.PAGE_LOAD_TIMEOUT_SECONDS)
        except PageLoadError as e:
            repository.mark_failed(db, analysis_id, e.message, e.category)
            return {"analysis_id": analysis_id, "status": "failed", "error_category": e.category}

        LocalObjectStorage().write(
            snapshot_path(analysis_id), json.dumps(snapshot.to_dict()).encode("utf-8")
        )
    except Exception as e:
        logger.error(f"[{analysis_id}] Fetch failed: {e}")
        repository.mark_failed(db, analysis_id, str(e), "unreachable")
        discard_snapshot(analysis_id)
        raise
    finally:
        db.close()

    group(run_module.s(analysis_id, module) for module in modules).apply_async()
    logger.info(f"[{analysis_id}] Dispatched {len(modules)} module tasks")
    return {"analysis_id": analysis_id, "status": "dispatched", "modules": modules}


# Phase 2: one analysis module

@celery_app.task(
    bind=True,
    name=f"{TASKS}.run_module",
    soft_time_limit=settings.MODULE_JOB_DEADLINE_SECONDS,
)
def run_module(self, analysis_id: str, module_name: str) -> Dict[str, Any]:
    db = get_sync_db()
    orchestrator = JobOrchestrator(db, on_complete=dispatch_finalize)
    try:
        try:
            orchestrator.transition(
                analysis_id, module_name, JobStatus.running, celery_task_id=self.request.id
            )
        except InvalidJobTransition as e:
            logger.info(f"[{analysis_id}] Skipping {module_name}: {e.message}")
            return {"analysis_id": analysis_id, "module": module_name, "status": "skipped"}

        try:
            raw = LocalObjectStorage().read(snapshot_path(analysis_id))
            snapshot = Snapshot.from_dict(json.loads(raw))
            findings = AnalyzerEngine().run_module(snapshot, module_name)

            job = repository.get_job(db, analysis_id, module_name)
            repository.insert_findings(db, analysis_id, module_name, findings, job_id=job.id)
        except Exception as e:
            logger.error(f"[{analysis_id}] Module {module_name} failed: {e}")
            try:
                orchestrator.transition(analysis_id, module_name, JobStatus.failed, error_message=str(e))
            except InvalidJobTransition:
                logger.info(f"[{analysis_id}] {module_name} already terminal")
            return {"analysis_id": analysis_id, "module": module_name, "status": "failed"}

        try:
            orchestrator.transition(analysis_id, module_name, JobStatus.completed)
        except InvalidJobTransition:
            # deadline enforcement got there first
            repository.delete_findings(db, analysis_id, module_name)
            logger.warning(f"[{analysis_id}] {module_name} finished after its deadline, findings discarded")
            return {"analysis_id": analysis_id, "module": module_name, "status": "late"}

        return {
            "analysis_id": analysis_id,
            "module": module_name,
            "status": "completed",
            "findings": len(findings),
        }
    finally:
        db.close()


# Phase 3: score, aggregate, build reports, cache

@celery_app.task(bind=True, name=f"{TASKS}.finalize_analysis")
def finalize_analysis(self, analysis_id: str) -> Dict[str, Any]:
    db = get_sync_db()
    try:
        pair = AnalysisPipeline(db).finalize(analysis_id)
    except Exception as e:
        logger.error(f"[{analysis_id}] Finalization failed: {e}", exc_info=True)
        repository.mark_failed(db, analysis_id, f"Finalization failed: {e}", "analysis_failed")
        raise
    finally:
        db.close()
        discard_snapshot(analysis_id)

    if pair is None:
        return {"analysis_id": analysis_id, "status": "failed"}
    return {"analysis_id": analysis_id, "status": "completed", "score": pair.detailed["scores"]["overall"]}


# Periodic maintenance

@celery_app.task(name=f"{TASKS}.enforce_module_deadlines")
def enforce_module_deadlines() -> Dict[str, Any]:
    db = get_sync_db()
    try:
        touched = JobOrchestrator(db, on_complete=dispatch_finalize).enforce_deadlines()
    finally:
        db.close()
    if touched:
        logger.warning(f"Deadline enforcement failed jobs in {len(touched)} analyses")
    return {"analyses": touched}


@celery_app.task(name=f"{TASKS}.sweep_cache")
def sweep_cache() -> Dict[str, Any]:
    removed = get_cache_manager().sweep()
    return {"removed": removed}


@celery_app.task(name=f"{TASKS}.purge_expired_analyses")
def purge_expired_analyses() -> Dict[str, int]:
    db = get_sync_db()
    try:
        return AnalysisCleanup(db).purge_expired()
    finally:
        db.close()

"""
Finalization pipeline and the single-process analysis service.

finalize: findings -> score -> recommendations -> reports -> persist -> cache
analyze:  cache lookup -> load page -> run analyzers -> record jobs -> finalize
"""
import logging
from typing import Any, Dict, Iterable, Optional

from sqlalchemy.orm import Session

from pageaudit.features.analysis.models.analysis_job import JobStatus
from pageaudit.features.analysis.services import repository
from pageaudit.features.analysis.services.orchestrator import JobOrchestrator
from pageaudit.features.analyzers.engine import AnalyzerEngine
from pageaudit.features.analyzers.page_loader import SeleniumPageLoader
from pageaudit.features.recommendations.services.aggregator import RecommendationAggregator
from pageaudit.features.recommendations.services.i18n import validate_language
from pageaudit.features.reports.services.access import DETAILED, CallerEntitlement, decide
from pageaudit.features.reports.services.report_builder import ReportBuilder, ReportContext, ReportPair
from pageaudit.features.scoring.services.scoring import ScoringEngine
from pageaudit.platform.cache.manager import CacheManager, get_cache_manager
from pageaudit.platform.config import settings
from pageaudit.platform.exceptions import AnalysisFailedError, PageLoadError, ReportNotReadyError

logger = logging.getLogger(__name__)


class AnalysisPipeline:
    def __init__(
        self,
        db: Session,
        cache: Optional[CacheManager] = None,
        scoring: Optional[ScoringEngine] = None,
        aggregator: Optional[RecommendationAggregator] = None,
        builder: Optional[ReportBuilder] = None,
    ):
        self.db = db
        self.cache = cache if cache is not None else get_cache_manager()
        self.scoring = scoring or ScoringEngine()
        self.aggregator = aggregator or RecommendationAggregator()
        self.builder = builder or ReportBuilder()

    def finalize(self, analysis_id: str) -> Optional[ReportPair]:
        """
        Build, store and cache both report tiers. Returns None when every
        module failed; the run is then marked failed and nothing is cached.
        """
        analysis = repository.get_analysis(self.db, analysis_id)
        jobs = repository.get_jobs(self.db, analysis_id)

        failed = {job.module_name: job.error_message or "failed" for job in jobs if job.status == JobStatus.failed}
        if not jobs or len(failed) == len(jobs):
            repository.mark_failed(self.db, analysis_id, "All analysis modules failed", "analysis_failed")
            return None

        findings = repository.get_findings(self.db, analysis_id)
        scores = self.scoring.score(findings)
        recommendations = self.aggregator.aggregate(findings, analysis.language)

        context = ReportContext(
            analysis_id=analysis_id,
            url=analysis.target_url,
            language=analysis.language,
            failed_modules=failed,
        )
        pair = self.builder.build_safely(context, findings, scores, recommendations)

        repository.save_reports(self.db, analysis_id, pair.to_dict())
        repository.mark_completed(self.db, analysis_id, scores.overall)

        self.cache.set_analysis(
            analysis.target_url,
            analysis.language,
            analysis_id,
            {"analysisId": analysis_id, **pair.to_dict()},
        )
        logger.info(
            f"[{analysis_id}] Finalized: score {scores.overall}, {len(findings)} findings, "
            f"{len(failed)} failed modules"
        )
        return pair


def get_report(
    db: Session,
    analysis_id: str,
    tier: str,
    cache: Optional[CacheManager] = None,
) -> Dict[str, Any]:
    """Stored report for a tier, served from cache when possible."""
    cache = cache if cache is not None else get_cache_manager()
    cached = cache.get_analysis_by_id(analysis_id)
    if cached and tier in cached:
        return cached[tier]

    report = repository.get_report(db, analysis_id, tier)
    if report is not None:
        return report

    analysis = repository.get_analysis(db, analysis_id)
    if analysis.error_message:
        raise AnalysisFailedError(analysis.error_message, analysis.error_category)
    raise ReportNotReadyError(f"Report for analysis {analysis_id} is not ready ({analysis.status.value})")


class InstantAnalysisService:
    """Runs a whole analysis in the current process and returns the report."""

    def __init__(
        self,
        db: Session,
        loader=None,
        engine: Optional[AnalyzerEngine] = None,
        cache: Optional[CacheManager] = None,
        pipeline: Optional[AnalysisPipeline] = None,
    ):
        self.db = db
        self.loader = loader or SeleniumPageLoader()
        self.engine = engine or AnalyzerEngine()
        self.cache = cache if cache is not None else get_cache_manager()
        self.pipeline = pipeline or AnalysisPipeline(db, cache=self.cache)

    def analyze(
        self,
        url: str,
        language: str = "en",
        entitlement: Optional[CallerEntitlement] = None,
        requested_tier: str = DETAILED,
        modules: Optional[Iterable[str]] = None,
    ) -> Dict[str, Any]:
        language = validate_language(language)
        tier = decide(entitlement, requested_tier)

        cached = self.cache.get_analysis(url, language)
        if cached:
            logger.info(f"[{cached['analysisId']}] Serving cached analysis for {url}")
            return {"analysisId": cached["analysisId"], "tier": tier, "cached": True, "report": cached[tier]}

        modules = list(dict.fromkeys(modules or settings.DEFAULT_MODULES))
        orchestrator = JobOrchestrator(self.db, on_complete=self.pipeline.finalize)
        user_id = entitlement.user_id if entitlement else None
        analysis = orchestrator.start_analysis(url, language=language, modules=modules, user_id=user_id)
        analysis_id = analysis.id

        try:
            snapshot = self.loader.load_page(url, settings.PAGE_LOAD_TIMEOUT_SECONDS)
        except PageLoadError as e:
            repository.mark_failed(self.db, analysis_id, e.message, e.category)
            raise

        for module in modules:
            orchestrator.transition(analysis_id, module, JobStatus.running)

        result = self.engine.run_sync(snapshot, modules)

        # The last transition triggers finalization through the orchestrator.
        for module in result.succeeded:
            job = repository.get_job(self.db, analysis_id, module)
            repository.insert_findings(self.db, analysis_id, module, result.by_module[module], job_id=job.id)
            orchestrator.transition(analysis_id, module, JobStatus.completed)
        for module in result.failed:
            orchestrator.transition(analysis_id, module, JobStatus.failed, error_message=result.errors[module])

        report = repository.get_report(self.db, analysis_id, tier)
        if report is None:
            analysis = repository.get_analysis(self.db, analysis_id)
            raise AnalysisFailedError(analysis.error_message or "Analysis failed", analysis.error_category)
        return {"analysisId": analysis_id, "tier": tier, "cached": False, "report": report}

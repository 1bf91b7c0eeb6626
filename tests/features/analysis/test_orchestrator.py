from datetime import datetime, timedelta

import pytest

from pageaudit.features.analysis.models.analysis import AnalysisStatus
from pageaudit.features.analysis.models.analysis_job import JobStatus
from pageaudit.features.analysis.services import repository
from pageaudit.features.analysis.services.orchestrator import JobOrchestrator
from pageaudit.features.analysis.services.pipeline import AnalysisPipeline
from pageaudit.platform.exceptions import AnalysisNotFoundError, InvalidJobTransition

MODULES = ["structure", "images", "forms"]


class CompletionRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, analysis_id):
        self.calls.append(analysis_id)


@pytest.fixture
def finalized():
    return CompletionRecorder()


@pytest.fixture
def orchestrator(db, finalized):
    return JobOrchestrator(db, on_complete=finalized, deadline_seconds=60)


@pytest.fixture
def analysis(orchestrator):
    return orchestrator.start_analysis("https://Example.com/", language="en", modules=MODULES)


def test_start_creates_one_pending_job_per_module(db, analysis):
    jobs = repository.get_jobs(db, analysis.id)

    assert sorted(job.module_name for job in jobs) == sorted(MODULES)
    assert all(job.status == JobStatus.pending for job in jobs)
    assert all(job.deadline_at is not None for job in jobs)
    assert analysis.status == AnalysisStatus.pending
    assert analysis.normalized_url == "https://example.com"


def test_duplicate_modules_get_one_job(db, orchestrator):
    analysis = orchestrator.start_analysis("https://example.com", modules=["images", "images"])

    assert len(repository.get_jobs(db, analysis.id)) == 1


def test_running_job_marks_analysis_running(db, orchestrator, analysis):
    job = orchestrator.transition(analysis.id, "images", JobStatus.running)

    assert job.status == JobStatus.running
    assert job.started_at is not None
    assert repository.get_analysis(db, analysis.id).status == AnalysisStatus.running


def test_invalid_transitions_are_rejected(orchestrator, analysis):
    with pytest.raises(InvalidJobTransition):
        orchestrator.transition(analysis.id, "images", JobStatus.completed)

    orchestrator.transition(analysis.id, "images", JobStatus.running)
    orchestrator.transition(analysis.id, "images", JobStatus.completed)

    for status in (JobStatus.running, JobStatus.failed, JobStatus.pending):
        with pytest.raises(InvalidJobTransition):
            orchestrator.transition(analysis.id, "images", status)


def test_forced_failure_from_pending(db, orchestrator, analysis):
    job = orchestrator.transition(analysis.id, "forms", JobStatus.failed, error_message="gone", force=True)

    assert job.status == JobStatus.failed
    assert job.error_message == "gone"
    assert job.completed_at is not None


def test_completion_fires_once_after_last_job(orchestrator, analysis, finalized):
    for module in MODULES:
        orchestrator.transition(analysis.id, module, JobStatus.running)

    orchestrator.transition(analysis.id, "structure", JobStatus.completed)
    orchestrator.transition(analysis.id, "images", JobStatus.failed, error_message="boom")
    assert finalized.calls == []

    orchestrator.transition(analysis.id, "forms", JobStatus.completed)
    assert finalized.calls == [analysis.id]

    assert orchestrator.check_completion(analysis.id) is False
    assert finalized.calls == [analysis.id]


def test_claim_finalization_succeeds_once(db, analysis):
    assert repository.claim_finalization(db, analysis.id) is False

    for job in repository.get_jobs(db, analysis.id):
        repository.update_job_status(db, job.id, JobStatus.failed, force=True)

    assert repository.claim_finalization(db, analysis.id) is True
    assert repository.claim_finalization(db, analysis.id) is False
    assert repository.get_analysis(db, analysis.id).status == AnalysisStatus.finalizing


def test_job_counts_and_overall_complete(db, orchestrator, analysis):
    orchestrator.transition(analysis.id, "images", JobStatus.running)

    assert repository.job_counts(db, analysis.id) == {
        "pending": 2,
        "running": 1,
        "completed": 0,
        "failed": 0,
    }
    assert repository.is_overall_complete(db, analysis.id) is False


def test_enforce_deadlines(db, orchestrator, analysis, finalized):
    orchestrator.transition(analysis.id, "images", JobStatus.running)
    orchestrator.transition(analysis.id, "images", JobStatus.completed)

    assert orchestrator.enforce_deadlines(datetime.utcnow()) == []

    touched = orchestrator.enforce_deadlines(datetime.utcnow() + timedelta(seconds=120))

    assert touched == [analysis.id]
    jobs = {job.module_name: job for job in repository.get_jobs(db, analysis.id)}
    assert jobs["images"].status == JobStatus.completed
    assert jobs["forms"].status == JobStatus.failed
    assert jobs["forms"].error_message == "Processing deadline exceeded"
    assert finalized.calls == [analysis.id]


def test_late_completion_after_deadline_is_rejected(orchestrator, analysis):
    orchestrator.transition(analysis.id, "images", JobStatus.running)
    orchestrator.enforce_deadlines(datetime.utcnow() + timedelta(seconds=120))

    with pytest.raises(InvalidJobTransition):
        orchestrator.transition(analysis.id, "images", JobStatus.completed)


def test_mark_failed_fails_active_jobs_and_blocks_finalization(db, orchestrator, analysis, finalized):
    orchestrator.transition(analysis.id, "images", JobStatus.running)

    repository.mark_failed(db, analysis.id, "Could not load page", "dns")

    stored = repository.get_analysis(db, analysis.id)
    assert stored.status == AnalysisStatus.failed
    assert stored.error_category == "dns"
    assert all(job.status == JobStatus.failed for job in repository.get_jobs(db, analysis.id))
    assert orchestrator.check_completion(analysis.id) is False
    assert finalized.calls == []


def test_findings_round_trip(db, orchestrator, analysis, make_finding):
    findings = [
        make_finding(rule_id="ACC_IMG_01_ALT_TEXT_MISSING", count=2),
        make_finding(rule_id="ACC_IMG_03_ALT_TEXT_INFORMATIVE", severity="minor"),
    ]

    assert repository.insert_findings(db, analysis.id, "images", findings) == 2
    assert repository.get_findings(db, analysis.id) == []

    orchestrator.transition(analysis.id, "images", JobStatus.running)
    orchestrator.transition(analysis.id, "images", JobStatus.completed)

    assert sorted(repository.get_findings(db, analysis.id), key=lambda f: f.rule_id) == findings


def test_findings_of_a_module_failed_on_deadline_are_not_scored(db, cache, make_finding):
    pipeline = AnalysisPipeline(db, cache=cache)
    orchestrator = JobOrchestrator(db, on_complete=pipeline.finalize, deadline_seconds=60)
    analysis = orchestrator.start_analysis("https://example.com", modules=["images", "forms"])
    orchestrator.transition(analysis.id, "images", JobStatus.running)
    orchestrator.transition(analysis.id, "images", JobStatus.completed)
    orchestrator.transition(analysis.id, "forms", JobStatus.running)
    repository.insert_findings(
        db, analysis.id, "forms", [make_finding(rule_id="ACC_FRM_01_LABEL_MISSING", category="forms")]
    )

    orchestrator.enforce_deadlines(datetime.utcnow() + timedelta(days=1))

    assert repository.get_findings(db, analysis.id) == []
    detailed = repository.get_report(db, analysis.id, "detailed")
    assert detailed["failedModules"] == ["forms"]
    assert detailed["findings"] == []
    assert detailed["scores"]["overall"] == 95

    assert repository.delete_findings(db, analysis.id, "forms") == 1


def test_reports_are_written_once(db, analysis):
    repository.save_reports(db, analysis.id, {"free": {"v": 1}, "detailed": {"v": 1}})
    repository.save_reports(db, analysis.id, {"free": {"v": 2}})

    assert repository.get_report(db, analysis.id, "free") == {"v": 1}
    assert repository.get_report(db, analysis.id, "detailed") == {"v": 1}


def test_unknown_analysis(db):
    with pytest.raises(AnalysisNotFoundError):
        repository.get_analysis(db, "does-not-exist")

from datetime import datetime, timedelta

import pytest

from pageaudit.features.analysis.models.analysis import AnalysisStatus
from pageaudit.features.analysis.models.analysis_finding import AnalysisFinding
from pageaudit.features.analysis.models.analysis_job import AnalysisJob
from pageaudit.features.analysis.models.analysis_report import AnalysisReport
from pageaudit.features.analysis.services import repository
from pageaudit.features.analysis.services.cleanup import AnalysisCleanup
from pageaudit.features.analysis.services.orchestrator import JobOrchestrator
from pageaudit.platform.exceptions import AnalysisNotFoundError
from pageaudit.platform.storage import LocalObjectStorage


@pytest.fixture
def storage(tmp_path):
    return LocalObjectStorage(str(tmp_path / "objects"))


@pytest.fixture
def cleanup(db, storage):
    return AnalysisCleanup(db, storage=storage, anonymous_retention_days=30, retention_days=365)


@pytest.fixture
def finished_run(db, make_finding):
    def _run(user_id=None, failed=False):
        orchestrator = JobOrchestrator(db, on_complete=lambda _: None)
        analysis = orchestrator.start_analysis("https://example.com", modules=["images"], user_id=user_id)
        repository.insert_findings(db, analysis.id, "images", [make_finding()])
        repository.save_reports(db, analysis.id, {"free": {"v": 1}, "detailed": {"v": 1}})
        if failed:
            repository.mark_failed(db, analysis.id, "Could not load page", "dns")
        else:
            repository.mark_completed(db, analysis.id, 84)
        return analysis.id

    return _run


def _count(db, model, analysis_id):
    return db.query(model).filter(model.analysis_id == analysis_id).count()


def test_old_anonymous_runs_are_purged_with_their_rows(db, cleanup, finished_run):
    anonymous = finished_run()
    failed = finished_run(failed=True)
    owned = finished_run(user_id="user-1")

    result = cleanup.purge_expired(datetime.utcnow() + timedelta(days=31))

    assert result["analyses_deleted"] == 2
    assert result["anonymous_deleted"] == 2
    for analysis_id in (anonymous, failed):
        with pytest.raises(AnalysisNotFoundError):
            repository.get_analysis(db, analysis_id)
        assert _count(db, AnalysisJob, analysis_id) == 0
        assert _count(db, AnalysisFinding, analysis_id) == 0
        assert _count(db, AnalysisReport, analysis_id) == 0
    assert repository.get_analysis(db, owned).status == AnalysisStatus.completed


def test_owned_runs_expire_after_the_longer_retention(db, cleanup, finished_run):
    owned = finished_run(user_id="user-1")

    assert cleanup.purge_expired(datetime.utcnow() + timedelta(days=100))["analyses_deleted"] == 0
    assert cleanup.purge_expired(datetime.utcnow() + timedelta(days=366))["analyses_deleted"] == 1
    with pytest.raises(AnalysisNotFoundError):
        repository.get_analysis(db, owned)


def test_recent_and_executing_runs_are_kept(db, cleanup, finished_run):
    recent = finished_run()
    orchestrator = JobOrchestrator(db, on_complete=lambda _: None)
    executing = orchestrator.start_analysis("https://example.com", modules=["images"])

    assert cleanup.purge_expired()["analyses_deleted"] == 0
    result = cleanup.purge_expired(datetime.utcnow() + timedelta(days=400))

    assert result["analyses_deleted"] == 1
    with pytest.raises(AnalysisNotFoundError):
        repository.get_analysis(db, recent)
    assert repository.get_analysis(db, executing.id).status == AnalysisStatus.pending


def test_orphaned_storage_is_removed(db, cleanup, storage, finished_run):
    finished = finished_run()
    orchestrator = JobOrchestrator(db, on_complete=lambda _: None)
    executing = orchestrator.start_analysis("https://example.com", modules=["images"])
    for prefix in (finished, executing.id, "gone"):
        storage.write(f"{prefix}/snapshot.json", b"{}")

    assert cleanup.purge_orphaned_storage() == 2
    assert storage.list_prefixes() == [executing.id]


def test_purge_with_nothing_to_do(cleanup):
    assert cleanup.purge_expired() == {"analyses_deleted": 0, "anonymous_deleted": 0, "storage_deleted": 0}

from celery import Celery
from kombu import Queue

from pageaudit.platform.config import settings

TASKS = "pageaudit.features.analysis.workers.tasks"


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Queue Structure:
    - analysis.orchestration: page fetch and fan-out, periodic maintenance
      (deadlines, cache sweep, retention cleanup)
    - analysis.modules: one task per analysis module (analyzer run)
    - analysis.finalize: scoring, recommendations and report generation

    Tasks talk to each other only through job rows, the findings table and
    object storage; the page snapshot is stored once by the fetch task.
    """
    celery_app = Celery(
        "page_audit",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
    )

    celery_app.conf.update(
        task_serializer=settings.CELERY_TASK_SERIALIZER,
        result_serializer=settings.CELERY_RESULT_SERIALIZER,
        accept_content=[settings.CELERY_ACCEPT_CONTENT],
        timezone="UTC",
        enable_utc=True,
        task_track_started=settings.CELERY_TASK_TRACK_STARTED,
        task_time_limit=settings.CELERY_TASK_TIME_LIMIT,

        result_expires=3600,

        task_routes={
            f"{TASKS}.fetch_page": {"queue": "analysis.orchestration"},
            f"{TASKS}.run_module": {"queue": "analysis.modules"},
            f"{TASKS}.finalize_analysis": {"queue": "analysis.finalize"},
            f"{TASKS}.enforce_module_deadlines": {"queue": "analysis.orchestration"},
            f"{TASKS}.sweep_cache": {"queue": "analysis.orchestration"},
            f"{TASKS}.purge_expired_analyses": {"queue": "analysis.orchestration"},
        },

        task_queues=(
            Queue("default"),
            Queue("analysis.orchestration"),
            Queue("analysis.modules"),
            Queue("analysis.finalize"),
        ),

        task_default_queue="default",

        worker_prefetch_multiplier=1,  # fair distribution

        task_acks_late=True,
        task_reject_on_worker_lost=True,

        beat_schedule={
            "enforce-module-deadlines": {
                "task": f"{TASKS}.enforce_module_deadlines",
                "schedule": settings.DEADLINE_CHECK_INTERVAL_SECONDS,
            },
            "sweep-cache": {
                "task": f"{TASKS}.sweep_cache",
                "schedule": settings.CACHE_SWEEP_INTERVAL_SECONDS,
            },
            "purge-expired-analyses": {
                "task": f"{TASKS}.purge_expired_analyses",
                "schedule": settings.CLEANUP_INTERVAL_SECONDS,
            },
        },
    )

    celery_app.autodiscover_tasks(["pageaudit.features.analysis.workers"])

    return celery_app


celery_app = create_celery_app()

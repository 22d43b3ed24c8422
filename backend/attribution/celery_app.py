"""Celery application bootstrap used by workers and FastAPI."""

from __future__ import annotations

from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_ready
from kombu import Exchange, Queue

from attribution.config import settings

celery_app = Celery(
    "attribution",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "attribution.tasks.pipeline",
        "attribution.tasks.maintenance",
        "attribution.tasks.private_sync",
    ],
)

celery_app.conf.update(
    task_default_queue=settings.CELERY_DEFAULT_QUEUE,
    task_default_exchange="attribution",
    task_default_routing_key="pipeline.default",
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_soft_time_limit=settings.CELERY_TASK_SOFT_TIME_LIMIT,
    task_time_limit=settings.CELERY_TASK_TIME_LIMIT,
    broker_heartbeat=settings.CELERY_BROKER_HEARTBEAT,
    task_queues=[
        # Default queue for unassigned tasks
        Queue(
            settings.CELERY_DEFAULT_QUEUE,
            Exchange("attribution"),
            routing_key="pipeline.default",
        ),
        # Ingestion: repo metadata, commit listing, LOC enrichment (GitHub-bound)
        Queue(
            "ingestion",
            Exchange("attribution"),
            routing_key="pipeline.ingestion",
        ),
        # Processing: PR reclassification, stats, commit deletion, private sync
        Queue(
            "processing",
            Exchange("attribution"),
            routing_key="pipeline.processing",
        ),
        # Maintenance: recovery, stale resync, backfill, cleanup
        Queue(
            "maintenance",
            Exchange("attribution"),
            routing_key="pipeline.maintenance",
        ),
    ],
    # send_task bypasses the queue given to the task decorator
    task_routes={
        "attribution.tasks.pipeline.start_owner_queue": {"queue": "ingestion"},
        "attribution.tasks.pipeline.fetch_repo_metadata": {"queue": "ingestion"},
        "attribution.tasks.pipeline.fetch_commits_page": {"queue": "ingestion"},
        "attribution.tasks.pipeline.enrich_commit_stats": {"queue": "ingestion"},
        "attribution.tasks.pipeline.*": {"queue": "processing"},
        "attribution.tasks.private_sync.*": {"queue": "processing"},
        "attribution.tasks.maintenance.*": {"queue": "maintenance"},
    },
    broker_connection_retry_on_startup=True,
    # Celery Beat Schedule for periodic tasks
    beat_schedule={
        "recover-stuck-repos-hourly": {
            "task": "attribution.tasks.maintenance.recover_stuck_repos",
            "schedule": crontab(minute=15),
        },
        "resync-stale-repos-daily": {
            "task": "attribution.tasks.maintenance.resync_stale_repos",
            "schedule": crontab(hour=3, minute=0),
        },
        "cleanup-rate-limits-daily": {
            "task": "attribution.tasks.maintenance.cleanup_rate_limits",
            "schedule": crontab(hour=4, minute=0),
        },
    },
    timezone="UTC",
)


@worker_ready.connect
def on_worker_ready(**kwargs):
    """Initialize logging when worker is ready."""
    from attribution.core.logging import setup_logging

    setup_logging()


__all__ = ["celery_app"]

"""
Maintenance Tasks - Scheduled recovery and housekeeping jobs.

These tasks are designed to run periodically via Celery Beat, except the
backfill and owner resync which are triggered by an operator.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from celery import shared_task

from attribution.database.mongo import get_database
from attribution.services.github import get_public_github_client
from attribution.services.recovery_service import RecoveryService
from attribution.services.scheduling import dispatch

logger = logging.getLogger(__name__)


@shared_task(
    name="attribution.tasks.maintenance.recover_stuck_repos",
    bind=True,
    queue="maintenance",
)
def recover_stuck_repos(self) -> Dict[str, Any]:
    """
    Reset repositories stuck in syncing and re-kick orphaned owner queues.

    Runs hourly at minute 15.
    """
    report = RecoveryService(get_database()).recover_stuck_repos()
    dispatch(report.steps)
    return {
        "status": "success",
        "reset_stuck": report.reset_stuck,
        "rekicked_owners": report.rekicked_owners,
        "executed_at": datetime.now(timezone.utc).isoformat(),
    }


@shared_task(
    name="attribution.tasks.maintenance.resync_stale_repos",
    bind=True,
    queue="maintenance",
)
def resync_stale_repos(self) -> Dict[str, Any]:
    """
    Re-enter synced repositories that received pushes since their last sync.

    Runs daily at 03:00 UTC.
    """
    with get_public_github_client() as client:
        report = RecoveryService(get_database()).resync_stale_repos(client)
    dispatch(report.steps)
    return {
        "status": "success",
        "checked": report.checked,
        "unchanged": report.unchanged,
        "resynced": report.resynced,
        "failed": report.failed,
        "executed_at": datetime.now(timezone.utc).isoformat(),
    }


@shared_task(
    name="attribution.tasks.maintenance.resync_affected_repos",
    bind=True,
    queue="maintenance",
)
def resync_affected_repos(
    self,
    max_repos: Optional[int] = None,
    dry_run: bool = False,
    only_unspecified: bool = False,
) -> Dict[str, Any]:
    """Re-sync repositories whose tool breakdown is missing or all unspecified."""
    report = RecoveryService(get_database()).resync_affected_repos(
        max_repos=max_repos, dry_run=dry_run, only_unspecified=only_unspecified
    )
    dispatch(report.steps)
    return {"status": "success", **report.to_dict()}


@shared_task(
    name="attribution.tasks.maintenance.admin_resync_owner",
    bind=True,
    queue="maintenance",
)
def admin_resync_owner(self, owner: str, dry_run: bool = False) -> Dict[str, Any]:
    outcome = RecoveryService(get_database()).admin_resync_owner(owner, dry_run=dry_run)
    dispatch(outcome.steps)
    return {"status": "success", **outcome.payload}


@shared_task(
    name="attribution.tasks.maintenance.cleanup_rate_limits",
    bind=True,
    queue="maintenance",
)
def cleanup_rate_limits(self) -> Dict[str, Any]:
    """
    Delete throttle records past their retention window.

    Runs daily at 04:00 UTC.
    """
    deleted_count = RecoveryService(get_database()).cleanup_rate_limits()
    return {
        "status": "success",
        "deleted_count": deleted_count,
        "executed_at": datetime.now(timezone.utc).isoformat(),
    }

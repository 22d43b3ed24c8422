"""
Repository sync state machine and the per-owner chain.

At most one repository per owner is syncing. Starting the chain and
advancing it both go through ``start_owner_queue``, which claims the next
pending repository while holding a Redis lock scoped to the owner, so two
completions firing at once cannot both start a repository.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from pymongo.database import Database

from attribution.core.redis import RedisLock
from attribution.entities.enums import SyncStage, SyncStatus
from attribution.entities.repo import Repo
from attribution.repositories.repo import RepoRepository
from attribution.services.scheduling import (
    FETCH_REPO_METADATA,
    RECOMPUTE_GLOBAL_STATS,
    ScheduledStep,
)
from attribution.utils.prometheus_metrics import record_sync_finished

logger = logging.getLogger(__name__)


def run_kwargs(repo: Repo, **kwargs) -> dict:
    """Step kwargs tagged with the run they belong to."""
    if repo.sync_run_id:
        kwargs["run_id"] = repo.sync_run_id
    return kwargs


def owner_lock_key(owner: str) -> str:
    return f"owner-queue:{owner.lower()}"


class SyncStateService:
    def __init__(self, db: Database):
        self.db = db
        self.repos = RepoRepository(db)

    def get_syncing_repo(self, repo_id: str, run_id: Optional[str] = None) -> Optional[Repo]:
        """
        The repository a step belongs to, if the step's run is still the one syncing.

        Steps arriving for a repository that was reset or finished in the
        meantime, or that was reset and claimed again by a newer run, are
        stale and must do nothing. Accepting a step counts as progress.
        """
        repo = self.repos.find_by_id(repo_id)
        if repo is None:
            logger.warning(f"Repo {repo_id} no longer exists, dropping step")
            return None
        if repo.sync_status != SyncStatus.SYNCING.value:
            logger.info(f"Repo {repo.full_name} is {repo.sync_status}, dropping stale step")
            return None
        if run_id is not None and repo.sync_run_id != run_id:
            logger.info(f"Repo {repo.full_name} was claimed again, dropping step of run {run_id}")
            return None

        self.repos.touch_progress(repo.id)
        return repo

    def set_stage(self, repo_id: str, stage: SyncStage, **fields) -> None:
        self.repos.set_stage(repo_id, stage, **fields)

    def start_owner_queue(self, owner: str) -> Optional[ScheduledStep]:
        """Claim the owner's next pending repository and schedule its first step."""
        with RedisLock(owner_lock_key(owner)):
            repo = self.repos.claim_next_pending(owner)

        if repo is None:
            return None

        logger.info(f"Starting sync of {repo.full_name}")
        return ScheduledStep(FETCH_REPO_METADATA, run_kwargs(repo, repo_id=str(repo.id)))

    def mark_synced(self, repo_id: str, total_commits: int) -> List[ScheduledStep]:
        repo = self.repos.find_by_id(repo_id)
        if repo is None:
            return []

        self.repos.mark_synced(repo_id, total_commits)
        record_sync_finished(SyncStatus.SYNCED.value)
        logger.info(f"Repo {repo.full_name} synced with {total_commits} commits")
        return self._advance(repo.owner)

    def park(self, repo_id: str, countdown: float, run_id: Optional[str] = None) -> None:
        """Record that the run's next step is waiting out a rate limit."""
        repo = self.repos.find_by_id(repo_id)
        if repo is None or (run_id is not None and repo.sync_run_id != run_id):
            return
        self.repos.park(repo_id, datetime.now(timezone.utc) + timedelta(seconds=countdown))

    def mark_error(
        self, repo_id: str, message: str, run_id: Optional[str] = None
    ) -> List[ScheduledStep]:
        """Terminal failure; the owner chain still moves on."""
        repo = self.repos.find_by_id(repo_id)
        if repo is None:
            return []
        if run_id is not None and repo.sync_run_id != run_id:
            logger.info(f"Ignoring failure of an earlier run of {repo.full_name}: {message}")
            return []

        self.repos.mark_error(repo_id, message)
        record_sync_finished(SyncStatus.ERROR.value)
        logger.error(f"Repo {repo.full_name} failed: {message}")
        return self._advance(repo.owner)

    def _advance(self, owner: str) -> List[ScheduledStep]:
        next_step = self.start_owner_queue(owner)
        if next_step is not None:
            return [next_step]

        # Only the completion that drains the owner's queue refreshes the rollups
        if self.repos.has_pending(owner) or self.repos.has_syncing(owner):
            return []
        return [ScheduledStep(RECOMPUTE_GLOBAL_STATS)]

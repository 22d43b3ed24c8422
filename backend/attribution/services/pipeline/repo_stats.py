"""
Aggregate a repository's commits, persist the aggregates, drop the raw rows.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from pymongo.database import Database

from attribution.config import settings
from attribution.database.mongo import get_transaction
from attribution.entities.enums import SyncStage
from attribution.repositories.commit import CommitRepository
from attribution.repositories.stats import (
    ContributorStatRepository,
    DailyStatRepository,
    WeeklyStatRepository,
)
from attribution.services.classification import build_detailed_breakdowns
from attribution.services.pipeline.sync_state import SyncStateService, run_kwargs
from attribution.services.scheduling import DELETE_REPO_COMMITS, ScheduledStep
from attribution.services.stats_computation import StatsBundle, compute_stats

logger = logging.getLogger(__name__)


class RepoStatsService:
    def __init__(self, db: Database):
        self.db = db
        self.sync_state = SyncStateService(db)
        self.commits = CommitRepository(db)
        self.weekly = WeeklyStatRepository(db)
        self.daily = DailyStatRepository(db)
        self.contributors = ContributorStatRepository(db)

    def replace_stats(self, repo_id: str, bundle: StatsBundle) -> None:
        """Swap every aggregate row of the repository in one transaction."""
        with get_transaction(self.db) as session:
            self.weekly.replace(bundle.weekly, scope=repo_id, session=session)
            self.daily.replace(bundle.daily, scope=repo_id, session=session)
            self.contributors.replace(bundle.contributors, scope=repo_id, session=session)

    def compute(
        self, repo_id: str, total_commits: int, run_id: Optional[str] = None
    ) -> Optional[ScheduledStep]:
        repo = self.sync_state.get_syncing_repo(repo_id, run_id)
        if repo is None:
            return None

        self.sync_state.set_stage(repo_id, SyncStage.COMPUTING_STATS)
        commits = self.commits.find_by_repo(repo_id)

        bundle = compute_stats(commits)
        tool_breakdown, bot_breakdown = build_detailed_breakdowns(commits)
        self.replace_stats(repo_id, bundle)
        self.sync_state.repos.save_breakdowns(repo_id, tool_breakdown, bot_breakdown)

        logger.info(
            f"{repo.full_name}: stats computed from {len(commits)} commits "
            f"({len(bundle.weekly)} weeks, {len(bundle.contributors)} contributors)"
        )
        return ScheduledStep(
            DELETE_REPO_COMMITS, run_kwargs(repo, repo_id=repo_id, total_commits=total_commits)
        )

    def delete_commits(
        self, repo_id: str, total_commits: int, run_id: Optional[str] = None
    ) -> List[ScheduledStep]:
        """
        Delete one bounded batch of raw commits.

        Reschedules itself while full batches come back; the first short
        batch finalizes the repository.
        """
        repo = self.sync_state.get_syncing_repo(repo_id, run_id)
        if repo is None:
            return []

        batch_size = settings.COMMIT_DELETE_BATCH_SIZE
        deleted = self.commits.delete_batch(repo_id, batch_size)

        if deleted >= batch_size:
            return [
                ScheduledStep(
                    DELETE_REPO_COMMITS,
                    run_kwargs(repo, repo_id=repo_id, total_commits=total_commits),
                )
            ]
        return self.sync_state.mark_synced(repo_id, total_commits)

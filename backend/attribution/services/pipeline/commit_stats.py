"""
Best-effort line-count enrichment through the GraphQL commit history.

Nothing here can fail a sync: any error ends enrichment early and the
pipeline moves on to PR reclassification with whatever counts were stored.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from pymongo.database import Database

from attribution.config import settings
from attribution.entities.enums import SyncStage
from attribution.entities.repo import Repo
from attribution.repositories.commit import CommitRepository
from attribution.services.github.exceptions import GithubError
from attribution.services.github.github_client import GitHubClient, RATE_LIMIT_BUFFER_MS
from attribution.services.pipeline.commit_fetch import lookback_since
from attribution.services.pipeline.sync_state import SyncStateService, run_kwargs
from attribution.services.scheduling import (
    ENRICH_COMMIT_STATS,
    RECLASSIFY_PRS,
    ScheduledStep,
)

logger = logging.getLogger(__name__)


class CommitStatsService:
    def __init__(self, db: Database, client: Optional[GitHubClient]):
        self.sync_state = SyncStateService(db)
        self.commits = CommitRepository(db)
        self.client = client

    def enrich(
        self,
        repo_id: str,
        total_commits: int,
        cursor: str | None = None,
        run_id: str | None = None,
    ) -> Optional[ScheduledStep]:
        repo = self.sync_state.get_syncing_repo(repo_id, run_id)
        if repo is None:
            return None

        if self.client is None:
            logger.warning(f"No GitHub token, skipping LOC enrichment for {repo.full_name}")
            return self._next_stage(repo, repo_id, total_commits)

        try:
            page = self.client.get_commit_stats_page(
                repo.owner, repo.name, since=lookback_since(), cursor=cursor
            )
        except (GithubError, ValueError) as exc:
            logger.warning(f"Skipping LOC enrichment for {repo.full_name}: {exc}")
            return self._next_stage(repo, repo_id, total_commits)

        if not page.nodes:
            return self._next_stage(repo, repo_id, total_commits)

        updated = self.commits.apply_line_counts(
            repo_id,
            (
                (node["oid"], node.get("additions") or 0, node.get("deletions") or 0)
                for node in page.nodes
            ),
        )
        logger.info(f"{repo.full_name}: line counts applied to {updated} commits")

        if not (page.has_next and page.end_cursor):
            return self._next_stage(repo, repo_id, total_commits)

        delay_ms = settings.PAGE_DELAY_MS
        if page.remaining is not None and page.remaining < settings.LOC_MIN_REMAINING:
            delay_ms = RATE_LIMIT_BUFFER_MS
            if page.reset_at is not None:
                until_reset = (page.reset_at - datetime.now(timezone.utc)).total_seconds() * 1000
                delay_ms = max(0, int(until_reset)) + RATE_LIMIT_BUFFER_MS
            logger.info(f"{repo.full_name}: GraphQL quota low, resuming in {delay_ms}ms")
            self.sync_state.park(repo_id, delay_ms / 1000, run_id)

        return ScheduledStep.after_ms(
            ENRICH_COMMIT_STATS,
            delay_ms,
            **run_kwargs(
                repo, repo_id=repo_id, total_commits=total_commits, cursor=page.end_cursor
            ),
        )

    def _next_stage(self, repo: Repo, repo_id: str, total_commits: int) -> ScheduledStep:
        self.sync_state.set_stage(repo_id, SyncStage.CLASSIFYING_PRS)
        return ScheduledStep(
            RECLASSIFY_PRS, run_kwargs(repo, repo_id=repo_id, total_commits=total_commits)
        )

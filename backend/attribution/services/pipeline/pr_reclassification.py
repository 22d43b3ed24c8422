"""
Recover attribution lost in squash and merge commits.

A squash-merged PR opened by an AI agent lands as a commit authored by the
human who merged it. For every commit still attributed to a human that
references a PR, the PR itself is inspected and the commit reclassified
when the PR shows AI or bot involvement.

PRs are checked in ascending number order and each one is written as soon
as it resolves. When GitHub rate limits the step part way through, the
step is rescheduled with ``after_pr`` set to the last PR checked, so work
already done is neither lost nor repeated.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List, Optional

from bson import ObjectId
from pymongo.database import Database

from attribution.entities.repo import Repo
from attribution.repositories.commit import CommitRepository
from attribution.services.classification import classify_pr_author, extract_pr_number
from attribution.services.github.exceptions import GithubError, GithubRateLimitError
from attribution.services.github.github_client import GitHubClient
from attribution.services.pipeline.sync_state import SyncStateService, run_kwargs
from attribution.services.scheduling import (
    COMPUTE_REPO_STATS,
    RECLASSIFY_PRS,
    ScheduledStep,
    rate_limit_countdown,
)

logger = logging.getLogger(__name__)


class PrReclassificationService:
    def __init__(self, db: Database, client: Optional[GitHubClient]):
        self.sync_state = SyncStateService(db)
        self.commits = CommitRepository(db)
        self.client = client

    def collect_pr_references(self, repo_id: str) -> Dict[int, List[ObjectId]]:
        """PR number -> ids of human commits referencing it."""
        references: Dict[int, List[ObjectId]] = defaultdict(list)
        for doc in self.commits.find_human_messages(repo_id):
            pr_number = extract_pr_number(doc.get("full_message") or doc.get("message"))
            if pr_number:
                references[pr_number].append(doc["_id"])
        return references

    def reclassify(
        self,
        repo_id: str,
        total_commits: int,
        after_pr: int = 0,
        run_id: Optional[str] = None,
    ) -> Optional[ScheduledStep]:
        """
        Reclassify PR-backed commits, then hand over to stats computation.

        Individual PR lookups that fail are skipped. A rate limit hit after
        at least one PR was checked reschedules this step from the next PR.
        A rate limit on the first PR is raised, so the task retries with the
        same resume point.
        """
        repo = self.sync_state.get_syncing_repo(repo_id, run_id)
        if repo is None:
            return None

        if self.client is None:
            logger.warning(f"No GitHub token, skipping PR reclassification for {repo.full_name}")
            return self._stats_step(repo, repo_id, total_commits)

        references = self.collect_pr_references(repo_id)
        pending = sorted(number for number in references if number > after_pr)
        checked = 0
        changed = 0

        for pr_number in pending:
            try:
                changed += self._apply(repo.full_name, pr_number, references[pr_number])
            except GithubRateLimitError as exc:
                if not checked:
                    raise
                return self._resume_step(repo, repo_id, total_commits, pending[checked - 1], exc)
            checked += 1

        if pending:
            logger.info(
                f"{repo.full_name}: {checked} PRs checked, {changed} commits reclassified"
            )
        return self._stats_step(repo, repo_id, total_commits)

    def skip_remaining(
        self, repo_id: str, total_commits: int, run_id: Optional[str] = None
    ) -> Optional[ScheduledStep]:
        """Give up on the PRs not yet checked and move on to stats computation."""
        repo = self.sync_state.get_syncing_repo(repo_id, run_id)
        if repo is None:
            return None
        logger.warning(
            f"{repo.full_name}: rate limit retries exhausted, "
            "continuing without reclassifying the remaining PRs"
        )
        return self._stats_step(repo, repo_id, total_commits)

    def _apply(self, full_name: str, pr_number: int, commit_ids: List[ObjectId]) -> int:
        try:
            pr = self.client.get_pull_request(full_name, pr_number)
        except GithubRateLimitError:
            raise
        except GithubError as exc:
            logger.warning(f"Skipping PR #{pr_number} of {full_name}: {exc}")
            return 0
        if pr is None:
            return 0

        classification = classify_pr_author(pr)
        if classification is None:
            return 0
        return self.commits.reclassify(commit_ids, classification)

    def _resume_step(
        self,
        repo: Repo,
        repo_id: str,
        total_commits: int,
        last_checked: int,
        exc: GithubRateLimitError,
    ) -> ScheduledStep:
        countdown = rate_limit_countdown(exc.retry_after)
        self.sync_state.park(repo_id, countdown, repo.sync_run_id)
        logger.info(
            f"{repo.full_name}: rate limited after PR #{last_checked}, resuming in {countdown}s"
        )
        return ScheduledStep(
            RECLASSIFY_PRS,
            run_kwargs(repo, repo_id=repo_id, total_commits=total_commits, after_pr=last_checked),
            countdown=countdown,
        )

    def _stats_step(self, repo: Repo, repo_id: str, total_commits: int) -> ScheduledStep:
        return ScheduledStep(
            COMPUTE_REPO_STATS, run_kwargs(repo, repo_id=repo_id, total_commits=total_commits)
        )

"""
Aggregate-only sync of a user's private repositories.

Commits are fetched with the user's own token, classified in memory and
reduced to daily and weekly counts keyed by login. Repository names, commit
messages and SHAs are never written anywhere.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from pymongo.database import Database

from attribution.config import settings
from attribution.database.mongo import get_transaction
from attribution.entities.stats import PrivateDailyStat, PrivateWeeklyStat
from attribution.repositories.private_sync import PrivateSyncStateRepository
from attribution.repositories.stats import PrivateDailyStatRepository, PrivateWeeklyStatRepository
from attribution.services.classification import classify_commit
from attribution.services.github.exceptions import (
    GithubApiError,
    GithubError,
    GithubRateLimitError,
)
from attribution.services.github.github_client import GitHubClient, parse_github_datetime
from attribution.services.pipeline.commit_fetch import lookback_since
from attribution.services.stats_computation import compute_daily_stats, compute_weekly_stats

logger = logging.getLogger(__name__)

PER_PAGE = 100
INTER_PAGE_DELAY_SECONDS = 0.2
INTER_REPO_DELAY_SECONDS = 0.3
MAX_INLINE_RATE_LIMIT_WAIT_SECONDS = 300
PROGRESS_EVERY_REPOS = 3

TOKEN_REVOKED_MESSAGE = "GitHub token expired or revoked. Please sign in again."


class PrivateSyncError(Exception):
    """Failure that ends a private sync; the message is shown to the user."""


@dataclass
class PrivateCommit:
    """The few fields aggregation needs, held in memory only."""

    authored_at: datetime
    classification: str
    author_login: Optional[str] = None
    author_email: Optional[str] = None
    author_name: Optional[str] = None
    additions: Optional[int] = None
    deletions: Optional[int] = None


def to_private_commit(payload: Dict[str, Any]) -> Optional[PrivateCommit]:
    git = payload.get("commit") or {}
    git_author = git.get("author") or {}
    git_committer = git.get("committer") or {}
    authored_at = parse_github_datetime(git_author.get("date")) or parse_github_datetime(
        git_committer.get("date")
    )
    if authored_at is None:
        return None

    return PrivateCommit(
        authored_at=authored_at,
        classification=classify_commit(payload).classification.value,
        author_login=(payload.get("author") or {}).get("login"),
        author_email=git_author.get("email"),
        author_name=git_author.get("name"),
    )


class PrivateSyncService:
    def __init__(
        self,
        db: Database,
        client: GitHubClient,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.client = client
        self.sleep = sleep
        self.state = PrivateSyncStateRepository(db)
        self.weekly = PrivateWeeklyStatRepository(db)
        self.daily = PrivateDailyStatRepository(db)

    def sync(self, github_login: str) -> Dict[str, Any]:
        """Run the whole sync; failures are recorded on the status document."""
        self.state.start(github_login)
        try:
            return self._sync(github_login)
        except (PrivateSyncError, GithubError) as exc:
            logger.warning(f"Private sync failed for {github_login}: {exc}")
            self.state.fail(github_login, str(exc))
            return {"status": "error", "github_login": github_login, "error": str(exc)}

    def _sync(self, github_login: str) -> Dict[str, Any]:
        repos = self.list_private_repos()
        if not repos:
            raise PrivateSyncError("No private repositories found")

        self.state.update_progress(
            github_login, total_repos=len(repos), processed_repos=0, total_commits_found=0
        )

        since = lookback_since()
        commits: List[PrivateCommit] = []
        for index, full_name in enumerate(repos, start=1):
            for payload in self.fetch_repo_commits(full_name, since):
                commit = to_private_commit(payload)
                if commit is not None:
                    commits.append(commit)

            if index % PROGRESS_EVERY_REPOS == 0 or index == len(repos):
                self.state.update_progress(
                    github_login,
                    total_repos=len(repos),
                    processed_repos=index,
                    total_commits_found=len(commits),
                )
            self.sleep(INTER_REPO_DELAY_SECONDS)

        weekly = [
            PrivateWeeklyStat(github_login=github_login, **row.model_dump(exclude={"id", "repo_id"}))
            for row in compute_weekly_stats(commits)
        ]
        daily = [
            PrivateDailyStat(github_login=github_login, **row.model_dump(exclude={"id", "repo_id"}))
            for row in compute_daily_stats(commits)
        ]
        with get_transaction(self.db) as session:
            self.weekly.replace(weekly, scope=github_login, session=session)
            self.daily.replace(daily, scope=github_login, session=session)

        self.state.complete(github_login, len(commits))
        logger.info(
            f"Private sync for {github_login}: {len(repos)} repos, {len(commits)} commits, "
            f"{len(weekly)} weeks"
        )
        return {
            "status": "completed",
            "github_login": github_login,
            "repos": len(repos),
            "commits": len(commits),
            "completed_at": datetime.now(timezone.utc).isoformat(),
        }

    def list_private_repos(self) -> List[str]:
        """Full names of the token owner's private repositories, capped."""
        names: List[str] = []
        page = 1
        while len(names) < settings.PRIVATE_SYNC_MAX_REPOS:
            try:
                batch = self._with_rate_limit_wait(
                    lambda: self.client.list_private_repositories(page, PER_PAGE)
                )
            except GithubApiError as exc:
                if exc.status_code == 401:
                    raise PrivateSyncError(TOKEN_REVOKED_MESSAGE) from exc
                raise PrivateSyncError(
                    f"Failed to fetch private repos: {exc.status_code}"
                ) from exc

            if not batch:
                break
            names.extend(repo["full_name"] for repo in batch if repo.get("private"))
            if len(batch) < PER_PAGE:
                break
            page += 1
            self.sleep(INTER_PAGE_DELAY_SECONDS)

        return names[: settings.PRIVATE_SYNC_MAX_REPOS]

    def fetch_repo_commits(self, full_name: str, since: datetime) -> List[Dict[str, Any]]:
        """
        Every commit of one repository inside the lookback window.

        A repository that cannot be listed (lost access, empty, other
        errors) contributes nothing; only a revoked token aborts the sync.
        """
        payloads: List[Dict[str, Any]] = []
        page = 1
        while True:
            try:
                result = self._with_rate_limit_wait(
                    lambda: self.client.list_commits(full_name, since, page, PER_PAGE)
                )
            except GithubApiError as exc:
                if exc.status_code == 401:
                    raise PrivateSyncError(TOKEN_REVOKED_MESSAGE) from exc
                logger.info(f"Skipping private repo after status {exc.status_code}")
                break

            payloads.extend(result.commits)
            if not result.has_next:
                break
            page += 1
            self.sleep(INTER_PAGE_DELAY_SECONDS)
        return payloads

    def _with_rate_limit_wait(self, call: Callable[[], Any]) -> Any:
        """Wait out one short rate limit inline; longer ones end the sync."""
        try:
            return call()
        except GithubRateLimitError as exc:
            wait = exc.retry_after or 0
            if wait >= MAX_INLINE_RATE_LIMIT_WAIT_SECONDS:
                raise
            logger.info(f"Private sync rate limited, waiting {wait:.0f}s")
            self.sleep(wait)
            return call()

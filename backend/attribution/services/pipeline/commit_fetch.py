"""
Commit listing step: one REST page per invocation within the lookback window.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from pymongo.database import Database

from attribution.config import settings
from attribution.entities.commit import Commit
from attribution.entities.enums import SyncStage
from attribution.entities.repo import Repo
from attribution.repositories.commit import CommitRepository
from attribution.services.classification import classify_commit
from attribution.services.github.github_client import (
    GitHubClient,
    page_delay_ms,
    parse_github_datetime,
)
from attribution.services.pipeline.sync_state import SyncStateService, run_kwargs
from attribution.services.scheduling import (
    ENRICH_COMMIT_STATS,
    FETCH_COMMITS_PAGE,
    ScheduledStep,
)
from attribution.utils.prometheus_metrics import record_commits_classified

logger = logging.getLogger(__name__)


def lookback_since(now: datetime | None = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now - timedelta(days=settings.COMMIT_LOOKBACK_DAYS)


def build_commit(repo_id: ObjectId | str, payload: Dict[str, Any]) -> Commit:
    """Map a REST commit listing item to a classified Commit row."""
    git = payload.get("commit") or {}
    git_author = git.get("author") or {}
    git_committer = git.get("committer") or {}
    account = payload.get("author") or {}

    full_message = git.get("message") or ""
    authored_at = parse_github_datetime(git_author.get("date"))
    committed_at = parse_github_datetime(git_committer.get("date"))
    authored_at = authored_at or committed_at or datetime.now(timezone.utc)

    result = classify_commit(payload)

    return Commit(
        repo_id=repo_id,
        sha=payload["sha"],
        message=full_message.split("\n")[0],
        full_message=full_message,
        authored_at=authored_at,
        committed_at=committed_at or authored_at,
        author_name=git_author.get("name"),
        author_email=git_author.get("email"),
        author_github_user_id=account.get("id"),
        author_login=account.get("login"),
        author_type=account.get("type"),
        committer_name=git_committer.get("name"),
        committer_email=git_committer.get("email"),
        classification=result.classification,
        co_authors=result.co_authors,
    )


class CommitFetchService:
    def __init__(self, db: Database, client: GitHubClient):
        self.sync_state = SyncStateService(db)
        self.commits = CommitRepository(db)
        self.client = client

    def fetch_page(
        self,
        repo_id: str,
        page: int,
        since: str | None = None,
        run_id: str | None = None,
    ) -> Optional[ScheduledStep]:
        """
        Fetch, classify and store one page of commits.

        ``since`` is fixed on page 1 and carried along so that every page
        of a run lists the same window.
        """
        repo = self.sync_state.get_syncing_repo(repo_id, run_id)
        if repo is None:
            return None

        if page == 1:
            self.sync_state.set_stage(
                repo_id, SyncStage.FETCHING_COMMITS, sync_commits_fetched=0
            )
        since_at = datetime.fromisoformat(since) if since else lookback_since()
        per_page = settings.COMMITS_PER_PAGE

        result = self.client.list_commits(repo.full_name, since_at, page, per_page=per_page)
        previously_fetched = (page - 1) * per_page

        if not result.commits:
            return self._start_enrichment(repo, repo_id, previously_fetched)

        rows = [build_commit(repo.id, item) for item in result.commits]
        self.commits.upsert_page(rows)
        record_commits_classified(row.classification for row in rows)
        fetched = previously_fetched + len(rows)
        self.sync_state.repos.set_commits_fetched(repo_id, fetched)
        logger.info(f"{repo.full_name}: page {page} stored, {fetched} commits so far")

        if result.has_next:
            return ScheduledStep.after_ms(
                FETCH_COMMITS_PAGE,
                page_delay_ms(result.rate_limit),
                **run_kwargs(repo, repo_id=repo_id, page=page + 1, since=since_at.isoformat()),
            )
        return self._start_enrichment(repo, repo_id, fetched)

    def _start_enrichment(self, repo: Repo, repo_id: str, total_commits: int) -> ScheduledStep:
        self.sync_state.set_stage(repo_id, SyncStage.ENRICHING_LOC)
        return ScheduledStep(
            ENRICH_COMMIT_STATS,
            run_kwargs(repo, repo_id=repo_id, total_commits=total_commits),
        )

"""
Sync pipeline Celery tasks.

Each task runs one step for one repository and dispatches whatever step
the service returns next. Resumption state (page, cursor, running totals)
travels in the task kwargs, so any worker can pick up any step.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from attribution.celery_app import celery_app
from attribution.config import settings
from attribution.services.github import (
    GithubConfigurationError,
    GitHubClient,
    GithubRateLimitError,
    get_public_github_client,
    get_rate_limiter,
)
from attribution.services.pipeline import (
    CommitFetchService,
    CommitStatsService,
    GlobalStatsService,
    PrReclassificationService,
    RepoMetadataService,
    RepoStatsService,
    SyncStateService,
)
from attribution.services.scheduling import dispatch
from attribution.tasks.base import PipelineTask

logger = logging.getLogger(__name__)


def _optional_client() -> Optional[GitHubClient]:
    """Client for best-effort steps, which run without a token as no-ops."""
    try:
        return get_public_github_client()
    except GithubConfigurationError:
        return None


def _result(step_name: str, scheduled: list, **extra: Any) -> Dict[str, Any]:
    return {
        "status": "success",
        "step": step_name,
        "scheduled": scheduled,
        "executed_at": datetime.now(timezone.utc).isoformat(),
        **extra,
    }


@celery_app.task(
    bind=True,
    base=PipelineTask,
    name="attribution.tasks.pipeline.start_owner_queue",
    queue="ingestion",
)
def start_owner_queue(self: PipelineTask, owner: str) -> Dict[str, Any]:
    """Claim the owner's next pending repository, if nothing of theirs is syncing."""
    step = SyncStateService(self.db).start_owner_queue(owner)
    return _result("start_owner_queue", dispatch(step), owner=owner)


@celery_app.task(
    bind=True,
    base=PipelineTask,
    name="attribution.tasks.pipeline.fetch_repo_metadata",
    queue="ingestion",
)
def fetch_repo_metadata(
    self: PipelineTask, repo_id: str, run_id: Optional[str] = None
) -> Dict[str, Any]:
    with get_public_github_client() as client:
        step = RepoMetadataService(self.db, client, get_rate_limiter()).fetch(repo_id, run_id)
    return _result("fetch_repo_metadata", dispatch(step), repo_id=repo_id)


@celery_app.task(
    bind=True,
    base=PipelineTask,
    name="attribution.tasks.pipeline.fetch_commits_page",
    queue="ingestion",
)
def fetch_commits_page(
    self: PipelineTask,
    repo_id: str,
    page: int = 1,
    since: Optional[str] = None,
    run_id: Optional[str] = None,
) -> Dict[str, Any]:
    with get_public_github_client() as client:
        step = CommitFetchService(self.db, client).fetch_page(repo_id, page, since, run_id)
    return _result("fetch_commits_page", dispatch(step), repo_id=repo_id, page=page)


@celery_app.task(
    bind=True,
    base=PipelineTask,
    name="attribution.tasks.pipeline.enrich_commit_stats",
    queue="ingestion",
)
def enrich_commit_stats(
    self: PipelineTask,
    repo_id: str,
    total_commits: int,
    cursor: Optional[str] = None,
    run_id: Optional[str] = None,
) -> Dict[str, Any]:
    client = _optional_client()
    try:
        step = CommitStatsService(self.db, client).enrich(repo_id, total_commits, cursor, run_id)
    finally:
        if client is not None:
            client.close()
    return _result("enrich_commit_stats", dispatch(step), repo_id=repo_id)


@celery_app.task(
    bind=True,
    base=PipelineTask,
    name="attribution.tasks.pipeline.reclassify_prs",
    queue="processing",
)
def reclassify_prs(
    self: PipelineTask,
    repo_id: str,
    total_commits: int,
    after_pr: int = 0,
    run_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Best-effort step: once rate limit retries are exhausted the remaining
    PRs are skipped and the repository still gets its stats.
    """
    client = _optional_client()
    service = PrReclassificationService(self.db, client)
    try:
        step = service.reclassify(repo_id, total_commits, after_pr, run_id)
    except GithubRateLimitError:
        if self.request.retries < settings.MAX_RATE_LIMIT_RETRIES:
            raise
        step = service.skip_remaining(repo_id, total_commits, run_id)
    finally:
        if client is not None:
            client.close()
    return _result("reclassify_prs", dispatch(step), repo_id=repo_id, after_pr=after_pr)


@celery_app.task(
    bind=True,
    base=PipelineTask,
    name="attribution.tasks.pipeline.compute_repo_stats",
    queue="processing",
)
def compute_repo_stats(
    self: PipelineTask, repo_id: str, total_commits: int, run_id: Optional[str] = None
) -> Dict[str, Any]:
    step = RepoStatsService(self.db).compute(repo_id, total_commits, run_id)
    return _result("compute_repo_stats", dispatch(step), repo_id=repo_id)


@celery_app.task(
    bind=True,
    base=PipelineTask,
    name="attribution.tasks.pipeline.delete_repo_commits",
    queue="processing",
)
def delete_repo_commits(
    self: PipelineTask, repo_id: str, total_commits: int, run_id: Optional[str] = None
) -> Dict[str, Any]:
    steps = RepoStatsService(self.db).delete_commits(repo_id, total_commits, run_id)
    return _result("delete_repo_commits", dispatch(steps), repo_id=repo_id)


@celery_app.task(
    bind=True,
    base=PipelineTask,
    name="attribution.tasks.pipeline.recompute_global_stats",
    queue="processing",
)
def recompute_global_stats(self: PipelineTask) -> Dict[str, Any]:
    weeks, days = GlobalStatsService(self.db).recompute()
    return _result("recompute_global_stats", [], weeks=weeks, days=days)

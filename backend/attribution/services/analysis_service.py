"""
Public and privileged entry points into the sync pipeline.

Every entry point puts repositories in ``pending`` and asks for the owner
queue to be started; the claim itself happens in the queued task so that
concurrent requests for one owner still sync one repository at a time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from pymongo.database import Database

from attribution.config import settings
from attribution.entities.enums import SyncStatus
from attribution.repositories.repo import RepoRepository
from attribution.services.errors import (
    AlreadyInProgressError,
    NotFoundError,
    ThrottledError,
    UnauthorizedError,
)
from attribution.services.recovery_service import owner_kick
from attribution.services.resync_throttle import ResyncThrottle
from attribution.services.scheduling import SYNC_PRIVATE_REPOS, ScheduledStep, StepOutcome
from attribution.services.token_cipher import seal_token

logger = logging.getLogger(__name__)

REQUEST_REPO_ACTION = "request_repo"
RESYNC_REPO_ACTION = "resync_repo"
RESYNC_USER_ACTION = "resync_user"

_IN_FLIGHT = (SyncStatus.PENDING.value, SyncStatus.SYNCING.value)


@dataclass
class RepoRef:
    owner: str
    name: str
    pushed_at: Optional[datetime] = None


def has_valid_analyze_api_key(api_key: Optional[str]) -> bool:
    """Compare against the configured secret; an unset or blank secret rejects everything."""
    expected = (settings.ANALYZE_API_KEY or "").strip()
    if not expected:
        return False
    return (api_key or "").strip() == expected


def require_analyze_api_key(api_key: Optional[str]) -> None:
    if not has_valid_analyze_api_key(api_key):
        raise UnauthorizedError()


class AnalysisService:
    def __init__(self, db: Database):
        self.db = db
        self.repos = RepoRepository(db)
        self.throttle = ResyncThrottle(db)

    def request_repo(
        self, owner: str, name: str, ip_hash: str, pushed_at: Optional[datetime] = None
    ) -> StepOutcome:
        """Track a new public repository; known ones are returned as they are."""
        existing = self.repos.find_by_full_name(f"{owner}/{name}")
        if existing is not None:
            return StepOutcome(
                {"repo_id": str(existing.id), "status": existing.sync_status, "existing": True}
            )

        try:
            self.throttle.check_daily_quota(
                f"ip:{ip_hash}", REQUEST_REPO_ACTION, settings.REQUEST_REPO_DAILY_LIMIT
            )
        except ThrottledError as exc:
            logger.info(f"Repo request for {owner}/{name} rate limited")
            return StepOutcome(
                {
                    "repo_id": None,
                    "status": "rate_limited",
                    "existing": False,
                    "retry_after_seconds": exc.retry_after_seconds,
                }
            )

        repo = self.repos.upsert_pending(owner, name, pushed_at)
        logger.info(f"Queued new repo {repo.full_name}")
        return StepOutcome(
            {"repo_id": str(repo.id), "status": repo.sync_status, "existing": False},
            [owner_kick(owner)],
        )

    def request_user_analysis(self, repos: List[RepoRef], api_key: Optional[str]) -> StepOutcome:
        """
        Queue a batch of repositories; every owner in it gets its queue kicked.

        New repositories are inserted as pending and errored ones retried;
        synced or in-flight repositories keep their state but get a fresher
        ``pushed_at`` so queue order reflects recent activity.
        """
        require_analyze_api_key(api_key)

        batch = repos[: settings.USER_ANALYSIS_MAX_REPOS]
        queued = 0
        for ref in batch:
            existing = self.repos.find_by_full_name(f"{ref.owner}/{ref.name}")
            if existing is None:
                self.repos.upsert_pending(ref.owner, ref.name, ref.pushed_at)
                queued += 1
            elif existing.sync_status == SyncStatus.ERROR.value:
                self.repos.upsert_pending(ref.owner, ref.name, ref.pushed_at)
                queued += 1
            elif ref.pushed_at is not None:
                self.repos.update_metadata(existing.id, {"pushed_at": ref.pushed_at})

        owners = list(dict.fromkeys(ref.owner for ref in batch))
        steps = [owner_kick(owner) for owner in owners]
        return StepOutcome(
            {"requested": len(batch), "queued": queued, "truncated": len(repos) > len(batch)},
            steps,
        )

    def resync_repo(
        self, owner: str, name: str, ip_hash: str, api_key: Optional[str]
    ) -> StepOutcome:
        require_analyze_api_key(api_key)

        full_name = f"{owner}/{name}"
        repo = self.repos.find_by_full_name(full_name)
        if repo is None:
            raise NotFoundError(f"Repository {full_name} is not tracked")
        if repo.sync_status in _IN_FLIGHT:
            raise AlreadyInProgressError(f"Repository {full_name} is already syncing")

        self.throttle.check_and_record(f"{full_name}:{ip_hash}", RESYNC_REPO_ACTION)

        self.repos.reset_to_pending(repo.id)
        logger.info(f"Resync requested for {full_name}")
        return StepOutcome({"repo_id": str(repo.id), "status": "pending"}, [owner_kick(repo.owner)])

    def resync_user(self, owner: str, ip_hash: str, api_key: Optional[str]) -> StepOutcome:
        """Reset every idle repository of the owner; in-flight ones are left alone."""
        require_analyze_api_key(api_key)

        self.throttle.check_and_record(f"{owner}:{ip_hash}", RESYNC_USER_ACTION)

        repos = self.repos.find_by_owner(owner)
        reset = 0
        for repo in repos:
            if repo.sync_status in _IN_FLIGHT:
                continue
            self.repos.reset_to_pending(repo.id)
            reset += 1

        logger.info(f"Resync of {owner}: {reset} of {len(repos)} repos reset")
        steps = [owner_kick(owner)] if repos else []
        return StepOutcome({"owner": owner, "reset_count": reset, "total_repos": len(repos)}, steps)

    def request_private_sync(
        self, github_login: str, github_token: str, api_key: Optional[str]
    ) -> StepOutcome:
        """Queue an aggregate-only sync of the user's private repositories."""
        require_analyze_api_key(api_key)
        if not github_token or not github_token.strip():
            raise UnauthorizedError()

        return StepOutcome(
            {"github_login": github_login, "status": "queued"},
            [
                ScheduledStep(
                    SYNC_PRIVATE_REPOS,
                    {
                        "github_login": github_login,
                        "sealed_token": seal_token(github_token.strip()),
                    },
                )
            ],
        )

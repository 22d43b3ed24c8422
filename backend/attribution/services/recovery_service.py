"""
Fleet-wide self-healing and admin re-entry into the sync pipeline.

Nothing here talks to Celery: each job returns the steps to schedule, with
countdowns staggered so a batch of owners does not hit GitHub at once.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pymongo.database import Database

from attribution.config import settings
from attribution.entities.enums import SyncStatus
from attribution.entities.repo import Repo
from attribution.repositories.rate_limit import RateLimitRepository
from attribution.repositories.repo import RepoRepository
from attribution.services.classification import UNKNOWN_AI_KEY
from attribution.services.github.exceptions import GithubError, GithubRateLimitError
from attribution.services.github.github_client import GitHubClient, parse_github_datetime
from attribution.services.scheduling import START_OWNER_QUEUE, ScheduledStep, StepOutcome

logger = logging.getLogger(__name__)


def owner_kick(owner: str, countdown: float = 0) -> ScheduledStep:
    return ScheduledStep(START_OWNER_QUEUE, {"owner": owner}, countdown=countdown)


@dataclass
class RecoveryReport:
    reset_stuck: List[str] = field(default_factory=list)
    rekicked_owners: List[str] = field(default_factory=list)
    steps: List[ScheduledStep] = field(default_factory=list)


@dataclass
class StaleResyncReport:
    checked: int = 0
    unchanged: int = 0
    resynced: List[str] = field(default_factory=list)
    failed: int = 0
    steps: List[ScheduledStep] = field(default_factory=list)


@dataclass
class BackfillReport:
    dry_run: bool
    scheduled: int
    repos: List[str]
    unspecified_count: int
    missing_breakdown_count: int
    total_candidates: int
    estimated_minutes: int
    steps: List[ScheduledStep] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "scheduled": self.scheduled,
            "repos": self.repos,
            "unspecified_count": self.unspecified_count,
            "missing_breakdown_count": self.missing_breakdown_count,
            "total_candidates": self.total_candidates,
            "estimated_minutes": self.estimated_minutes,
        }


class RecoveryService:
    def __init__(self, db: Database):
        self.db = db
        self.repos = RepoRepository(db)

    def recover_stuck_repos(self, now: Optional[datetime] = None) -> RecoveryReport:
        """
        Reset repositories stuck in syncing, then re-kick orphaned owner queues.

        Orphans are detected after the resets so that owners whose only
        syncing repository was just reset are picked up in the same run.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(minutes=settings.STUCK_REPO_THRESHOLD_MINUTES)
        report = RecoveryReport()

        for repo in self.repos.find_stuck(cutoff):
            logger.info(f"Resetting stuck syncing repo {repo.full_name} (stage {repo.sync_stage})")
            self.repos.reset_to_pending(repo.id)
            report.reset_stuck.append(repo.full_name)

        owners = self.repos.find_orphaned_owners(settings.ORPHAN_MAX_OWNERS)
        for index, owner in enumerate(owners):
            logger.info(f"Re-kicking orphaned queue for owner {owner}")
            report.steps.append(owner_kick(owner, index * settings.ORPHAN_STAGGER_SECONDS))
        report.rekicked_owners = owners

        logger.info(
            f"Recovery done: reset {len(report.reset_stuck)} stuck repos, "
            f"re-kicked {len(owners)} owners"
        )
        return report

    def resync_stale_repos(
        self, client: GitHubClient, now: Optional[datetime] = None
    ) -> StaleResyncReport:
        """
        Re-enter repositories whose default branch moved since the last sync.

        One conditional metadata call per candidate decides; unchanged
        repositories only get their freshness timestamp bumped.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(hours=settings.STALE_AFTER_HOURS)
        report = StaleResyncReport()

        for repo in self.repos.find_stale(cutoff, settings.STALE_MAX_REPOS):
            report.checked += 1
            try:
                changed = self._has_new_pushes(client, repo)
            except GithubRateLimitError:
                logger.warning("Rate limited during stale pre-check, stopping this run")
                break
            except GithubError as exc:
                logger.warning(f"Stale pre-check failed for {repo.full_name}: {exc}")
                report.failed += 1
                continue

            if not changed:
                self.repos.touch_synced(repo.id)
                report.unchanged += 1
                continue

            self.repos.reset_to_pending(repo.id)
            report.steps.append(
                owner_kick(repo.owner, len(report.resynced) * settings.STALE_STAGGER_SECONDS)
            )
            report.resynced.append(repo.full_name)

        logger.info(
            f"Stale resync: {report.checked} checked, {report.unchanged} unchanged, "
            f"{len(report.resynced)} resynced, {report.failed} failed"
        )
        return report

    def _has_new_pushes(self, client: GitHubClient, repo: Repo) -> bool:
        response = client.get_repository(repo.full_name, etag=repo.etag)
        if response.not_modified:
            return False

        pushed_at = parse_github_datetime((response.data or {}).get("pushed_at"))
        if pushed_at is None or repo.pushed_at is None:
            return True
        return _as_utc(pushed_at) != _as_utc(repo.pushed_at)

    def resync_affected_repos(
        self,
        max_repos: Optional[int] = None,
        dry_run: bool = False,
        only_unspecified: bool = False,
    ) -> BackfillReport:
        """Re-enqueue synced repositories whose tool breakdown needs rebuilding."""
        max_repos = max_repos if max_repos is not None else settings.BACKFILL_MAX_REPOS
        stagger = settings.BACKFILL_STAGGER_SECONDS

        unspecified = self.repos.find_with_only_unspecified_tools(UNKNOWN_AI_KEY)
        missing = [] if only_unspecified else self.repos.find_without_breakdown()

        seen = set()
        candidates: List[Repo] = []
        for repo in unspecified + missing:
            if repo.id not in seen:
                seen.add(repo.id)
                candidates.append(repo)

        selected = candidates[:max_repos]
        steps: List[ScheduledStep] = []
        if not dry_run:
            for index, repo in enumerate(selected):
                self.repos.reset_to_pending(repo.id)
                steps.append(owner_kick(repo.owner, index * stagger))
            logger.info(f"Backfill scheduled {len(selected)} of {len(candidates)} candidates")

        return BackfillReport(
            dry_run=dry_run,
            scheduled=0 if dry_run else len(selected),
            repos=[repo.full_name for repo in selected],
            unspecified_count=len(unspecified),
            missing_breakdown_count=len(missing),
            total_candidates=len(candidates),
            estimated_minutes=0 if dry_run else math.ceil(len(selected) * stagger / 60),
            steps=steps,
        )

    def admin_resync_owner(self, owner: str, dry_run: bool = False) -> StepOutcome:
        """Put every idle repository of an owner back in the queue."""
        repos = self.repos.find_by_owner(owner)
        pending = [r for r in repos if r.sync_status == SyncStatus.PENDING.value]
        syncing = [r for r in repos if r.sync_status == SyncStatus.SYNCING.value]
        resettable = [
            r
            for r in repos
            if r.sync_status not in (SyncStatus.PENDING.value, SyncStatus.SYNCING.value)
        ]

        steps: List[ScheduledStep] = []
        if not dry_run:
            for repo in resettable:
                self.repos.reset_to_pending(repo.id)
            if repos and not syncing:
                steps.append(owner_kick(owner))
            logger.info(f"Admin resync of {owner}: {len(resettable)} repos reset")

        return StepOutcome(
            {
                "owner": owner,
                "total_repos": len(repos),
                "reset_count": len(resettable),
                "already_pending": len(pending),
                "syncing": len(syncing),
                "kicked": bool(steps),
                "dry_run": dry_run,
            },
            steps,
        )

    def cleanup_rate_limits(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=settings.RATE_LIMIT_RECORD_RETENTION_DAYS)
        deleted = RateLimitRepository(self.db).delete_older_than(cutoff)
        logger.info(f"Deleted {deleted} rate limit records older than {cutoff.isoformat()}")
        return deleted


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)

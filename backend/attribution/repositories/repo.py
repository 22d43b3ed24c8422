"""
Repo Repository - sync state queries and the per-owner queue claim.
"""

from datetime import datetime, timezone
from uuid import uuid4
from typing import Any, Dict, List, Optional

from bson import ObjectId

from attribution.entities.enums import SyncStage, SyncStatus
from attribution.entities.repo import BreakdownEntry, Repo

from .base import BaseRepository

# Most recently pushed first; never-pushed repos fall back to request order
QUEUE_ORDER = [("pushed_at", -1), ("requested_at", -1)]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RepoRepository(BaseRepository[Repo]):
    """Repository for tracked public repositories."""

    def __init__(self, db):
        super().__init__(db, "repos", Repo)

    def find_by_full_name(self, full_name: str) -> Optional[Repo]:
        return self.find_one({"full_name": full_name})

    def find_by_owner(self, owner: str) -> List[Repo]:
        return self.find_many({"owner": owner}, sort=QUEUE_ORDER)

    def find_synced(self) -> List[Repo]:
        return self.find_many({"sync_status": SyncStatus.SYNCED.value})

    def upsert_pending(self, owner: str, name: str, pushed_at: datetime | None = None) -> Repo:
        """Create the repository or put an existing one back in the queue."""
        now = _utcnow()
        fields: Dict[str, Any] = {
            "sync_status": SyncStatus.PENDING.value,
            "sync_stage": None,
            "sync_error": None,
            "requested_at": now,
            "updated_at": now,
        }
        if pushed_at is not None:
            fields["pushed_at"] = pushed_at

        return self.find_one_and_update(
            {"full_name": f"{owner}/{name}"},
            {
                "$set": fields,
                "$setOnInsert": {
                    "owner": owner,
                    "name": name,
                    "stars": 0,
                    "ai_configs": [],
                    "created_at": now,
                },
            },
            upsert=True,
        )

    def reset_to_pending(self, repo_id: str | ObjectId) -> bool:
        return self.update_one(
            repo_id,
            {
                "sync_status": SyncStatus.PENDING.value,
                "sync_stage": None,
                "sync_started_at": None,
                "sync_run_id": None,
                "sync_resume_at": None,
                "requested_at": _utcnow(),
                "updated_at": _utcnow(),
            },
        )

    def has_syncing(self, owner: str) -> bool:
        return self.count({"owner": owner, "sync_status": SyncStatus.SYNCING.value}) > 0

    def has_pending(self, owner: str) -> bool:
        return self.count({"owner": owner, "sync_status": SyncStatus.PENDING.value}) > 0

    def claim_next_pending(self, owner: str) -> Optional[Repo]:
        """
        Move the owner's next pending repository to syncing.

        The caller must hold the owner lock; the syncing check and the
        claim are only atomic together under it.
        """
        if self.has_syncing(owner):
            return None

        now = _utcnow()
        return self.find_one_and_update(
            {"owner": owner, "sync_status": SyncStatus.PENDING.value},
            {
                "$set": {
                    "sync_status": SyncStatus.SYNCING.value,
                    "sync_stage": None,
                    "sync_error": None,
                    "sync_commits_fetched": 0,
                    "sync_started_at": now,
                    "sync_run_id": uuid4().hex,
                    "sync_resume_at": None,
                    "updated_at": now,
                }
            },
            sort=QUEUE_ORDER,
        )

    def set_stage(self, repo_id: str | ObjectId, stage: SyncStage, **fields: Any) -> bool:
        return self.update_one(
            repo_id, {"sync_stage": stage.value, "updated_at": _utcnow(), **fields}
        )

    def touch_progress(self, repo_id: str | ObjectId) -> bool:
        """A step of the current run started; clears any parking."""
        return self.update_one(repo_id, {"sync_resume_at": None, "updated_at": _utcnow()})

    def park(self, repo_id: str | ObjectId, resume_at: datetime) -> bool:
        """The next step is deliberately delayed until ``resume_at``."""
        return self.update_one(repo_id, {"sync_resume_at": resume_at, "updated_at": _utcnow()})

    def set_commits_fetched(self, repo_id: str | ObjectId, fetched: int) -> bool:
        return self.update_one(
            repo_id, {"sync_commits_fetched": fetched, "updated_at": _utcnow()}
        )

    def update_metadata(self, repo_id: str | ObjectId, metadata: Dict[str, Any]) -> bool:
        return self.update_one(repo_id, {**metadata, "updated_at": _utcnow()})

    def save_breakdowns(
        self,
        repo_id: str | ObjectId,
        tool_breakdown: List[BreakdownEntry],
        bot_breakdown: List[BreakdownEntry],
    ) -> bool:
        return self.update_one(
            repo_id,
            {
                "tool_breakdown": [entry.model_dump() for entry in tool_breakdown],
                "bot_breakdown": [entry.model_dump() for entry in bot_breakdown],
                "updated_at": _utcnow(),
            },
        )

    def mark_synced(self, repo_id: str | ObjectId, total_commits: int) -> bool:
        now = _utcnow()
        return self.update_one(
            repo_id,
            {
                "sync_status": SyncStatus.SYNCED.value,
                "sync_stage": None,
                "sync_error": None,
                "last_synced_at": now,
                "total_commits_fetched": total_commits,
                "updated_at": now,
            },
        )

    def mark_error(self, repo_id: str | ObjectId, message: str) -> bool:
        return self.update_one(
            repo_id,
            {
                "sync_status": SyncStatus.ERROR.value,
                "sync_stage": None,
                "sync_error": message[:500],
                "updated_at": _utcnow(),
            },
        )

    def touch_synced(self, repo_id: str | ObjectId) -> bool:
        """Record a freshness check that found nothing new."""
        return self.update_one(repo_id, {"last_synced_at": _utcnow(), "updated_at": _utcnow()})

    def find_stuck(self, cutoff: datetime) -> List[Repo]:
        """
        Syncing repositories with no progress since ``cutoff``.

        A repository parked on a rate limit is only stuck once its resume
        time is itself older than ``cutoff``.
        """
        return self.find_many(
            {
                "sync_status": SyncStatus.SYNCING.value,
                "updated_at": {"$lt": cutoff},
                "$or": [{"sync_resume_at": None}, {"sync_resume_at": {"$lt": cutoff}}],
            }
        )

    def find_orphaned_owners(self, limit: int) -> List[str]:
        """Owners with pending repositories and nothing syncing."""
        rows = self.aggregate(
            [
                {
                    "$match": {
                        "sync_status": {
                            "$in": [SyncStatus.PENDING.value, SyncStatus.SYNCING.value]
                        }
                    }
                },
                {
                    "$group": {
                        "_id": "$owner",
                        "pending": {
                            "$sum": {
                                "$cond": [{"$eq": ["$sync_status", SyncStatus.PENDING.value]}, 1, 0]
                            }
                        },
                        "syncing": {
                            "$sum": {
                                "$cond": [{"$eq": ["$sync_status", SyncStatus.SYNCING.value]}, 1, 0]
                            }
                        },
                    }
                },
                {"$match": {"pending": {"$gt": 0}, "syncing": 0}},
                {"$sort": {"_id": 1}},
                {"$limit": limit},
            ]
        )
        return [row["_id"] for row in rows]

    def find_stale(self, cutoff: datetime, limit: int) -> List[Repo]:
        return self.find_many(
            {
                "sync_status": SyncStatus.SYNCED.value,
                "$or": [{"last_synced_at": None}, {"last_synced_at": {"$lt": cutoff}}],
            },
            sort=[("last_synced_at", 1)],
            limit=limit,
        )

    def find_with_only_unspecified_tools(self, unspecified_key: str) -> List[Repo]:
        """Synced repositories whose tool breakdown holds nothing but the unspecified bucket."""
        return self.find_many(
            {
                "sync_status": SyncStatus.SYNCED.value,
                "tool_breakdown.0": {"$exists": True},
                "tool_breakdown": {"$not": {"$elemMatch": {"key": {"$ne": unspecified_key}}}},
            },
            sort=[("last_synced_at", 1)],
        )

    def find_without_breakdown(self) -> List[Repo]:
        return self.find_many(
            {"sync_status": SyncStatus.SYNCED.value, "tool_breakdown": None},
            sort=[("last_synced_at", 1)],
        )

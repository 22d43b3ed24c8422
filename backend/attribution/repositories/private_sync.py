from datetime import datetime, timezone
from typing import Any, Optional

from attribution.entities.enums import PrivateSyncStatus
from attribution.entities.private_sync import PrivateSyncState

from .base import BaseRepository


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PrivateSyncStateRepository(BaseRepository[PrivateSyncState]):
    """Progress of aggregate-only private syncs, one document per login."""

    def __init__(self, db):
        super().__init__(db, "private_sync_status", PrivateSyncState)

    def find_by_login(self, github_login: str) -> Optional[PrivateSyncState]:
        return self.find_one({"github_login": github_login})

    def start(self, github_login: str) -> PrivateSyncState:
        now = _utcnow()
        return self.find_one_and_update(
            {"github_login": github_login},
            {
                "$set": {
                    "status": PrivateSyncStatus.SYNCING.value,
                    "total_repos": 0,
                    "processed_repos": 0,
                    "total_commits_found": 0,
                    "error": None,
                    "updated_at": now,
                },
                "$setOnInsert": {"github_login": github_login, "created_at": now},
            },
            upsert=True,
        )

    def update_progress(self, github_login: str, **fields: Any) -> bool:
        return self.update_one_raw(
            {"github_login": github_login},
            {"$set": {**fields, "updated_at": _utcnow()}},
        )

    def complete(self, github_login: str, total_commits: int) -> bool:
        now = _utcnow()
        return self.update_progress(
            github_login,
            status=PrivateSyncStatus.SYNCED.value,
            total_commits_found=total_commits,
            last_synced_at=now,
        )

    def fail(self, github_login: str, message: str) -> bool:
        return self.update_progress(
            github_login, status=PrivateSyncStatus.ERROR.value, error=message[:500]
        )

from datetime import datetime
from typing import Optional

from attribution.entities.base import BaseEntity
from attribution.entities.enums import PrivateSyncStatus


class PrivateSyncState(BaseEntity):
    """Progress of an aggregate-only private repository sync for one login."""

    github_login: str
    status: PrivateSyncStatus = PrivateSyncStatus.SYNCING
    total_repos: int = 0
    processed_repos: int = 0
    total_commits_found: int = 0
    error: Optional[str] = None
    last_synced_at: Optional[datetime] = None

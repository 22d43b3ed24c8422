"""
Repo Entity - A public repository whose commit history is attributed.

Created on the first analysis request, mutated throughout the sync pipeline
and never deleted by it. The sync fields double as resumption state: any
step can be retried by another worker from what is stored here.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from attribution.entities.base import BaseEntity
from attribution.entities.enums import SyncStage, SyncStatus


class AiConfig(BaseModel):
    """An AI tool configuration artifact found in the repository tree."""

    tool: str
    type: str
    name: str


class BreakdownEntry(BaseModel):
    """One named tool or bot resolved from generic classifications."""

    key: str
    label: str
    commits: int = 0
    additions: int = 0


class Repo(BaseEntity):
    """Tracked repository and its sync state."""

    owner: str
    name: str
    full_name: str = Field(..., description="owner/name, unique")

    # Sync state machine
    sync_status: SyncStatus = SyncStatus.PENDING
    sync_stage: Optional[str] = Field(
        None,
        description="Advisory SyncStage value; unknown values are tolerated on read",
    )
    sync_commits_fetched: Optional[int] = None
    sync_started_at: Optional[datetime] = None
    sync_run_id: Optional[str] = Field(
        None, description="Identifies the current run; steps of older runs are dropped"
    )
    sync_resume_at: Optional[datetime] = Field(
        None, description="Set while a step is parked on a rate limit"
    )
    sync_error: Optional[str] = None
    last_synced_at: Optional[datetime] = None
    total_commits_fetched: Optional[int] = None
    requested_at: Optional[datetime] = None

    # GitHub metadata
    github_id: Optional[int] = None
    description: Optional[str] = None
    stars: int = 0
    default_branch: Optional[str] = None
    pushed_at: Optional[datetime] = None
    etag: Optional[str] = None

    # Derived summaries
    tool_breakdown: Optional[List[BreakdownEntry]] = None
    bot_breakdown: Optional[List[BreakdownEntry]] = None
    ai_configs: List[AiConfig] = Field(default_factory=list)

    @property
    def stage(self) -> Optional[SyncStage]:
        return SyncStage.parse(self.sync_stage)

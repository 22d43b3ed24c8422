"""
Aggregate stat entities.

Every row here is fully derived from classified commits and replaced as a
whole on recomputation, never patched.
"""

from datetime import datetime
from typing import Optional

from attribution.entities.base import BaseDocument, PyObjectIdStr


class WeeklyBucket(BaseDocument):
    """Per-classification commit counts for one ISO week (Monday 00:00 UTC)."""

    week_start: datetime
    week_label: str  # e.g. "2025-W01"

    human: int = 0
    dependabot: int = 0
    renovate: int = 0
    copilot: int = 0
    claude: int = 0
    cursor: int = 0
    aider: int = 0
    devin: int = 0
    openai_codex: int = 0
    gemini: int = 0
    github_actions: int = 0
    other_bot: int = 0
    ai_assisted: int = 0
    total: int = 0

    human_additions: int = 0
    copilot_additions: int = 0
    claude_additions: int = 0
    cursor_additions: int = 0
    aider_additions: int = 0
    devin_additions: int = 0
    openai_codex_additions: int = 0
    gemini_additions: int = 0
    ai_assisted_additions: int = 0
    total_additions: int = 0
    total_deletions: int = 0


class DailyBucket(BaseDocument):
    """Human / AI / automation split for one UTC calendar day."""

    date: datetime
    human: int = 0
    ai: int = 0
    automation: int = 0
    human_additions: int = 0
    ai_additions: int = 0
    automation_additions: int = 0


class WeeklyStat(WeeklyBucket):
    repo_id: Optional[PyObjectIdStr] = None


class DailyStat(DailyBucket):
    repo_id: Optional[PyObjectIdStr] = None


class ContributorStat(BaseDocument):
    repo_id: Optional[PyObjectIdStr] = None
    login: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    classification: str = "human"
    commit_count: int = 0
    additions: int = 0
    deletions: int = 0
    first_commit_at: datetime
    last_commit_at: datetime


class GlobalWeeklyStat(WeeklyBucket):
    repo_count: int = 0


class GlobalDailyStat(DailyBucket):
    repo_count: int = 0


class PrivateWeeklyStat(WeeklyBucket):
    github_login: str


class PrivateDailyStat(DailyBucket):
    github_login: str

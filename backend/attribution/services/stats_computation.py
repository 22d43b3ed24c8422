"""
Pure aggregation of classified commits into weekly, daily and contributor stats.

Nothing here touches the database. The same functions back the public
repository pipeline, the global rollup and the private aggregate sync, so
all three surfaces count commits the same way.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Protocol

from attribution.entities.enums import AI_TOOL_CLASSIFICATIONS, Classification
from attribution.entities.stats import ContributorStat, DailyStat, WeeklyStat

UNKNOWN_CONTRIBUTOR = "unknown"

# Classifications whose additions are tracked in their own weekly column
_ADDITION_COLUMNS = {c.value for c in AI_TOOL_CLASSIFICATIONS} | {Classification.HUMAN.value}
_AI_TOOLS = {c.value for c in AI_TOOL_CLASSIFICATIONS}


class CommitForStats(Protocol):
    authored_at: datetime
    classification: str
    additions: Optional[int]
    deletions: Optional[int]
    author_login: Optional[str]
    author_email: Optional[str]
    author_name: Optional[str]


@dataclass
class StatsBundle:
    weekly: List[WeeklyStat] = field(default_factory=list)
    daily: List[DailyStat] = field(default_factory=list)
    contributors: List[ContributorStat] = field(default_factory=list)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _value(classification) -> str:
    return getattr(classification, "value", classification)


def day_start(value: datetime) -> datetime:
    """Midnight UTC of the calendar day containing ``value``."""
    value = _as_utc(value)
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def week_start(value: datetime) -> datetime:
    """Monday 00:00 UTC of the ISO week containing ``value``."""
    start = day_start(value)
    return start - timedelta(days=start.weekday())


def week_label(value: datetime) -> str:
    """
    ISO-8601 week label, e.g. ``2025-W01``.

    The year is the ISO year, i.e. the calendar year of the week's
    Thursday, so 2024-12-30 is labeled ``2025-W01``.
    """
    iso_year, iso_week, _ = _as_utc(value).isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def compute_weekly_stats(commits: Iterable[CommitForStats]) -> List[WeeklyStat]:
    buckets: Dict[datetime, WeeklyStat] = {}

    for commit in commits:
        start = week_start(commit.authored_at)
        bucket = buckets.get(start)
        if bucket is None:
            bucket = WeeklyStat(week_start=start, week_label=week_label(start))
            buckets[start] = bucket

        classification = _value(commit.classification)
        column = Classification(classification).field
        setattr(bucket, column, getattr(bucket, column) + 1)
        bucket.total += 1

        additions = commit.additions or 0
        if classification in _ADDITION_COLUMNS:
            additions_column = f"{column}_additions"
            setattr(bucket, additions_column, getattr(bucket, additions_column) + additions)
        bucket.total_additions += additions
        bucket.total_deletions += commit.deletions or 0

    return [buckets[key] for key in sorted(buckets)]


def compute_daily_stats(commits: Iterable[CommitForStats]) -> List[DailyStat]:
    """Three-way human / AI / automation split per UTC day."""
    buckets: Dict[datetime, DailyStat] = {}

    for commit in commits:
        start = day_start(commit.authored_at)
        bucket = buckets.setdefault(start, DailyStat(date=start))

        classification = _value(commit.classification)
        additions = commit.additions or 0
        if classification == Classification.HUMAN.value:
            bucket.human += 1
            bucket.human_additions += additions
        elif classification in _AI_TOOLS:
            bucket.ai += 1
            bucket.ai_additions += additions
        else:
            bucket.automation += 1
            bucket.automation_additions += additions

    return [buckets[key] for key in sorted(buckets)]


def contributor_key(commit: CommitForStats) -> str:
    return commit.author_login or commit.author_email or commit.author_name or UNKNOWN_CONTRIBUTOR


def majority_classification(counts: Dict[str, int]) -> str:
    """Most frequent classification; ties go to the lexicographically smallest name."""
    if not counts:
        return Classification.HUMAN.value
    return min(counts, key=lambda name: (-counts[name], name))


def compute_contributor_stats(commits: Iterable[CommitForStats]) -> List[ContributorStat]:
    contributors: Dict[str, ContributorStat] = {}
    votes: Dict[str, Dict[str, int]] = {}

    for commit in commits:
        key = contributor_key(commit)
        authored_at = _as_utc(commit.authored_at)
        stat = contributors.get(key)
        if stat is None:
            stat = ContributorStat(
                login=commit.author_login,
                name=commit.author_name,
                email=commit.author_email,
                first_commit_at=authored_at,
                last_commit_at=authored_at,
            )
            contributors[key] = stat
            votes[key] = {}

        stat.commit_count += 1
        stat.additions += commit.additions or 0
        stat.deletions += commit.deletions or 0
        stat.first_commit_at = min(stat.first_commit_at, authored_at)
        stat.last_commit_at = max(stat.last_commit_at, authored_at)

        classification = _value(commit.classification)
        votes[key][classification] = votes[key].get(classification, 0) + 1

    for key, stat in contributors.items():
        stat.classification = majority_classification(votes[key])

    return sorted(contributors.values(), key=lambda s: (-s.commit_count, contributor_key_of(s)))


def contributor_key_of(stat: ContributorStat) -> str:
    return stat.login or stat.email or stat.name or UNKNOWN_CONTRIBUTOR


def compute_stats(commits: Iterable[CommitForStats]) -> StatsBundle:
    """Weekly, daily and contributor aggregates for one commit batch."""
    commits = list(commits)
    return StatsBundle(
        weekly=compute_weekly_stats(commits),
        daily=compute_daily_stats(commits),
        contributors=compute_contributor_stats(commits),
    )

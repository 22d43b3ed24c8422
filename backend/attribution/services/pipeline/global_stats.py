"""
Fleet-wide weekly and daily rollups over every synced repository.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Set, Tuple, Type, TypeVar

from pymongo.database import Database

from attribution.database.mongo import get_transaction
from attribution.entities.stats import (
    DailyBucket,
    GlobalDailyStat,
    GlobalWeeklyStat,
    WeeklyBucket,
)
from attribution.repositories.repo import RepoRepository
from attribution.repositories.stats import (
    DailyStatRepository,
    GlobalDailyStatRepository,
    GlobalWeeklyStatRepository,
    WeeklyStatRepository,
)

logger = logging.getLogger(__name__)

B = TypeVar("B", GlobalWeeklyStat, GlobalDailyStat)

# Bucket fields that identify the period rather than count commits
_KEY_FIELDS = {"id", "week_start", "week_label", "date", "repo_id", "repo_count", "github_login"}


def _counter_fields(model: Type) -> List[str]:
    return [
        name
        for name, field in model.model_fields.items()
        if name not in _KEY_FIELDS and field.annotation is int
    ]


WEEKLY_COUNTERS = _counter_fields(WeeklyBucket)
DAILY_COUNTERS = _counter_fields(DailyBucket)


def sum_buckets(
    rows: Iterable,
    period_field: str,
    target: Type[B],
    counters: List[str],
) -> List[B]:
    """Sum per-repository buckets that share a period; ``repo_count`` counts contributors."""
    totals: Dict[datetime, B] = {}
    repos: Dict[datetime, Set] = {}

    for row in rows:
        period = getattr(row, period_field)
        bucket = totals.get(period)
        if bucket is None:
            extra: Dict[str, object] = {period_field: period}
            if period_field == "week_start":
                extra["week_label"] = row.week_label
            bucket = target(**extra)
            totals[period] = bucket
            repos[period] = set()

        for name in counters:
            setattr(bucket, name, getattr(bucket, name) + getattr(row, name))
        repos[period].add(row.repo_id)

    for period, bucket in totals.items():
        bucket.repo_count = len(repos[period])
    return [totals[period] for period in sorted(totals)]


class GlobalStatsService:
    def __init__(self, db: Database):
        self.db = db
        self.repos = RepoRepository(db)
        self.weekly = WeeklyStatRepository(db)
        self.daily = DailyStatRepository(db)
        self.global_weekly = GlobalWeeklyStatRepository(db)
        self.global_daily = GlobalDailyStatRepository(db)

    def recompute(self) -> Tuple[int, int]:
        """Rebuild both rollups from scratch; returns (weeks, days) written."""
        repo_ids = [repo.id for repo in self.repos.find_synced()]
        weekly = sum_buckets(
            self.weekly.find_for_repos(repo_ids), "week_start", GlobalWeeklyStat, WEEKLY_COUNTERS
        )
        daily = sum_buckets(
            self.daily.find_for_repos(repo_ids), "date", GlobalDailyStat, DAILY_COUNTERS
        )

        with get_transaction(self.db) as session:
            self.global_weekly.replace(weekly, session=session)
            self.global_daily.replace(daily, session=session)

        logger.info(
            f"Global stats recomputed over {len(repo_ids)} repos: "
            f"{len(weekly)} weeks, {len(daily)} days"
        )
        return len(weekly), len(daily)

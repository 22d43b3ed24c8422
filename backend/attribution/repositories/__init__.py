"""Repository layer for database operations"""

from .base import BaseRepository
from .commit import CommitRepository
from .private_sync import PrivateSyncStateRepository
from .profile import ProfileRepository
from .rate_limit import RateLimitRepository
from .repo import RepoRepository

# Derived aggregates
from .stats import (
    ContributorStatRepository,
    DailyStatRepository,
    GlobalDailyStatRepository,
    GlobalWeeklyStatRepository,
    PrivateDailyStatRepository,
    PrivateWeeklyStatRepository,
    ScopedStatsRepository,
    WeeklyStatRepository,
)

__all__ = [
    "BaseRepository",
    "CommitRepository",
    "ContributorStatRepository",
    "DailyStatRepository",
    "GlobalDailyStatRepository",
    "GlobalWeeklyStatRepository",
    "PrivateDailyStatRepository",
    "PrivateSyncStateRepository",
    "PrivateWeeklyStatRepository",
    "ProfileRepository",
    "RateLimitRepository",
    "RepoRepository",
    "ScopedStatsRepository",
    "WeeklyStatRepository",
]

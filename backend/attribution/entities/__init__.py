from .base import BaseDocument, BaseEntity, PyObjectId, PyObjectIdStr
from .commit import Commit

# Shared enums
from .enums import (
    AI_TOOL_CLASSIFICATIONS,
    AUTOMATION_CLASSIFICATIONS,
    Classification,
    PrivateSyncStatus,
    SyncStage,
    SyncStatus,
    classification_to_field,
)
from .private_sync import PrivateSyncState
from .profile import Profile
from .rate_limit import RateLimitRecord
from .repo import AiConfig, BreakdownEntry, Repo

# Derived aggregates
from .stats import (
    ContributorStat,
    DailyBucket,
    DailyStat,
    GlobalDailyStat,
    GlobalWeeklyStat,
    PrivateDailyStat,
    PrivateWeeklyStat,
    WeeklyBucket,
    WeeklyStat,
)

__all__ = [
    "AI_TOOL_CLASSIFICATIONS",
    "AUTOMATION_CLASSIFICATIONS",
    "AiConfig",
    "BaseDocument",
    "BaseEntity",
    "BreakdownEntry",
    "Classification",
    "Commit",
    "ContributorStat",
    "DailyBucket",
    "DailyStat",
    "GlobalDailyStat",
    "GlobalWeeklyStat",
    "PrivateDailyStat",
    "PrivateSyncState",
    "PrivateSyncStatus",
    "PrivateWeeklyStat",
    "Profile",
    "PyObjectId",
    "PyObjectIdStr",
    "RateLimitRecord",
    "Repo",
    "SyncStage",
    "SyncStatus",
    "WeeklyBucket",
    "WeeklyStat",
    "classification_to_field",
]

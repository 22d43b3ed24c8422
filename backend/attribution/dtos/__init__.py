"""Data Transfer Objects (DTOs) for API requests and responses"""

from .analyze import (
    AdminResyncOwnerRequest,
    AdminResyncOwnerResponse,
    BackfillRequest,
    BackfillResponse,
    PrivateSyncRequest,
    PrivateSyncResponse,
    RepoRequest,
    RepoRequestResponse,
    ResyncRepoRequest,
    ResyncRepoResponse,
    ResyncUserRequest,
    ResyncUserResponse,
    UserAnalysisRequest,
    UserAnalysisResponse,
)
from .stats import (
    BreakdownItem,
    GlobalSummaryResponse,
    LeaderboardEntry,
    RepoSummaryResponse,
    SummaryResponse,
)

__all__ = [
    # Analyze
    "RepoRequest",
    "RepoRequestResponse",
    "UserAnalysisRequest",
    "UserAnalysisResponse",
    "ResyncRepoRequest",
    "ResyncRepoResponse",
    "ResyncUserRequest",
    "ResyncUserResponse",
    "PrivateSyncRequest",
    "PrivateSyncResponse",
    # Admin
    "BackfillRequest",
    "BackfillResponse",
    "AdminResyncOwnerRequest",
    "AdminResyncOwnerResponse",
    # Stats
    "BreakdownItem",
    "SummaryResponse",
    "RepoSummaryResponse",
    "GlobalSummaryResponse",
    "LeaderboardEntry",
]

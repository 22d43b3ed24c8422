"""Analyze / resync DTOs"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

OWNER_PATTERN = r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,38})$"
REPO_NAME_PATTERN = r"^[A-Za-z0-9._-]{1,100}$"


class RepoRequest(BaseModel):
    owner: str = Field(..., pattern=OWNER_PATTERN, description="Repository owner login")
    name: str = Field(..., pattern=REPO_NAME_PATTERN, description="Repository name")
    pushed_at: Optional[datetime] = Field(
        None, description="Last push time, used to order the owner queue"
    )


class RepoRequestResponse(BaseModel):
    repo_id: Optional[str] = None
    status: str
    existing: bool = False
    retry_after_seconds: Optional[int] = None


class UserAnalysisRequest(BaseModel):
    repos: List[RepoRequest] = Field(..., min_length=1)


class UserAnalysisResponse(BaseModel):
    requested: int
    queued: int
    truncated: bool = False


class ResyncRepoRequest(BaseModel):
    owner: str = Field(..., pattern=OWNER_PATTERN)
    name: str = Field(..., pattern=REPO_NAME_PATTERN)


class ResyncRepoResponse(BaseModel):
    repo_id: str
    status: str


class ResyncUserRequest(BaseModel):
    owner: str = Field(..., pattern=OWNER_PATTERN)


class ResyncUserResponse(BaseModel):
    owner: str
    reset_count: int
    total_repos: int


class PrivateSyncRequest(BaseModel):
    github_login: str = Field(..., pattern=OWNER_PATTERN)


class PrivateSyncResponse(BaseModel):
    github_login: str
    status: str


class BackfillRequest(BaseModel):
    max_repos: Optional[int] = Field(None, ge=1, le=500)
    dry_run: bool = False
    only_unspecified: bool = False


class BackfillResponse(BaseModel):
    dry_run: bool
    scheduled: int
    repos: List[str]
    unspecified_count: int
    missing_breakdown_count: int
    total_candidates: int
    estimated_minutes: int


class AdminResyncOwnerRequest(BaseModel):
    owner: str = Field(..., pattern=OWNER_PATTERN)
    dry_run: bool = False


class AdminResyncOwnerResponse(BaseModel):
    owner: str
    total_repos: int
    reset_count: int
    already_pending: int
    syncing: int
    kicked: bool
    dry_run: bool

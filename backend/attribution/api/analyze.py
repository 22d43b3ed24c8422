import hashlib
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, status
from pymongo.database import Database

from attribution.database.mongo import get_db
from attribution.dtos.analyze import (
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
from attribution.services.analysis_service import (
    AnalysisService,
    RepoRef,
    require_analyze_api_key,
)
from attribution.services.recovery_service import RecoveryService
from attribution.services.scheduling import dispatch

router = APIRouter(prefix="/analyze", tags=["Analyze"])

API_KEY_HEADER = "X-Analyze-Api-Key"


def get_client_ip(request: Request) -> str:
    """First hop of the proxy chain, falling back to proxy-specific headers."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip() or "unknown"

    for header in ("x-real-ip", "cf-connecting-ip"):
        value = request.headers.get(header)
        if value:
            return value.strip()
    return "unknown"


def get_ip_hash(request: Request) -> str:
    """Requester key for throttling; raw addresses are never stored."""
    return hashlib.sha256(get_client_ip(request).encode("utf-8")).hexdigest()


@router.post("/repo", response_model=RepoRequestResponse, status_code=status.HTTP_202_ACCEPTED)
def request_repo(
    payload: RepoRequest,
    db: Database = Depends(get_db),
    ip_hash: str = Depends(get_ip_hash),
):
    """Start tracking a public repository."""
    outcome = AnalysisService(db).request_repo(
        payload.owner, payload.name, ip_hash, payload.pushed_at
    )
    dispatch(outcome.steps)
    return outcome.payload


@router.post("/user", response_model=UserAnalysisResponse, status_code=status.HTTP_202_ACCEPTED)
def request_user_analysis(
    payload: UserAnalysisRequest,
    db: Database = Depends(get_db),
    api_key: Optional[str] = Header(None, alias=API_KEY_HEADER),
):
    """Queue a batch of an owner's repositories."""
    refs = [RepoRef(r.owner, r.name, r.pushed_at) for r in payload.repos]
    outcome = AnalysisService(db).request_user_analysis(refs, api_key)
    dispatch(outcome.steps)
    return outcome.payload


@router.post("/resync-repo", response_model=ResyncRepoResponse, status_code=status.HTTP_202_ACCEPTED)
def resync_repo(
    payload: ResyncRepoRequest,
    db: Database = Depends(get_db),
    ip_hash: str = Depends(get_ip_hash),
    api_key: Optional[str] = Header(None, alias=API_KEY_HEADER),
):
    outcome = AnalysisService(db).resync_repo(payload.owner, payload.name, ip_hash, api_key)
    dispatch(outcome.steps)
    return outcome.payload


@router.post("/resync-user", response_model=ResyncUserResponse, status_code=status.HTTP_202_ACCEPTED)
def resync_user(
    payload: ResyncUserRequest,
    db: Database = Depends(get_db),
    ip_hash: str = Depends(get_ip_hash),
    api_key: Optional[str] = Header(None, alias=API_KEY_HEADER),
):
    outcome = AnalysisService(db).resync_user(payload.owner, ip_hash, api_key)
    dispatch(outcome.steps)
    return outcome.payload


@router.post("/private-sync", response_model=PrivateSyncResponse, status_code=status.HTTP_202_ACCEPTED)
def request_private_sync(
    payload: PrivateSyncRequest,
    db: Database = Depends(get_db),
    api_key: Optional[str] = Header(None, alias=API_KEY_HEADER),
    github_token: Optional[str] = Header(None, alias="X-GitHub-Token"),
):
    """Aggregate-only sync of the caller's private repositories with their own token."""
    outcome = AnalysisService(db).request_private_sync(
        payload.github_login, github_token or "", api_key
    )
    dispatch(outcome.steps)
    return outcome.payload


@router.post("/admin/backfill", response_model=BackfillResponse)
def resync_affected_repos(
    payload: BackfillRequest,
    db: Database = Depends(get_db),
    api_key: Optional[str] = Header(None, alias=API_KEY_HEADER),
):
    """Re-sync repositories whose tool breakdown is missing or all unspecified."""
    require_analyze_api_key(api_key)
    report = RecoveryService(db).resync_affected_repos(
        max_repos=payload.max_repos,
        dry_run=payload.dry_run,
        only_unspecified=payload.only_unspecified,
    )
    dispatch(report.steps)
    return report.to_dict()


@router.post("/admin/resync-owner", response_model=AdminResyncOwnerResponse)
def admin_resync_owner(
    payload: AdminResyncOwnerRequest,
    db: Database = Depends(get_db),
    api_key: Optional[str] = Header(None, alias=API_KEY_HEADER),
):
    require_analyze_api_key(api_key)
    outcome = RecoveryService(db).admin_resync_owner(payload.owner, dry_run=payload.dry_run)
    dispatch(outcome.steps)
    return outcome.payload

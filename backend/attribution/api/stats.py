from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Path, status
from pymongo.database import Database

from attribution.database.mongo import get_db
from attribution.dtos.stats import GlobalSummaryResponse, LeaderboardEntry, RepoSummaryResponse
from attribution.services.query_service import QueryService

router = APIRouter(prefix="/stats", tags=["Stats"])


def _require(result, owner: str, name: str):
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Repository {owner}/{name} is not tracked",
        )
    return result


@router.get("/repos/{owner}/{name}/summary", response_model=RepoSummaryResponse)
def get_repo_summary(
    owner: str = Path(...),
    name: str = Path(...),
    db: Database = Depends(get_db),
):
    """Totals, human / AI / automation split, trend and breakdowns."""
    return _require(QueryService(db).repo_summary(owner, name), owner, name)


@router.get("/repos/{owner}/{name}/weekly")
def get_repo_weekly(
    owner: str = Path(...), name: str = Path(...), db: Database = Depends(get_db)
) -> List[Dict[str, Any]]:
    return _require(QueryService(db).repo_weekly(owner, name), owner, name)


@router.get("/repos/{owner}/{name}/daily")
def get_repo_daily(
    owner: str = Path(...), name: str = Path(...), db: Database = Depends(get_db)
) -> List[Dict[str, Any]]:
    return _require(QueryService(db).repo_daily(owner, name), owner, name)


@router.get("/repos/{owner}/{name}/contributors")
def get_repo_contributors(
    owner: str = Path(...), name: str = Path(...), db: Database = Depends(get_db)
) -> List[Dict[str, Any]]:
    return _require(QueryService(db).repo_contributors(owner, name), owner, name)


@router.get("/owners/{owner}")
def get_owner_overview(owner: str = Path(...), db: Database = Depends(get_db)) -> Dict[str, Any]:
    """Owner profile and the sync progress of each repository."""
    return QueryService(db).owner_overview(owner)


@router.get("/global/summary", response_model=GlobalSummaryResponse)
def get_global_summary(db: Database = Depends(get_db)):
    return QueryService(db).global_summary()


@router.get("/global/weekly")
def get_global_weekly(db: Database = Depends(get_db)) -> List[Dict[str, Any]]:
    return QueryService(db).global_weekly_series()


@router.get("/global/daily")
def get_global_daily(db: Database = Depends(get_db)) -> List[Dict[str, Any]]:
    return QueryService(db).global_daily_series()


@router.get("/leaderboard/ai-tools", response_model=List[LeaderboardEntry])
def get_tool_leaderboard(db: Database = Depends(get_db)):
    return QueryService(db).tool_leaderboard()


@router.get("/leaderboard/bots", response_model=List[LeaderboardEntry])
def get_bot_leaderboard(db: Database = Depends(get_db)):
    return QueryService(db).bot_leaderboard()


@router.get("/private/{github_login}")
def get_private_stats(
    github_login: str = Path(...), db: Database = Depends(get_db)
) -> Dict[str, Any]:
    """Aggregate-only private stats and the sync status for a login."""
    return QueryService(db).private_stats(github_login)

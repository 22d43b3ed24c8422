"""Stats DTOs"""

from typing import Dict, List, Optional

from pydantic import BaseModel


class SplitTotals(BaseModel):
    human: int = 0
    ai: int = 0
    automation: int = 0
    total: int = 0


class LocTotals(BaseModel):
    human_additions: int = 0
    ai_additions: int = 0
    total_additions: int = 0
    total_deletions: int = 0


class ToolTotal(BaseModel):
    commits: int = 0
    additions: int = 0


class BreakdownItem(BaseModel):
    key: str
    label: str
    commits: int = 0
    additions: int = 0


class SummaryResponse(BaseModel):
    totals: SplitTotals
    human_percentage: str
    ai_percentage: str
    automation_percentage: str
    trend: int
    week_count: int
    loc_totals: LocTotals
    loc_human_percentage: Optional[str] = None
    loc_ai_percentage: Optional[str] = None
    loc_automation_percentage: Optional[str] = None
    has_loc_data: bool
    tool_totals: Dict[str, ToolTotal]


class RepoSummaryResponse(SummaryResponse):
    repo: dict
    tool_breakdown: List[BreakdownItem] = []
    bot_breakdown: List[BreakdownItem] = []


class GlobalSummaryResponse(SummaryResponse):
    repo_count: int


class LeaderboardEntry(BreakdownItem):
    repo_count: int
    owner_count: int

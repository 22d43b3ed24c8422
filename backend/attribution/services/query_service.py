"""
Read-only query surfaces over the stored aggregates.

All numbers here come from the derived stat collections and the persisted
breakdowns on repositories; raw commits are gone by the time a repository
is synced.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pymongo.database import Database

from attribution.entities.enums import (
    AI_TOOL_CLASSIFICATIONS,
    AUTOMATION_CLASSIFICATIONS,
    SyncStatus,
)
from attribution.entities.repo import Repo
from attribution.entities.stats import WeeklyBucket
from attribution.repositories.private_sync import PrivateSyncStateRepository
from attribution.repositories.profile import ProfileRepository
from attribution.repositories.repo import RepoRepository
from attribution.repositories.stats import (
    ContributorStatRepository,
    DailyStatRepository,
    GlobalDailyStatRepository,
    GlobalWeeklyStatRepository,
    PrivateDailyStatRepository,
    PrivateWeeklyStatRepository,
    WeeklyStatRepository,
)
from attribution.services.classification import UNKNOWN_AI_KEY

AI_FIELDS = sorted(c.field for c in AI_TOOL_CLASSIFICATIONS)
AUTOMATION_FIELDS = sorted(c.field for c in AUTOMATION_CLASSIFICATIONS)
TREND_WINDOW_WEEKS = 4


def format_percentage(value: float) -> str:
    """One decimal, or two for values under 0.1 unless the second is a zero."""
    if value == 0:
        return "0"
    if value < 0.1:
        formatted = f"{value:.2f}"
        return f"{value:.1f}" if formatted.endswith("0") else formatted
    return f"{value:.1f}"


def _share(part: int, total: int) -> str:
    return format_percentage(part / total * 100) if total > 0 else "0"


def _ai_commits(week: WeeklyBucket) -> int:
    return sum(getattr(week, name) for name in AI_FIELDS)


def _ai_additions(week: WeeklyBucket) -> int:
    return sum(getattr(week, f"{name}_additions") for name in AI_FIELDS)


def _automation_commits(week: WeeklyBucket) -> int:
    return sum(getattr(week, name) for name in AUTOMATION_FIELDS)


def ai_trend(weeks: Sequence[WeeklyBucket]) -> int:
    """Percent change of AI commits, last four weeks over the four before."""
    ordered = sorted(weeks, key=lambda w: w.week_start, reverse=True)
    recent = sum(_ai_commits(w) for w in ordered[:TREND_WINDOW_WEEKS])
    previous = sum(_ai_commits(w) for w in ordered[TREND_WINDOW_WEEKS : TREND_WINDOW_WEEKS * 2])
    if previous <= 0:
        return 0
    return round((recent - previous) / previous * 100)


def summarize_weeks(weeks: Sequence[WeeklyBucket]) -> Dict[str, Any]:
    """Commit and line totals with the human / AI / automation split."""
    human = sum(w.human for w in weeks)
    ai = sum(_ai_commits(w) for w in weeks)
    automation = sum(_automation_commits(w) for w in weeks)
    total = human + ai + automation

    human_additions = sum(w.human_additions for w in weeks)
    ai_additions = sum(_ai_additions(w) for w in weeks)
    total_additions = sum(w.total_additions for w in weeks)
    automation_additions = max(0, total_additions - human_additions - ai_additions)
    has_loc_data = total_additions > 0

    def loc_share(part: int) -> Optional[str]:
        return format_percentage(part / total_additions * 100) if has_loc_data else None

    tool_totals = {
        name: {
            "commits": sum(getattr(w, name) for w in weeks),
            "additions": sum(getattr(w, f"{name}_additions") for w in weeks),
        }
        for name in AI_FIELDS
    }

    return {
        "totals": {"human": human, "ai": ai, "automation": automation, "total": total},
        "human_percentage": _share(human, total),
        "ai_percentage": _share(ai, total),
        "automation_percentage": _share(automation, total),
        "trend": ai_trend(weeks),
        "week_count": len(weeks),
        "loc_totals": {
            "human_additions": human_additions,
            "ai_additions": ai_additions,
            "total_additions": total_additions,
            "total_deletions": sum(w.total_deletions for w in weeks),
        },
        "loc_human_percentage": loc_share(human_additions),
        "loc_ai_percentage": loc_share(ai_additions),
        "loc_automation_percentage": loc_share(automation_additions),
        "has_loc_data": has_loc_data,
        "tool_totals": tool_totals,
    }


def build_leaderboard(repos: Iterable[Repo], attribute: str, exclude: Sequence[str] = ()) -> List[Dict[str, Any]]:
    """Sum a persisted breakdown across repositories, ranked by commits."""
    rows: Dict[str, Dict[str, Any]] = {}
    repo_sets: Dict[str, set] = defaultdict(set)
    owner_sets: Dict[str, set] = defaultdict(set)

    for repo in repos:
        for entry in getattr(repo, attribute) or []:
            if entry.key in exclude:
                continue
            row = rows.setdefault(
                entry.key, {"key": entry.key, "label": entry.label, "commits": 0, "additions": 0}
            )
            row["commits"] += entry.commits
            row["additions"] += entry.additions
            repo_sets[entry.key].add(repo.full_name)
            owner_sets[entry.key].add(repo.owner.lower())

    for key, row in rows.items():
        row["repo_count"] = len(repo_sets[key])
        row["owner_count"] = len(owner_sets[key])

    return sorted(rows.values(), key=lambda r: (-r["commits"], -r["additions"], r["key"]))


class QueryService:
    def __init__(self, db: Database):
        self.repos = RepoRepository(db)
        self.profiles = ProfileRepository(db)
        self.weekly = WeeklyStatRepository(db)
        self.daily = DailyStatRepository(db)
        self.contributors = ContributorStatRepository(db)
        self.global_weekly = GlobalWeeklyStatRepository(db)
        self.global_daily = GlobalDailyStatRepository(db)
        self.private_state = PrivateSyncStateRepository(db)
        self.private_weekly = PrivateWeeklyStatRepository(db)
        self.private_daily = PrivateDailyStatRepository(db)

    def get_repo(self, owner: str, name: str) -> Optional[Repo]:
        return self.repos.find_by_full_name(f"{owner}/{name}")

    def repo_summary(self, owner: str, name: str) -> Optional[Dict[str, Any]]:
        repo = self.get_repo(owner, name)
        if repo is None:
            return None

        summary = summarize_weeks(self.weekly.find_for(repo.id))
        summary["repo"] = repo.model_dump(mode="json")
        summary["tool_breakdown"] = [e.model_dump() for e in repo.tool_breakdown or []]
        summary["bot_breakdown"] = [e.model_dump() for e in repo.bot_breakdown or []]
        return summary

    def repo_weekly(self, owner: str, name: str) -> Optional[List[Dict[str, Any]]]:
        repo = self.get_repo(owner, name)
        if repo is None:
            return None
        return [row.model_dump(mode="json") for row in self.weekly.find_for(repo.id)]

    def repo_daily(self, owner: str, name: str) -> Optional[List[Dict[str, Any]]]:
        repo = self.get_repo(owner, name)
        if repo is None:
            return None
        return [row.model_dump(mode="json") for row in self.daily.find_for(repo.id)]

    def repo_contributors(self, owner: str, name: str) -> Optional[List[Dict[str, Any]]]:
        repo = self.get_repo(owner, name)
        if repo is None:
            return None
        return [row.model_dump(mode="json") for row in self.contributors.find_for(repo.id)]

    def owner_overview(self, owner: str) -> Dict[str, Any]:
        repos = self.repos.find_by_owner(owner)
        profile = self.profiles.find_by_owner(owner)
        return {
            "owner": owner,
            "profile": profile.model_dump(mode="json") if profile else None,
            "repos": [
                {
                    "full_name": r.full_name,
                    "sync_status": r.sync_status,
                    "sync_stage": r.sync_stage,
                    "sync_commits_fetched": r.sync_commits_fetched,
                    "last_synced_at": r.last_synced_at.isoformat() if r.last_synced_at else None,
                    "stars": r.stars,
                }
                for r in repos
            ],
        }

    def global_summary(self) -> Dict[str, Any]:
        summary = summarize_weeks(self.global_weekly.find_for())
        summary["repo_count"] = self.repos.count({"sync_status": SyncStatus.SYNCED.value})
        return summary

    def global_weekly_series(self) -> List[Dict[str, Any]]:
        return [row.model_dump(mode="json") for row in self.global_weekly.find_for()]

    def global_daily_series(self) -> List[Dict[str, Any]]:
        return [row.model_dump(mode="json") for row in self.global_daily.find_for()]

    def tool_leaderboard(self) -> List[Dict[str, Any]]:
        # The unspecified bucket is not a tool and never ranks
        return build_leaderboard(self.repos.find_synced(), "tool_breakdown", exclude=[UNKNOWN_AI_KEY])

    def bot_leaderboard(self) -> List[Dict[str, Any]]:
        return build_leaderboard(self.repos.find_synced(), "bot_breakdown")

    def private_stats(self, login: str) -> Dict[str, Any]:
        state = self.private_state.find_by_login(login)
        weekly = self.private_weekly.find_for(login)
        return {
            "status": state.model_dump(mode="json") if state else None,
            "summary": summarize_weeks(weekly) if weekly else None,
            "weekly": [row.model_dump(mode="json") for row in weekly],
            "daily": [row.model_dump(mode="json") for row in self.private_daily.find_for(login)],
        }


"""
Aggregate stat repositories.

Each aggregate collection is scoped by one key (a repository id, a GitHub
login, or nothing for the fleet-wide rollup). A scope is only ever replaced
as a whole: delete every row of the scope, then insert the new rows, inside
the caller's transaction.
"""

from typing import Any, Generic, List, Optional, Sequence, Type, TypeVar

from pymongo.client_session import ClientSession

from attribution.entities.base import BaseDocument
from attribution.entities.stats import (
    ContributorStat,
    DailyStat,
    GlobalDailyStat,
    GlobalWeeklyStat,
    PrivateDailyStat,
    PrivateWeeklyStat,
    WeeklyStat,
)

from .base import BaseRepository

S = TypeVar("S", bound=BaseDocument)


class ScopedStatsRepository(BaseRepository[S], Generic[S]):
    scope_field: Optional[str] = None
    default_sort: List[tuple] = []

    def __init__(self, db, collection_name: str, model_class: Type[S]):
        super().__init__(db, collection_name, model_class)

    def _scope_query(self, scope: Any) -> dict:
        if self.scope_field is None:
            return {}
        if self.scope_field == "repo_id":
            scope = self._to_object_id(scope)
        return {self.scope_field: scope}

    def replace(
        self,
        rows: Sequence[S],
        scope: Any = None,
        session: ClientSession | None = None,
    ) -> int:
        query = self._scope_query(scope)
        self.delete_many(query, session=session)

        documents = []
        for row in rows:
            doc = row.to_mongo()
            doc.pop("_id", None)
            doc.update(query)
            documents.append(doc)
        return self.insert_many(documents, session=session)

    def find_for(self, scope: Any = None) -> List[S]:
        return self.find_many(self._scope_query(scope), sort=self.default_sort or None)


class WeeklyStatRepository(ScopedStatsRepository[WeeklyStat]):
    scope_field = "repo_id"
    default_sort = [("week_start", 1)]

    def __init__(self, db):
        super().__init__(db, "weekly_stats", WeeklyStat)

    def find_for_repos(self, repo_ids: List[Any]) -> List[WeeklyStat]:
        return self.find_many(
            {"repo_id": {"$in": [self._to_object_id(r) for r in repo_ids]}},
            sort=self.default_sort,
        )


class DailyStatRepository(ScopedStatsRepository[DailyStat]):
    scope_field = "repo_id"
    default_sort = [("date", 1)]

    def __init__(self, db):
        super().__init__(db, "daily_stats", DailyStat)

    def find_for_repos(self, repo_ids: List[Any]) -> List[DailyStat]:
        return self.find_many(
            {"repo_id": {"$in": [self._to_object_id(r) for r in repo_ids]}},
            sort=self.default_sort,
        )


class ContributorStatRepository(ScopedStatsRepository[ContributorStat]):
    scope_field = "repo_id"
    default_sort = [("commit_count", -1), ("login", 1)]

    def __init__(self, db):
        super().__init__(db, "contributor_stats", ContributorStat)


class GlobalWeeklyStatRepository(ScopedStatsRepository[GlobalWeeklyStat]):
    default_sort = [("week_start", 1)]

    def __init__(self, db):
        super().__init__(db, "global_weekly_stats", GlobalWeeklyStat)


class GlobalDailyStatRepository(ScopedStatsRepository[GlobalDailyStat]):
    default_sort = [("date", 1)]

    def __init__(self, db):
        super().__init__(db, "global_daily_stats", GlobalDailyStat)


class PrivateWeeklyStatRepository(ScopedStatsRepository[PrivateWeeklyStat]):
    scope_field = "github_login"
    default_sort = [("week_start", 1)]

    def __init__(self, db):
        super().__init__(db, "private_weekly_stats", PrivateWeeklyStat)


class PrivateDailyStatRepository(ScopedStatsRepository[PrivateDailyStat]):
    scope_field = "github_login"
    default_sort = [("date", 1)]

    def __init__(self, db):
        super().__init__(db, "private_daily_stats", PrivateDailyStat)

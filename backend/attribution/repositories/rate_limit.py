"""
Rate Limit Repository - records of throttled requester actions.
"""

from datetime import datetime
from typing import Optional

from attribution.entities.rate_limit import RateLimitRecord

from .base import BaseRepository


class RateLimitRepository(BaseRepository[RateLimitRecord]):
    def __init__(self, db):
        super().__init__(db, "rate_limits", RateLimitRecord)

    def record(self, key: str, action: str, occurred_at: datetime) -> RateLimitRecord:
        return self.insert_one(
            RateLimitRecord(
                key=key,
                action=action,
                day_key=occurred_at.strftime("%Y-%m-%d"),
                occurred_at=occurred_at,
            )
        )

    def count_for_day(self, key: str, action: str, day_key: str) -> int:
        return self.count({"key": key, "action": action, "day_key": day_key})

    def find_latest(self, key: str, action: str) -> Optional[RateLimitRecord]:
        return self.find_one({"key": key, "action": action}, sort=[("occurred_at", -1)])

    def delete_older_than(self, cutoff: datetime) -> int:
        return self.delete_many({"occurred_at": {"$lt": cutoff}})

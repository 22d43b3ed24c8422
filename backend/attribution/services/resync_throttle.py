"""
Cooldown plus daily cap for user-triggered resyncs and analysis requests.

The decision itself is pure (``evaluate_resync_throttle``); ``ResyncThrottle``
reads and records attempts in the ``rate_limits`` collection.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from pymongo.database import Database

from attribution.config import settings
from attribution.repositories.rate_limit import RateLimitRepository
from attribution.services.errors import ThrottledError

COOLDOWN = "cooldown"
DAILY_CAP = "daily_cap"


@dataclass
class ThrottleDecision:
    allowed: bool
    reason: Optional[str] = None
    retry_after_seconds: int = 0


def utc_day_key(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%d")


def seconds_until_next_utc_day(moment: datetime) -> int:
    moment = moment.astimezone(timezone.utc)
    next_day = (moment + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return max(1, math.ceil((next_day - moment).total_seconds()))


def evaluate_resync_throttle(
    now: datetime,
    last_attempt_at: Optional[datetime],
    day_count: int,
    cooldown: timedelta | None = None,
    daily_limit: int | None = None,
) -> ThrottleDecision:
    """
    Decide whether one more attempt is allowed.

    ``day_count`` is the number of attempts already made on ``now``'s UTC
    day. The daily cap is checked before the cooldown.
    """
    cooldown = cooldown if cooldown is not None else timedelta(minutes=settings.RESYNC_COOLDOWN_MINUTES)
    daily_limit = daily_limit if daily_limit is not None else settings.RESYNC_DAILY_LIMIT

    if day_count >= daily_limit:
        return ThrottleDecision(False, DAILY_CAP, seconds_until_next_utc_day(now))

    if last_attempt_at is not None:
        elapsed = now - last_attempt_at
        if elapsed < cooldown:
            remaining = (cooldown - elapsed).total_seconds()
            return ThrottleDecision(False, COOLDOWN, max(1, math.ceil(remaining)))

    return ThrottleDecision(True)


def retry_message(reason: str, retry_after_seconds: int) -> str:
    minutes = math.ceil(retry_after_seconds / 60)
    unit = "minute" if minutes == 1 else "minutes"
    if reason == DAILY_CAP:
        return f"Re-sync limit reached for today. Try again in {minutes} {unit}."
    return f"Re-sync is on cooldown. Try again in {minutes} {unit}."


class ResyncThrottle:
    def __init__(self, db: Database):
        self.records = RateLimitRepository(db)

    def check_and_record(self, key: str, action: str, now: datetime | None = None) -> None:
        """Raise ThrottledError, or record the attempt."""
        now = now or datetime.now(timezone.utc)
        latest = self.records.find_latest(key, action)
        day_count = self.records.count_for_day(key, action, utc_day_key(now))

        decision = evaluate_resync_throttle(
            now, latest.occurred_at if latest else None, day_count
        )
        if not decision.allowed:
            raise ThrottledError(
                retry_message(decision.reason, decision.retry_after_seconds),
                reason=decision.reason,
                retry_after_seconds=decision.retry_after_seconds,
            )
        self.records.record(key, action, now)

    def check_daily_quota(self, key: str, action: str, limit: int, now: datetime | None = None) -> None:
        """Daily cap only, used for first-time repository requests."""
        now = now or datetime.now(timezone.utc)
        if self.records.count_for_day(key, action, utc_day_key(now)) >= limit:
            raise ThrottledError(
                "Daily request limit reached",
                reason=DAILY_CAP,
                retry_after_seconds=seconds_until_next_utc_day(now),
            )
        self.records.record(key, action, now)

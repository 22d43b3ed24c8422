from datetime import datetime, timezone

from pydantic import Field

from attribution.entities.base import BaseEntity


class RateLimitRecord(BaseEntity):
    """One throttled action performed by a requester (client IP or repo key)."""

    key: str
    action: str
    day_key: str  # UTC day, YYYY-MM-DD
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

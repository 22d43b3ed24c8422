"""
Redis-backed sliding window limiter for optional GitHub calls.

The sync pipeline reacts to GitHub's own quota headers. This limiter is the
proactive side: it caps how fast best-effort work (the recursive tree walk
of AI config detection) may spend requests across all Celery workers, so
that it can never starve the commit listing.

Redis Keys:
- {prefix}:requests - Sorted set of request timestamps (sliding window)
- {prefix}:burst - Burst tokens currently available
"""

from __future__ import annotations

import time
from typing import Optional

import redis

from attribution.config import settings
from attribution.core.redis import get_redis


ACQUIRE_SCRIPT = """
    local requests_key = KEYS[1]
    local burst_key = KEYS[2]
    local now = tonumber(ARGV[1])
    local window_size = tonumber(ARGV[2])
    local max_requests = tonumber(ARGV[3])
    local burst_allowance = tonumber(ARGV[4])
    local min_interval = tonumber(ARGV[5])

    redis.call('ZREMRANGEBYSCORE', requests_key, '-inf', now - window_size)
    local current_count = redis.call('ZCARD', requests_key)
    local burst_tokens = tonumber(redis.call('GET', burst_key) or burst_allowance)

    if burst_tokens > 0 or current_count < max_requests then
        if burst_tokens > 0 then
            redis.call('SET', burst_key, burst_tokens - 1, 'EX', 60)
        end
        redis.call('ZADD', requests_key, now, now .. ':' .. math.random())
        redis.call('EXPIRE', requests_key, math.ceil(window_size) + 1)
        return '0'
    end

    local oldest = redis.call('ZRANGE', requests_key, 0, 0, 'WITHSCORES')
    if #oldest >= 2 then
        local wait_time = tonumber(oldest[2]) + window_size - now
        if wait_time > 0 then
            return tostring(wait_time)
        end
    end
    return tostring(min_interval)
"""

REFILL_SCRIPT = """
    local burst_key = KEYS[1]
    local burst_allowance = tonumber(ARGV[1])
    local refill_rate = tonumber(ARGV[2])
    local now = tonumber(ARGV[3])

    local last_refill_key = burst_key .. ':last_refill'
    local last_refill = tonumber(redis.call('GET', last_refill_key) or 0)

    if last_refill == 0 then
        redis.call('SET', burst_key, burst_allowance, 'EX', 60)
        redis.call('SET', last_refill_key, now, 'EX', 60)
        return burst_allowance
    end

    local tokens_to_add = math.floor((now - last_refill) * refill_rate)
    if tokens_to_add > 0 then
        local current = tonumber(redis.call('GET', burst_key) or 0)
        local new_tokens = math.min(burst_allowance, current + tokens_to_add)
        redis.call('SET', burst_key, new_tokens, 'EX', 60)
        redis.call('SET', last_refill_key, now, 'EX', 60)
        return new_tokens
    end

    return tonumber(redis.call('GET', burst_key) or 0)
"""


class RedisRateLimiter:
    """
    Sliding window rate limiter with burst allowance, shared by all workers.

    Both the window check and the slot reservation run in one Lua script,
    so two workers can never take the same slot.
    """

    def __init__(
        self,
        key_prefix: str = "github:ratelimit",
        requests_per_second: float = 10.0,
        burst_allowance: int = 5,
        window_size: float = 1.0,
        client: redis.Redis | None = None,
    ):
        self._redis: redis.Redis = client or get_redis()
        self._key_requests = f"{key_prefix}:requests"
        self._key_burst = f"{key_prefix}:burst"
        self._requests_per_second = requests_per_second
        self._burst_allowance = burst_allowance
        self._window_size = window_size
        self._min_interval = 1.0 / requests_per_second

        self._acquire_script = self._redis.register_script(ACQUIRE_SCRIPT)
        self._refill_script = self._redis.register_script(REFILL_SCRIPT)

    def _acquire(self, now: float) -> float:
        self._refill_script(
            keys=[self._key_burst],
            args=[self._burst_allowance, self._requests_per_second / 2, now],
        )
        wait_time = self._acquire_script(
            keys=[self._key_requests, self._key_burst],
            args=[
                now,
                self._window_size,
                int(self._requests_per_second * self._window_size),
                self._burst_allowance,
                self._min_interval,
            ],
        )
        return float(wait_time or 0)

    def try_acquire(self) -> bool:
        """
        Non-blocking attempt to take a slot.

        Returns:
            True if acquired, False if the caller should skip or wait.
        """
        return self._acquire(time.time()) <= 0


_rate_limiter: Optional[RedisRateLimiter] = None


def get_rate_limiter() -> RedisRateLimiter:
    """Get or create the limiter used for the AI config tree walk."""
    global _rate_limiter

    if _rate_limiter is None:
        _rate_limiter = RedisRateLimiter(
            key_prefix="github:ratelimit:tree-walk",
            requests_per_second=settings.GITHUB_API_RATE_PER_SECOND,
            burst_allowance=settings.GITHUB_API_BURST_ALLOWANCE,
        )

    return _rate_limiter


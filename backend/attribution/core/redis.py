import logging

import redis
from redis.exceptions import LockError

from attribution.config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    _client = None

    @classmethod
    def get_client(cls) -> redis.Redis:
        if cls._client is None:
            cls._client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        return cls._client


class RedisLock:
    """
    Redis-based distributed lock for preventing concurrent operations.

    Usage:
        with RedisLock("owner-queue:octocat", timeout=30):
            # critical section
    """

    def __init__(self, key: str, timeout: int = 30, blocking_timeout: int = 10):
        self.key = f"lock:{key}"
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout
        self._lock = None

    def __enter__(self):
        self._lock = get_redis().lock(
            self.key,
            timeout=self.timeout,
            blocking_timeout=self.blocking_timeout,
        )
        acquired = self._lock.acquire(blocking=True)
        if not acquired:
            raise TimeoutError(f"Could not acquire lock: {self.key}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._lock:
            try:
                self._lock.release()
            except LockError:
                # Lock expired before release
                logger.warning(f"Lock {self.key} expired before release")
        return False


def get_redis() -> redis.Redis:
    """Get sync Redis client."""
    return RedisClient.get_client()

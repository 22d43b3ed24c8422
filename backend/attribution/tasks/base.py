"""
Base Celery Task for the sync pipeline.

All PipelineTask subclasses automatically:
1. Retry on GithubRateLimitError with the EXACT countdown from retry_after,
   up to MAX_RATE_LIMIT_RETRIES
2. Retry GithubRetryableError (network failures) with exponential backoff
3. Treat every other GitHub error as terminal: the entity is marked as
   failed, the owner chain advances and a status dict is returned
4. Handle SoftTimeLimitExceeded the same way as a terminal error

No pipeline step raises past its own boundary except to be retried, so
every repository ends either rescheduled or in a persisted terminal state.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from celery import Task
from celery.exceptions import SoftTimeLimitExceeded
from pymongo.database import Database

from attribution.config import settings
from attribution.database.mongo import get_database
from attribution.services.github.exceptions import (
    GithubError,
    GithubRateLimitError,
    GithubRetryableError,
)
from attribution.services.scheduling import dispatch, rate_limit_countdown
from attribution.utils.prometheus_metrics import record_rate_limit_retry

logger = logging.getLogger(__name__)

FailureHandler = Callable[[str], None]


class PipelineTask(Task):
    """
    Base task with a lazy database handle and terminal failure handling.

    Rate Limit Handling:
    - GithubRateLimitError: retry with the exact countdown while retries remain,
      then the repository is marked as errored
    """

    abstract = True
    # GithubRetryableError uses standard exponential backoff
    autoretry_for = (GithubRetryableError,)
    retry_backoff = True
    retry_backoff_max = 600
    retry_kwargs = {"max_retries": 3}
    default_retry_delay = 10

    def __init__(self) -> None:
        self._db: Database | None = None

    def __call__(self, *args, **kwargs):
        """
        Override __call__ to handle special exceptions.

        Handles:
        - GithubRateLimitError: Retry with EXACT countdown from retry_after
        - Other GithubError: terminal, entity marked failed
        - SoftTimeLimitExceeded: terminal, entity marked failed
        """
        try:
            return super().__call__(*args, **kwargs)
        except SoftTimeLimitExceeded:
            logger.error(f"Task {self.name} exceeded soft time limit, marking entity as failed")
            return self._fail(kwargs, "Sync step exceeded its time limit")
        except GithubRetryableError:
            # Left to autoretry_for; reaching here means retries are exhausted
            raise
        except GithubRateLimitError as exc:
            if self.request.retries >= settings.MAX_RATE_LIMIT_RETRIES:
                logger.error(
                    f"Rate limit retries exhausted for task {self.name} "
                    f"after {self.request.retries} attempts"
                )
                return self._fail(kwargs, f"GitHub rate limit retries exhausted: {exc}")

            countdown = self._calculate_countdown(exc)
            record_rate_limit_retry(self.name)
            self._park_entity(kwargs, countdown)
            logger.warning(
                f"Rate limited in task {self.name}, retrying in {countdown}s "
                f"(attempt {self.request.retries + 1}/{settings.MAX_RATE_LIMIT_RETRIES})"
            )
            raise self.retry(
                exc=exc, countdown=countdown, max_retries=settings.MAX_RATE_LIMIT_RETRIES
            ) from exc
        except GithubError as exc:
            return self._fail(kwargs, str(exc))

    def _calculate_countdown(self, exc: GithubRateLimitError) -> int:
        """Countdown seconds from retry_after, which already includes the buffer."""
        return rate_limit_countdown(getattr(exc, "retry_after", None), self.default_retry_delay)

    def _park_entity(self, kwargs: dict, countdown: int) -> None:
        """
        Record that the repository is waiting out a rate limit, so stuck
        detection leaves it alone until the retry is due.
        """
        repo_id = kwargs.get("repo_id")
        if not repo_id:
            return
        try:
            from attribution.services.pipeline.sync_state import SyncStateService

            SyncStateService(self.db).park(repo_id, countdown, kwargs.get("run_id"))
        except Exception as e:
            logger.warning(f"Failed to park {repo_id} for task {self.name}: {e}")

    def after_return(
        self, status: str, retval: Any, task_id: str, args: tuple, kwargs: dict, einfo
    ):  # pragma: no cover
        """Called after task completion - drop the cached database handle."""
        self._db = None

    @property
    def db(self) -> Database:
        if self._db is None:
            self._db = get_database()
        return self._db

    def get_entity_failure_handler(self, kwargs: dict) -> Optional[FailureHandler]:
        """
        Entity status updater used when the task ends terminally.

        Pipeline steps carry a ``repo_id``: the repository is marked as
        errored and the next pending repository of the owner is scheduled.
        A step of an earlier run of the repository changes nothing.
        """
        repo_id = kwargs.get("repo_id")
        run_id = kwargs.get("run_id")
        if not repo_id:
            return None

        def updater(error_msg: str) -> None:
            from attribution.services.pipeline.sync_state import SyncStateService

            dispatch(SyncStateService(self.db).mark_error(repo_id, error_msg, run_id))

        return updater

    def _handle_entity_failure(self, kwargs: dict, error_message: str) -> None:
        """
        Call entity failure handler to update entity status.

        Safe to call - catches exceptions to prevent masking the original error.
        """
        try:
            handler = self.get_entity_failure_handler(kwargs)
            if handler:
                handler(error_message)
                logger.info(f"Entity marked as failed for task {self.name}")
        except Exception as e:
            logger.warning(f"Failed to update entity status: {e}")

    def _fail(self, kwargs: dict, error_message: str) -> Dict[str, Any]:
        self._handle_entity_failure(kwargs, error_message)
        return {
            "status": "error",
            "error": error_message,
            "executed_at": datetime.now(timezone.utc).isoformat(),
            **{k: v for k, v in kwargs.items() if k in ("repo_id", "owner", "github_login")},
        }

    def on_failure(
        self, exc: Exception, task_id: str, args: tuple, kwargs: dict, einfo
    ):  # pragma: no cover - logging only
        """
        Handle an exception that escaped __call__ (e.g. network retries exhausted).

        The entity is still moved to a terminal state so the owner chain
        does not stall.
        """
        logger.error("Task %s failed: %s", self.name, exc, exc_info=exc)
        self._handle_entity_failure(kwargs, str(exc))

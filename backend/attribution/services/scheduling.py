"""
Deferred pipeline steps.

Services never talk to Celery directly. They return the step that should
run next and the task layer dispatches it, which keeps every service
testable without a broker.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

TASK_PREFIX = "attribution.tasks"

START_OWNER_QUEUE = f"{TASK_PREFIX}.pipeline.start_owner_queue"
FETCH_REPO_METADATA = f"{TASK_PREFIX}.pipeline.fetch_repo_metadata"
FETCH_COMMITS_PAGE = f"{TASK_PREFIX}.pipeline.fetch_commits_page"
ENRICH_COMMIT_STATS = f"{TASK_PREFIX}.pipeline.enrich_commit_stats"
RECLASSIFY_PRS = f"{TASK_PREFIX}.pipeline.reclassify_prs"
COMPUTE_REPO_STATS = f"{TASK_PREFIX}.pipeline.compute_repo_stats"
DELETE_REPO_COMMITS = f"{TASK_PREFIX}.pipeline.delete_repo_commits"
RECOMPUTE_GLOBAL_STATS = f"{TASK_PREFIX}.pipeline.recompute_global_stats"
SYNC_PRIVATE_REPOS = f"{TASK_PREFIX}.private_sync.sync_private_repos"

# Used when GitHub reports a rate limit without a reset time
DEFAULT_RATE_LIMIT_DELAY_SECONDS = 10


def rate_limit_countdown(
    retry_after: Optional[float], default: int = DEFAULT_RATE_LIMIT_DELAY_SECONDS
) -> int:
    """Whole seconds to wait out a rate limit; ``retry_after`` already includes the buffer."""
    if retry_after is None:
        return default
    return max(1, math.ceil(retry_after))


@dataclass
class ScheduledStep:
    task_name: str
    kwargs: Dict[str, Any] = field(default_factory=dict)
    countdown: float = 0

    @classmethod
    def after_ms(cls, task_name: str, delay_ms: int, **kwargs: Any) -> "ScheduledStep":
        return cls(task_name=task_name, kwargs=kwargs, countdown=delay_ms / 1000)


def dispatch(steps: Optional[ScheduledStep] | Iterable[ScheduledStep]) -> List[str]:
    """Send steps to Celery, returning the ids of the queued tasks."""
    from attribution.celery_app import celery_app

    if steps is None:
        return []
    if isinstance(steps, ScheduledStep):
        steps = [steps]

    task_ids = []
    for step in steps:
        result = celery_app.send_task(
            step.task_name,
            kwargs=step.kwargs,
            countdown=step.countdown or None,
        )
        task_ids.append(result.id)
    return task_ids


@dataclass
class StepOutcome:
    """Response payload of an entry point plus the steps it wants scheduled."""

    payload: Dict[str, Any]
    steps: List[ScheduledStep] = field(default_factory=list)

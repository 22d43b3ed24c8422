"""Aggregate-only private repository sync task."""

import logging
from typing import Any, Dict, Optional

from attribution.celery_app import celery_app
from attribution.services.github import GitHubClient
from attribution.services.private_sync_service import PrivateSyncService
from attribution.services.token_cipher import open_token
from attribution.tasks.base import FailureHandler, PipelineTask

logger = logging.getLogger(__name__)


class PrivateSyncTask(PipelineTask):
    """Failures end up on the login's private sync status instead of a repository."""

    abstract = True
    # Rate limits are waited out inline or end the sync
    autoretry_for = ()

    def get_entity_failure_handler(self, kwargs: dict) -> Optional[FailureHandler]:
        github_login = kwargs.get("github_login")
        if not github_login:
            return None

        def updater(error_msg: str) -> None:
            from attribution.repositories.private_sync import PrivateSyncStateRepository

            PrivateSyncStateRepository(self.db).fail(github_login, error_msg)

        return updater


@celery_app.task(
    bind=True,
    base=PrivateSyncTask,
    name="attribution.tasks.private_sync.sync_private_repos",
    queue="processing",
    soft_time_limit=3600,
    time_limit=3900,
)
def sync_private_repos(
    self: PrivateSyncTask, github_login: str, sealed_token: str
) -> Dict[str, Any]:
    """
    Classify the user's private commits in memory and store only aggregates.

    The token is the user's own. It arrives sealed and is never persisted.
    """
    with GitHubClient(open_token(sealed_token)) as client:
        return PrivateSyncService(self.db, client).sync(github_login)

"""
First pipeline step: repository metadata, AI config detection and owner profile.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pymongo.database import Database

from attribution.entities.repo import AiConfig, Repo
from attribution.repositories.profile import ProfileRepository
from attribution.services.ai_config_detection import detect_ai_configs
from attribution.services.github.exceptions import GithubError
from attribution.services.github.github_client import GitHubClient, parse_github_datetime
from attribution.services.github.rate_limiter import RedisRateLimiter
from attribution.services.pipeline.sync_state import SyncStateService, run_kwargs
from attribution.services.scheduling import FETCH_COMMITS_PAGE, ScheduledStep

logger = logging.getLogger(__name__)


class RepoMetadataService:
    def __init__(
        self,
        db: Database,
        client: GitHubClient,
        rate_limiter: RedisRateLimiter,
    ):
        self.sync_state = SyncStateService(db)
        self.repos = self.sync_state.repos
        self.profiles = ProfileRepository(db)
        self.client = client
        self.rate_limiter = rate_limiter

    def fetch(self, repo_id: str, run_id: Optional[str] = None) -> Optional[ScheduledStep]:
        """
        Refresh metadata with a conditional request, then start commit listing.

        Raises GithubError subclasses for rate limits and terminal API
        failures; AI config detection and the profile fetch never raise.
        """
        repo = self.sync_state.get_syncing_repo(repo_id, run_id)
        if repo is None:
            return None

        response = self.client.get_repository(repo.full_name, etag=repo.etag)
        if response.not_modified:
            logger.info(f"{repo.full_name} not modified since last sync")
        else:
            data = response.data
            metadata: Dict[str, Any] = {
                "github_id": data.get("id"),
                "description": data.get("description"),
                "stars": data.get("stargazers_count") or 0,
                "default_branch": data.get("default_branch"),
                "pushed_at": parse_github_datetime(data.get("pushed_at")),
                "etag": response.etag,
            }
            ai_configs = self._detect_ai_configs(repo, metadata["default_branch"])
            if ai_configs is not None:
                metadata["ai_configs"] = [config.model_dump() for config in ai_configs]
            self.repos.update_metadata(repo_id, metadata)
            self._refresh_profile(repo.owner)

        return ScheduledStep(FETCH_COMMITS_PAGE, run_kwargs(repo, repo_id=repo_id, page=1))

    def _detect_ai_configs(self, repo: Repo, default_branch: Optional[str]) -> Optional[List[AiConfig]]:
        """None means detection was skipped and stored configs stay as they are."""
        if not self.rate_limiter.try_acquire():
            logger.info(f"Skipping AI config detection for {repo.full_name}: throttled")
            return None

        try:
            root_items = self.client.get_tree(repo.full_name, default_branch or "HEAD")
        except GithubError as exc:
            logger.warning(f"AI config detection failed for {repo.full_name}: {exc}")
            return None

        def fetch_sub_tree(url: str):
            if not self.rate_limiter.try_acquire():
                return None
            try:
                return self.client.get_tree_by_url(url)
            except GithubError as exc:
                logger.warning(f"Skipping subtree {url} of {repo.full_name}: {exc}")
                return None

        configs = detect_ai_configs(root_items, fetch_sub_tree)
        if configs:
            logger.info(f"Detected {len(configs)} AI configs in {repo.full_name}")
        return configs

    def _refresh_profile(self, owner: str) -> None:
        try:
            user = self.client.get_user(owner)
        except GithubError as exc:
            logger.warning(f"Profile fetch failed for {owner}: {exc}")
            return

        self.profiles.save(
            owner,
            name=user.get("name"),
            avatar_url=user.get("avatar_url"),
            followers=user.get("followers") or 0,
        )

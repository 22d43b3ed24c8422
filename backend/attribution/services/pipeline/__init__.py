"""Per-repository sync pipeline steps."""

from attribution.services.pipeline.commit_fetch import CommitFetchService, build_commit
from attribution.services.pipeline.commit_stats import CommitStatsService
from attribution.services.pipeline.global_stats import GlobalStatsService
from attribution.services.pipeline.pr_reclassification import PrReclassificationService
from attribution.services.pipeline.repo_metadata import RepoMetadataService
from attribution.services.pipeline.repo_stats import RepoStatsService
from attribution.services.pipeline.sync_state import SyncStateService

__all__ = [
    "CommitFetchService",
    "CommitStatsService",
    "GlobalStatsService",
    "PrReclassificationService",
    "RepoMetadataService",
    "RepoStatsService",
    "SyncStateService",
    "build_commit",
]

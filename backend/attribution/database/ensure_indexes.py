"""Database index management for MongoDB collections."""

import logging
from typing import List, Tuple

from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import OperationFailure

logger = logging.getLogger(__name__)


def ensure_indexes(db: Database) -> None:
    """
    Ensure all required indexes exist.

    This function should be called on application startup to guarantee
    that all necessary indexes are in place for optimal query performance
    and data integrity.
    """
    _ensure_repos_indexes(db)
    _ensure_commits_indexes(db)
    _ensure_stats_indexes(db)
    _ensure_misc_indexes(db)
    logger.info("Database indexes ensured successfully")


def _create_index(
    collection: Collection, keys: List[Tuple[str, int]], name: str, unique: bool = False
) -> None:
    try:
        collection.create_index(keys, unique=unique, background=True, name=name)
        logger.debug(f"Created index: {name}")
    except OperationFailure as e:
        # Index may already exist with different options
        if "already exists" not in str(e):
            logger.warning(f"Failed to create {name} index: {e}")


def _ensure_repos_indexes(db: Database) -> None:
    collection = db.repos
    _create_index(collection, [("full_name", 1)], "full_name_unique", unique=True)

    # Owner queue claim: pending repos of one owner, most recently pushed first
    _create_index(
        collection,
        [("owner", 1), ("sync_status", 1), ("pushed_at", -1), ("requested_at", -1)],
        "owner_status_queue_idx",
    )
    _create_index(collection, [("sync_status", 1), ("last_synced_at", 1)], "status_synced_at_idx")


def _ensure_commits_indexes(db: Database) -> None:
    collection = db.commits
    _create_index(collection, [("repo_id", 1), ("sha", 1)], "repo_sha_unique", unique=True)
    _create_index(collection, [("repo_id", 1), ("classification", 1)], "repo_classification_idx")


def _ensure_stats_indexes(db: Database) -> None:
    _create_index(db.weekly_stats, [("repo_id", 1), ("week_start", 1)], "repo_week_idx")
    _create_index(db.daily_stats, [("repo_id", 1), ("date", 1)], "repo_date_idx")
    _create_index(
        db.contributor_stats, [("repo_id", 1), ("commit_count", -1)], "repo_commit_count_idx"
    )
    _create_index(db.global_weekly_stats, [("week_start", 1)], "week_start_idx")
    _create_index(db.global_daily_stats, [("date", 1)], "date_idx")
    _create_index(
        db.private_weekly_stats, [("github_login", 1), ("week_start", 1)], "login_week_idx"
    )
    _create_index(db.private_daily_stats, [("github_login", 1), ("date", 1)], "login_date_idx")


def _ensure_misc_indexes(db: Database) -> None:
    _create_index(db.profiles, [("owner", 1)], "owner_unique", unique=True)
    _create_index(
        db.private_sync_status, [("github_login", 1)], "github_login_unique", unique=True
    )
    _create_index(
        db.rate_limits, [("key", 1), ("action", 1), ("occurred_at", -1)], "key_action_time_idx"
    )
    _create_index(db.rate_limits, [("key", 1), ("action", 1), ("day_key", 1)], "key_action_day_idx")

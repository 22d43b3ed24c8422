"""
Commit Repository - transient commit rows of a repository being synced.
"""

from typing import Any, Dict, Iterable, List, Tuple

from bson import ObjectId
from pymongo import UpdateOne

from attribution.entities.commit import Commit
from attribution.entities.enums import Classification

from .base import BaseRepository


class CommitRepository(BaseRepository[Commit]):
    """Repository for Commit entities, keyed by (repo_id, sha)."""

    def __init__(self, db):
        super().__init__(db, "commits", Commit)

    def upsert_page(self, commits: List[Commit]) -> int:
        """
        Write one fetched page.

        A page that is fetched twice (task retry) overwrites the same rows
        instead of duplicating them.
        """
        if not commits:
            return 0

        operations = []
        for commit in commits:
            doc = commit.to_mongo()
            doc.pop("_id", None)
            created_at = doc.pop("created_at")
            operations.append(
                UpdateOne(
                    {"repo_id": doc["repo_id"], "sha": doc["sha"]},
                    {"$set": doc, "$setOnInsert": {"created_at": created_at}},
                    upsert=True,
                )
            )
        result = self.collection.bulk_write(operations, ordered=False)
        return result.upserted_count + result.matched_count

    def find_by_repo(self, repo_id: str | ObjectId) -> List[Commit]:
        return self.find_many(
            {"repo_id": self._to_object_id(repo_id)}, sort=[("authored_at", 1)]
        )

    def count_for_repo(self, repo_id: str | ObjectId) -> int:
        return self.count({"repo_id": self._to_object_id(repo_id)})

    def apply_line_counts(
        self, repo_id: str | ObjectId, counts: Iterable[Tuple[str, int, int]]
    ) -> int:
        """Patch (sha, additions, deletions) onto stored commits; unknown SHAs are ignored."""
        repo_oid = self._to_object_id(repo_id)
        operations = [
            UpdateOne(
                {"repo_id": repo_oid, "sha": sha},
                {"$set": {"additions": additions, "deletions": deletions}},
            )
            for sha, additions, deletions in counts
        ]
        if not operations:
            return 0
        return self.collection.bulk_write(operations, ordered=False).modified_count

    def find_human_messages(self, repo_id: str | ObjectId) -> List[Dict[str, Any]]:
        """``_id``, ``message`` and ``full_message`` of commits still attributed to humans."""
        return list(
            self.collection.find(
                {
                    "repo_id": self._to_object_id(repo_id),
                    "classification": Classification.HUMAN.value,
                },
                {"message": 1, "full_message": 1},
            )
        )

    def reclassify(self, commit_ids: List[ObjectId], classification: Classification) -> int:
        if not commit_ids:
            return 0
        return self.update_many(
            {"_id": {"$in": commit_ids}}, {"classification": classification.value}
        )

    def delete_batch(self, repo_id: str | ObjectId, batch_size: int) -> int:
        """Delete at most ``batch_size`` commits of the repository."""
        ids = [
            doc["_id"]
            for doc in self.collection.find(
                {"repo_id": self._to_object_id(repo_id)}, {"_id": 1}
            ).limit(batch_size)
        ]
        if not ids:
            return 0
        return self.delete_many({"_id": {"$in": ids}})

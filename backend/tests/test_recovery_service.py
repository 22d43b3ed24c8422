"""Tests for stuck-repo recovery, stale resync, backfill and admin resync."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from bson import ObjectId

NOW = datetime(2025, 5, 10, 12, 0, tzinfo=timezone.utc)


def make_repo(name, owner="octo", status="synced", **fields):
    from attribution.entities.repo import Repo

    return Repo(
        id=ObjectId(),
        owner=owner,
        name=name,
        full_name=f"{owner}/{name}",
        sync_status=status,
        **fields,
    )


def make_service():
    from attribution.services.recovery_service import RecoveryService

    service = RecoveryService(MagicMock())
    service.repos = MagicMock()
    return service


class TestRecoverStuckRepos:
    def test_resets_stuck_and_rekicks_orphans_staggered(self):
        from attribution.services.scheduling import START_OWNER_QUEUE

        service = make_service()
        stuck = make_repo("stuck", status="syncing", sync_stage="enriching_loc")
        service.repos.find_stuck.return_value = [stuck]
        service.repos.find_orphaned_owners.return_value = ["octo", "acme"]

        report = service.recover_stuck_repos(now=NOW)

        service.repos.reset_to_pending.assert_called_once_with(stuck.id)
        assert report.reset_stuck == ["octo/stuck"]
        assert report.rekicked_owners == ["octo", "acme"]
        assert [(s.task_name, s.kwargs, s.countdown) for s in report.steps] == [
            (START_OWNER_QUEUE, {"owner": "octo"}, 0),
            (START_OWNER_QUEUE, {"owner": "acme"}, 5),
        ]

    def test_cutoff_uses_threshold(self):
        service = make_service()
        service.repos.find_stuck.return_value = []
        service.repos.find_orphaned_owners.return_value = []

        service.recover_stuck_repos(now=NOW)

        cutoff = service.repos.find_stuck.call_args.args[0]
        assert cutoff == datetime(2025, 5, 10, 11, 45, tzinfo=timezone.utc)

    def test_orphans_are_looked_up_after_resets(self):
        service = make_service()
        calls = []
        service.repos.find_stuck.return_value = [make_repo("stuck", status="syncing")]
        service.repos.reset_to_pending.side_effect = lambda _id: calls.append("reset")
        service.repos.find_orphaned_owners.side_effect = lambda limit: calls.append("orphans") or []

        service.recover_stuck_repos(now=NOW)

        assert calls == ["reset", "orphans"]


class TestResyncStaleRepos:
    def test_precheck_outcomes(self):
        from attribution.services.github.exceptions import GithubApiError, GithubRateLimitError
        from attribution.services.github.github_client import RepositoryResponse

        service = make_service()
        unchanged = make_repo("unchanged", etag='"e1"')
        moved = make_repo("moved", pushed_at=datetime(2025, 2, 1, tzinfo=timezone.utc))
        broken = make_repo("broken")
        limited = make_repo("limited")
        never_checked = make_repo("later")
        service.repos.find_stale.return_value = [unchanged, moved, broken, limited, never_checked]

        client = MagicMock()
        client.get_repository.side_effect = [
            RepositoryResponse(not_modified=True, etag='"e1"'),
            RepositoryResponse(not_modified=False, data={"pushed_at": "2025-03-01T00:00:00Z"}),
            GithubApiError("boom", 500),
            GithubRateLimitError("limited", retry_after=60),
        ]

        report = service.resync_stale_repos(client, now=NOW)

        assert report.checked == 4
        assert report.unchanged == 1
        assert report.resynced == ["octo/moved"]
        assert report.failed == 1
        service.repos.touch_synced.assert_called_once_with(unchanged.id)
        service.repos.reset_to_pending.assert_called_once_with(moved.id)
        assert client.get_repository.call_args_list[0].kwargs == {"etag": '"e1"'}
        assert [s.kwargs for s in report.steps] == [{"owner": "octo"}]

    def test_same_push_counts_as_unchanged(self):
        from attribution.services.github.github_client import RepositoryResponse

        service = make_service()
        repo = make_repo("same", pushed_at=datetime(2025, 3, 1, tzinfo=timezone.utc))
        service.repos.find_stale.return_value = [repo]
        client = MagicMock()
        client.get_repository.return_value = RepositoryResponse(
            not_modified=False, data={"pushed_at": "2025-03-01T00:00:00Z"}
        )

        report = service.resync_stale_repos(client, now=NOW)

        assert report.unchanged == 1
        assert report.steps == []


class TestBackfill:
    def test_dedupes_and_staggers(self):
        service = make_service()
        a, b, c = make_repo("a"), make_repo("b"), make_repo("c", owner="acme")
        service.repos.find_with_only_unspecified_tools.return_value = [a, b]
        service.repos.find_without_breakdown.return_value = [b, c]

        report = service.resync_affected_repos(max_repos=2)

        assert report.total_candidates == 3
        assert report.repos == ["octo/a", "octo/b"]
        assert report.scheduled == 2
        assert report.estimated_minutes == 1
        assert [s.countdown for s in report.steps] == [0, 10]
        assert service.repos.reset_to_pending.call_count == 2
        assert report.to_dict()["unspecified_count"] == 2

    def test_dry_run_changes_nothing(self):
        service = make_service()
        service.repos.find_with_only_unspecified_tools.return_value = [make_repo("a")]
        service.repos.find_without_breakdown.return_value = []

        report = service.resync_affected_repos(dry_run=True)

        assert report.scheduled == 0
        assert report.repos == ["octo/a"]
        assert report.steps == []
        service.repos.reset_to_pending.assert_not_called()

    def test_only_unspecified_skips_missing_breakdowns(self):
        service = make_service()
        service.repos.find_with_only_unspecified_tools.return_value = []

        report = service.resync_affected_repos(only_unspecified=True)

        assert report.missing_breakdown_count == 0
        service.repos.find_without_breakdown.assert_not_called()


class TestAdminResyncOwner:
    def test_resets_idle_repos_and_kicks(self):
        service = make_service()
        service.repos.find_by_owner.return_value = [
            make_repo("a"),
            make_repo("b", status="error"),
            make_repo("c", status="pending"),
        ]

        outcome = service.admin_resync_owner("octo")

        assert outcome.payload["reset_count"] == 2
        assert outcome.payload["already_pending"] == 1
        assert outcome.payload["kicked"] is True
        assert [s.kwargs for s in outcome.steps] == [{"owner": "octo"}]

    def test_no_kick_while_a_repo_is_syncing(self):
        service = make_service()
        service.repos.find_by_owner.return_value = [make_repo("a"), make_repo("b", status="syncing")]

        outcome = service.admin_resync_owner("octo")

        assert outcome.payload["reset_count"] == 1
        assert outcome.payload["syncing"] == 1
        assert outcome.steps == []

    def test_unknown_owner(self):
        service = make_service()
        service.repos.find_by_owner.return_value = []

        outcome = service.admin_resync_owner("nobody")

        assert outcome.payload["total_repos"] == 0
        assert outcome.steps == []


class TestCleanupRateLimits:
    @patch("attribution.services.recovery_service.RateLimitRepository")
    def test_deletes_records_past_retention(self, mock_repository):
        mock_repository.return_value.delete_older_than.return_value = 12
        service = make_service()

        assert service.cleanup_rate_limits(now=NOW) == 12
        mock_repository.return_value.delete_older_than.assert_called_once_with(
            datetime(2025, 5, 3, 12, 0, tzinfo=timezone.utc)
        )

"""Tests for the per-repository sync pipeline steps."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, call, patch

import pytest
from bson import ObjectId


def make_repo(name="demo", owner="octo", status="syncing", **fields):
    from attribution.entities.repo import Repo

    return Repo(
        id=ObjectId(),
        owner=owner,
        name=name,
        full_name=f"{owner}/{name}",
        sync_status=status,
        **fields,
    )


def commit_payload(i):
    return {
        "sha": f"sha{i}",
        "author": {"login": "jane", "id": 1, "type": "User"},
        "commit": {
            "message": f"Change {i}",
            "author": {"name": "Jane", "email": "jane@example.com", "date": "2025-01-02T10:00:00Z"},
            "committer": {"name": "Jane", "email": "jane@example.com", "date": "2025-01-02T10:05:00Z"},
        },
    }


def stored_commit(classification, additions=0):
    from attribution.entities.commit import Commit

    moment = datetime(2025, 1, 2, tzinfo=timezone.utc)
    return Commit(
        repo_id=ObjectId(),
        sha=f"sha-{classification}",
        authored_at=moment,
        committed_at=moment,
        classification=classification,
        additions=additions,
        author_login="jane",
    )


def commit_page(count, has_next, remaining=4000):
    from attribution.services.github.github_client import CommitPage, RateLimitInfo

    return CommitPage(
        commits=[commit_payload(i) for i in range(count)],
        has_next=has_next,
        rate_limit=RateLimitInfo(remaining=remaining),
    )


class TestBuildCommit:
    def test_maps_and_classifies(self):
        from attribution.services.pipeline import build_commit

        payload = commit_payload(1)
        payload["commit"]["message"] = "Add cache\n\nCo-Authored-By: Claude <noreply@anthropic.com>"
        repo_id = ObjectId()

        row = build_commit(repo_id, payload)

        assert row.repo_id == repo_id
        assert row.message == "Add cache"
        assert row.classification == "claude"
        assert row.co_authors == ["Claude <noreply@anthropic.com>"]
        assert row.authored_at == datetime(2025, 1, 2, 10, tzinfo=timezone.utc)
        assert row.additions is None


class TestCommitFetch:
    def _service(self, repo, pages):
        from attribution.services.pipeline import CommitFetchService

        client = MagicMock()
        client.list_commits.side_effect = pages
        service = CommitFetchService(MagicMock(), client)
        service.sync_state = MagicMock()
        service.sync_state.get_syncing_repo.return_value = repo
        service.commits = MagicMock()
        return service, client

    def test_pages_until_short_page_then_enriches(self):
        from attribution.entities.enums import SyncStage
        from attribution.services.scheduling import ENRICH_COMMIT_STATS, FETCH_COMMITS_PAGE

        repo = make_repo()
        service, client = self._service(
            repo, [commit_page(100, True), commit_page(100, True), commit_page(50, False)]
        )

        step = service.fetch_page(str(repo.id), 1)
        while step.task_name == FETCH_COMMITS_PAGE:
            step = service.fetch_page(**step.kwargs)

        assert client.list_commits.call_count == 3
        assert step.task_name == ENRICH_COMMIT_STATS
        assert step.kwargs == {"repo_id": str(repo.id), "total_commits": 250}
        windows = {listing.args[1] for listing in client.list_commits.call_args_list}
        assert len(windows) == 1
        service.sync_state.set_stage.assert_called_with(str(repo.id), SyncStage.ENRICHING_LOC)
        service.sync_state.repos.set_commits_fetched.assert_called_with(str(repo.id), 250)

    def test_next_page_is_delayed_by_quota(self):
        repo = make_repo()
        service, _ = self._service(repo, [commit_page(100, True, remaining=20)])

        step = service.fetch_page(str(repo.id), 1)

        assert step.kwargs["page"] == 2
        assert step.countdown == 0.5

    def test_empty_history(self):
        from attribution.services.scheduling import ENRICH_COMMIT_STATS

        repo = make_repo()
        service, _ = self._service(repo, [commit_page(0, False)])

        step = service.fetch_page(str(repo.id), 1)

        assert step.task_name == ENRICH_COMMIT_STATS
        assert step.kwargs["total_commits"] == 0
        service.commits.upsert_page.assert_not_called()

    def test_stale_step_does_nothing(self):
        repo = make_repo()
        service, client = self._service(repo, [])
        service.sync_state.get_syncing_repo.return_value = None

        assert service.fetch_page(str(repo.id), 1) is None
        client.list_commits.assert_not_called()


class TestCommitStatsEnrichment:
    def _service(self, client):
        from attribution.services.pipeline import CommitStatsService

        repo = make_repo()
        service = CommitStatsService(MagicMock(), client)
        service.sync_state = MagicMock()
        service.sync_state.get_syncing_repo.return_value = repo
        service.commits = MagicMock()
        return service, repo

    def test_server_error_moves_on_to_pr_reclassification(self):
        from attribution.entities.enums import SyncStage
        from attribution.services.github.exceptions import GithubApiError
        from attribution.services.scheduling import RECLASSIFY_PRS

        client = MagicMock()
        client.get_commit_stats_page.side_effect = GithubApiError("GitHub API returned 502", 502)
        service, repo = self._service(client)

        step = service.enrich(str(repo.id), total_commits=250)

        assert step.task_name == RECLASSIFY_PRS
        assert step.kwargs == {"repo_id": str(repo.id), "total_commits": 250}
        service.sync_state.set_stage.assert_called_once_with(str(repo.id), SyncStage.CLASSIFYING_PRS)

    def test_without_token_skips_enrichment(self):
        from attribution.services.scheduling import RECLASSIFY_PRS

        service, repo = self._service(None)

        assert service.enrich(str(repo.id), total_commits=3).task_name == RECLASSIFY_PRS

    def test_applies_counts_and_continues_with_cursor(self):
        from attribution.services.github.github_client import CommitStatsPage
        from attribution.services.scheduling import ENRICH_COMMIT_STATS

        client = MagicMock()
        client.get_commit_stats_page.return_value = CommitStatsPage(
            nodes=[{"oid": "a", "additions": 4, "deletions": None}],
            has_next=True,
            end_cursor="c1",
            remaining=4000,
            reset_at=None,
        )
        service, repo = self._service(client)

        step = service.enrich(str(repo.id), total_commits=10, cursor="c0")

        assert step.task_name == ENRICH_COMMIT_STATS
        assert step.kwargs["cursor"] == "c1"
        assert step.countdown == 0.1
        repo_id, counts = service.commits.apply_line_counts.call_args.args
        assert list(counts) == [("a", 4, 0)]

    def test_low_quota_waits_for_reset(self):
        from attribution.services.github.github_client import CommitStatsPage

        client = MagicMock()
        client.get_commit_stats_page.return_value = CommitStatsPage(
            nodes=[{"oid": "a", "additions": 1, "deletions": 1}],
            has_next=True,
            end_cursor="c1",
            remaining=3,
            reset_at=datetime.now(timezone.utc) + timedelta(seconds=20),
        )
        service, repo = self._service(client)

        step = service.enrich(str(repo.id), total_commits=10)

        assert 19 <= step.countdown <= 21


class TestOwnerQueue:
    """At most one repository per owner syncs; completions advance the chain."""

    def _service(self):
        from attribution.services.pipeline import SyncStateService

        service = SyncStateService(MagicMock())
        service.repos = MagicMock()
        return service

    @patch("attribution.services.pipeline.sync_state.RedisLock")
    def test_claims_next_pending_under_owner_lock(self, mock_lock):
        from attribution.services.scheduling import FETCH_REPO_METADATA

        service = self._service()
        repo_a = make_repo("a")
        service.repos.claim_next_pending.return_value = repo_a

        step = service.start_owner_queue("Octo")

        assert step.task_name == FETCH_REPO_METADATA
        assert step.kwargs == {"repo_id": str(repo_a.id)}
        mock_lock.assert_called_once_with("owner-queue:octo")

    @patch("attribution.services.pipeline.sync_state.RedisLock")
    def test_second_repo_starts_when_first_completes(self, mock_lock):
        from attribution.services.scheduling import FETCH_REPO_METADATA

        service = self._service()
        repo_a, repo_b = make_repo("a"), make_repo("b", status="pending")
        service.repos.claim_next_pending.side_effect = [repo_a, None, repo_b]
        service.repos.find_by_id.return_value = repo_a
        service.repos.has_syncing.return_value = True

        first = service.start_owner_queue("octo")
        # B was requested while A is syncing
        second = service.start_owner_queue("octo")
        after_a = service.mark_synced(str(repo_a.id), total_commits=42)

        assert first.kwargs["repo_id"] == str(repo_a.id)
        assert second is None
        assert [s.task_name for s in after_a] == [FETCH_REPO_METADATA]
        assert after_a[0].kwargs["repo_id"] == str(repo_b.id)
        service.repos.mark_synced.assert_called_once_with(str(repo_a.id), 42)

    @patch("attribution.services.pipeline.sync_state.RedisLock")
    def test_drained_queue_refreshes_global_stats(self, mock_lock):
        from attribution.services.scheduling import RECOMPUTE_GLOBAL_STATS

        service = self._service()
        service.repos.find_by_id.return_value = make_repo()
        service.repos.claim_next_pending.return_value = None
        service.repos.has_pending.return_value = False
        service.repos.has_syncing.return_value = False

        steps = service.mark_error("id", "GitHub API returned 403")

        assert [s.task_name for s in steps] == [RECOMPUTE_GLOBAL_STATS]
        service.repos.mark_error.assert_called_once_with("id", "GitHub API returned 403")

    @patch("attribution.services.pipeline.sync_state.RedisLock")
    def test_no_rollup_while_owner_still_busy(self, mock_lock):
        service = self._service()
        service.repos.find_by_id.return_value = make_repo()
        service.repos.claim_next_pending.return_value = None
        service.repos.has_pending.return_value = False
        service.repos.has_syncing.return_value = True

        assert service.mark_synced("id", 1) == []

    def test_stale_steps_are_dropped(self):
        service = self._service()
        service.repos.find_by_id.return_value = make_repo(status="synced")

        assert service.get_syncing_repo("id") is None

    def test_step_of_an_earlier_run_is_dropped_after_reclaim(self):
        service = self._service()
        # Reset as stuck and claimed again while the old run's step waited
        service.repos.find_by_id.return_value = make_repo(sync_run_id="run-2")

        assert service.get_syncing_repo("id", run_id="run-1") is None
        service.repos.touch_progress.assert_not_called()

    def test_step_of_the_current_run_records_progress(self):
        repo = make_repo(sync_run_id="run-2")
        service = self._service()
        service.repos.find_by_id.return_value = repo

        assert service.get_syncing_repo("id", run_id="run-2") is repo
        service.repos.touch_progress.assert_called_once_with(repo.id)

    def test_failure_of_an_earlier_run_is_ignored(self):
        service = self._service()
        service.repos.find_by_id.return_value = make_repo(sync_run_id="run-2")

        assert service.mark_error("id", "Not Found", run_id="run-1") == []
        service.repos.mark_error.assert_not_called()

    @patch("attribution.services.pipeline.sync_state.RedisLock")
    def test_first_step_carries_the_run_id(self, mock_lock):
        service = self._service()
        repo = make_repo(sync_run_id="run-1")
        service.repos.claim_next_pending.return_value = repo

        step = service.start_owner_queue("octo")

        assert step.kwargs == {"repo_id": str(repo.id), "run_id": "run-1"}

    def test_park_records_resume_time(self):
        service = self._service()
        service.repos.find_by_id.return_value = make_repo(sync_run_id="run-1")
        before = datetime.now(timezone.utc)

        service.park("id", 3600, run_id="run-1")

        resume_at = service.repos.park.call_args.args[1]
        assert service.repos.park.call_args.args[0] == "id"
        assert resume_at >= before + timedelta(seconds=3600)

    def test_park_ignores_earlier_run(self):
        service = self._service()
        service.repos.find_by_id.return_value = make_repo(sync_run_id="run-2")

        service.park("id", 60, run_id="run-1")

        service.repos.park.assert_not_called()

    def test_claim_stamps_a_fresh_run_id(self):
        from attribution.repositories.repo import RepoRepository

        db = MagicMock()
        repos = RepoRepository(db)
        repos.collection.count_documents.return_value = 0
        repos.collection.find_one_and_update.return_value = None

        repos.claim_next_pending("octo")
        repos.claim_next_pending("octo")

        first, second = [
            claim.args[1]["$set"] for claim in repos.collection.find_one_and_update.call_args_list
        ]
        assert first["sync_run_id"] and second["sync_run_id"]
        assert first["sync_run_id"] != second["sync_run_id"]
        assert first["sync_resume_at"] is None

    def test_stuck_detection_uses_last_progress(self):
        from attribution.repositories.repo import RepoRepository

        db = MagicMock()
        repos = RepoRepository(db)
        repos.collection.find.return_value = []
        cutoff = datetime(2025, 1, 2, tzinfo=timezone.utc)

        repos.find_stuck(cutoff)

        query = repos.collection.find.call_args.args[0]
        assert query["sync_status"] == "syncing"
        assert query["updated_at"] == {"$lt": cutoff}
        assert {"sync_resume_at": {"$lt": cutoff}} in query["$or"]
        assert "sync_started_at" not in query

    def test_claim_skips_owner_with_syncing_repo(self):
        from attribution.repositories.repo import RepoRepository

        db = MagicMock()
        repos = RepoRepository(db)
        repos.collection.count_documents.return_value = 1

        assert repos.claim_next_pending("octo") is None
        repos.collection.find_one_and_update.assert_not_called()

    def test_claim_orders_by_most_recent_push(self):
        from attribution.repositories.repo import QUEUE_ORDER, RepoRepository

        db = MagicMock()
        repos = RepoRepository(db)
        repos.collection.count_documents.return_value = 0
        repos.collection.find_one_and_update.return_value = None

        repos.claim_next_pending("octo")

        kwargs = repos.collection.find_one_and_update.call_args.kwargs
        assert kwargs["sort"] == QUEUE_ORDER == [("pushed_at", -1), ("requested_at", -1)]


class TestRepoMetadata:
    def _service(self, response, acquire=True):
        from attribution.services.pipeline import RepoMetadataService

        client = MagicMock()
        client.get_repository.return_value = response
        client.get_user.return_value = {"name": "Octo", "avatar_url": "a.png", "followers": 3}
        limiter = MagicMock()
        limiter.try_acquire.return_value = acquire
        service = RepoMetadataService(MagicMock(), client, limiter)
        service.sync_state = MagicMock()
        service.sync_state.get_syncing_repo.return_value = make_repo(etag='"v1"')
        service.repos = MagicMock()
        service.profiles = MagicMock()
        return service, client

    def test_not_modified_skips_updates(self):
        from attribution.services.github.github_client import RepositoryResponse
        from attribution.services.scheduling import FETCH_COMMITS_PAGE

        service, client = self._service(RepositoryResponse(not_modified=True, etag='"v1"'))

        step = service.fetch("id")

        assert step.task_name == FETCH_COMMITS_PAGE
        assert step.kwargs == {"repo_id": "id", "page": 1}
        client.get_repository.assert_called_once_with("octo/demo", etag='"v1"')
        service.repos.update_metadata.assert_not_called()

    def test_throttled_detection_keeps_stored_configs(self):
        from attribution.services.github.github_client import RepositoryResponse

        response = RepositoryResponse(
            not_modified=False,
            data={"id": 9, "stargazers_count": 12, "default_branch": "main", "pushed_at": None},
            etag='"v2"',
        )
        service, client = self._service(response, acquire=False)

        service.fetch("id")

        metadata = service.repos.update_metadata.call_args.args[1]
        assert metadata["stars"] == 12
        assert metadata["etag"] == '"v2"'
        assert "ai_configs" not in metadata
        client.get_tree.assert_not_called()
        service.profiles.save.assert_called_once_with("octo", name="Octo", avatar_url="a.png", followers=3)

    def test_profile_failure_is_not_fatal(self):
        from attribution.services.github.exceptions import GithubApiError
        from attribution.services.github.github_client import RepositoryResponse
        from attribution.services.scheduling import FETCH_COMMITS_PAGE

        response = RepositoryResponse(not_modified=False, data={"id": 9}, etag=None)
        service, client = self._service(response)
        client.get_tree.return_value = []
        client.get_user.side_effect = GithubApiError("boom", 500)

        assert service.fetch("id").task_name == FETCH_COMMITS_PAGE
        assert service.repos.update_metadata.call_args.args[1]["ai_configs"] == []


class TestPrReclassification:
    def _service(self, client, docs):
        from attribution.services.pipeline import PrReclassificationService

        service = PrReclassificationService(MagicMock(), client)
        service.sync_state = MagicMock()
        service.sync_state.get_syncing_repo.return_value = make_repo()
        service.commits = MagicMock()
        service.commits.find_human_messages.return_value = docs
        service.commits.reclassify.return_value = 1
        return service

    def test_reclassifies_commits_of_agent_prs(self):
        from attribution.entities.enums import Classification
        from attribution.services.github.exceptions import GithubApiError
        from attribution.services.scheduling import COMPUTE_REPO_STATS

        first, second, third = ObjectId(), ObjectId(), ObjectId()
        docs = [
            {"_id": first, "message": "Add search (#5)"},
            {"_id": second, "full_message": "Merge pull request #6 from octo/x\n\nBody"},
            {"_id": third, "message": "Plain commit"},
        ]
        prs = {5: {"user": {"login": "devin-ai-integration[bot]", "type": "Bot"}}}

        def get_pull_request(full_name, number):
            if number == 6:
                raise GithubApiError("boom", 500)
            return prs[number]

        client = MagicMock()
        client.get_pull_request.side_effect = get_pull_request
        service = self._service(client, docs)

        step = service.reclassify("id", total_commits=3)

        assert step.task_name == COMPUTE_REPO_STATS
        service.commits.reclassify.assert_called_once_with([first], Classification.DEVIN)

    def test_rate_limit_propagates(self):
        from attribution.services.github.exceptions import GithubRateLimitError

        client = MagicMock()
        client.get_pull_request.side_effect = GithubRateLimitError("limited", retry_after=30)
        service = self._service(client, [{"_id": ObjectId(), "message": "Fix (#1)"}])

        with pytest.raises(GithubRateLimitError):
            service.reclassify("id", total_commits=1)

    def test_rate_limit_keeps_prs_already_written(self):
        from attribution.entities.enums import Classification
        from attribution.services.github.exceptions import GithubRateLimitError
        from attribution.services.scheduling import RECLASSIFY_PRS

        one, two, three = ObjectId(), ObjectId(), ObjectId()
        docs = [
            {"_id": three, "message": "Tests (#3)"},
            {"_id": one, "message": "Search (#1)"},
            {"_id": two, "message": "Cache (#2)"},
        ]
        agent_pr = {"user": {"login": "devin-ai-integration[bot]", "type": "Bot"}}

        def get_pull_request(full_name, number):
            if number == 3:
                raise GithubRateLimitError("limited", retry_after=42.5)
            return agent_pr

        client = MagicMock()
        client.get_pull_request.side_effect = get_pull_request
        service = self._service(client, docs)

        step = service.reclassify("id", total_commits=3)

        assert service.commits.reclassify.call_args_list == [
            call([one], Classification.DEVIN),
            call([two], Classification.DEVIN),
        ]
        assert step.task_name == RECLASSIFY_PRS
        assert step.kwargs == {"repo_id": "id", "total_commits": 3, "after_pr": 2}
        assert step.countdown == 43
        service.sync_state.park.assert_called_once_with("id", 43, None)

    def test_resume_skips_prs_already_checked(self):
        from attribution.services.scheduling import COMPUTE_REPO_STATS

        docs = [
            {"_id": ObjectId(), "message": "Search (#1)"},
            {"_id": ObjectId(), "message": "Cache (#2)"},
            {"_id": ObjectId(), "message": "Tests (#3)"},
        ]
        client = MagicMock()
        client.get_pull_request.return_value = {"user": {"login": "jane", "type": "User"}}
        service = self._service(client, docs)

        step = service.reclassify("id", total_commits=3, after_pr=2)

        assert step.task_name == COMPUTE_REPO_STATS
        client.get_pull_request.assert_called_once_with("octo/demo", 3)

    def test_resume_step_keeps_the_run(self):
        from attribution.services.github.exceptions import GithubRateLimitError

        docs = [
            {"_id": ObjectId(), "message": "Search (#1)"},
            {"_id": ObjectId(), "message": "Cache (#2)"},
        ]
        client = MagicMock()
        client.get_pull_request.side_effect = [
            {"user": {"login": "jane", "type": "User"}},
            GithubRateLimitError("limited"),
        ]
        service = self._service(client, docs)
        service.sync_state.get_syncing_repo.return_value = make_repo(sync_run_id="run-1")

        step = service.reclassify("id", total_commits=2, run_id="run-1")

        assert step.kwargs["run_id"] == "run-1"
        assert step.kwargs["after_pr"] == 1
        assert step.countdown == 10

    def test_skip_remaining_moves_on_to_stats(self):
        from attribution.services.scheduling import COMPUTE_REPO_STATS

        service = self._service(MagicMock(), [])

        step = service.skip_remaining("id", 7)

        assert step.task_name == COMPUTE_REPO_STATS
        assert step.kwargs == {"repo_id": "id", "total_commits": 7}


class TestRepoStatsFinalization:
    def _service(self):
        from attribution.services.pipeline import RepoStatsService

        service = RepoStatsService(MagicMock())
        service.sync_state = MagicMock()
        service.sync_state.get_syncing_repo.return_value = make_repo()
        service.commits = MagicMock()
        return service

    def test_full_batch_reschedules_deletion(self):
        from attribution.services.scheduling import DELETE_REPO_COMMITS

        service = self._service()
        service.commits.delete_batch.return_value = 500

        steps = service.delete_commits("id", 1200)

        assert [s.task_name for s in steps] == [DELETE_REPO_COMMITS]
        service.sync_state.mark_synced.assert_not_called()

    def test_short_batch_marks_synced(self):
        service = self._service()
        service.commits.delete_batch.return_value = 200
        service.sync_state.mark_synced.return_value = ["next"]

        assert service.delete_commits("id", 1200) == ["next"]
        service.sync_state.mark_synced.assert_called_once_with("id", 1200)

    @patch("attribution.services.pipeline.repo_stats.get_transaction")
    def test_compute_replaces_aggregates_and_breakdowns(self, mock_transaction):
        from attribution.services.scheduling import DELETE_REPO_COMMITS

        service = self._service()
        service.weekly = MagicMock()
        service.daily = MagicMock()
        service.contributors = MagicMock()
        service.commits.find_by_repo.return_value = [
            stored_commit("human", additions=3),
            stored_commit("copilot", additions=7),
        ]

        step = service.compute("id", 2)

        assert step.task_name == DELETE_REPO_COMMITS
        weekly_rows = service.weekly.replace.call_args.args[0]
        assert sum(row.total for row in weekly_rows) == 2
        tools, bots = service.sync_state.repos.save_breakdowns.call_args.args[1:]
        assert [t.key for t in tools] == ["github-copilot"]
        assert bots == []

"""Tests for the public and privileged analysis entry points."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from bson import ObjectId

API_KEY = "secret"


def make_repo(name, owner="octo", status="synced"):
    from attribution.entities.repo import Repo

    return Repo(id=ObjectId(), owner=owner, name=name, full_name=f"{owner}/{name}", sync_status=status)


@pytest.fixture
def service():
    from attribution.config import settings
    from attribution.services.analysis_service import AnalysisService

    with patch.object(settings, "ANALYZE_API_KEY", API_KEY):
        svc = AnalysisService(MagicMock())
        svc.repos = MagicMock()
        svc.throttle = MagicMock()
        yield svc


class TestRequestRepo:
    def test_known_repo_is_returned_as_is(self, service):
        repo = make_repo("demo")
        service.repos.find_by_full_name.return_value = repo

        outcome = service.request_repo("octo", "demo", "hash")

        assert outcome.payload == {"repo_id": str(repo.id), "status": "synced", "existing": True}
        assert outcome.steps == []
        service.throttle.check_daily_quota.assert_not_called()

    def test_new_repo_is_queued_and_owner_kicked(self, service):
        from attribution.services.scheduling import START_OWNER_QUEUE

        service.repos.find_by_full_name.return_value = None
        service.repos.upsert_pending.return_value = make_repo("demo", status="pending")
        pushed_at = datetime(2025, 1, 1, tzinfo=timezone.utc)

        outcome = service.request_repo("octo", "demo", "hash", pushed_at)

        assert outcome.payload["status"] == "pending"
        assert outcome.payload["existing"] is False
        assert [(s.task_name, s.kwargs) for s in outcome.steps] == [(START_OWNER_QUEUE, {"owner": "octo"})]
        service.repos.upsert_pending.assert_called_once_with("octo", "demo", pushed_at)
        service.throttle.check_daily_quota.assert_called_once_with("ip:hash", "request_repo", 5)

    def test_daily_quota_exhausted(self, service):
        from attribution.services.errors import ThrottledError

        service.repos.find_by_full_name.return_value = None
        service.throttle.check_daily_quota.side_effect = ThrottledError(
            "Daily request limit reached", reason="daily_cap", retry_after_seconds=300
        )

        outcome = service.request_repo("octo", "demo", "hash")

        assert outcome.payload["status"] == "rate_limited"
        assert outcome.payload["retry_after_seconds"] == 300
        assert outcome.steps == []
        service.repos.upsert_pending.assert_not_called()


class TestRequestUserAnalysis:
    def test_requires_api_key(self, service):
        from attribution.services.analysis_service import RepoRef
        from attribution.services.errors import UnauthorizedError

        with pytest.raises(UnauthorizedError):
            service.request_user_analysis([RepoRef("octo", "a")], "wrong")

    def test_batch_is_capped(self, service):
        from attribution.services.analysis_service import RepoRef

        service.repos.find_by_full_name.return_value = None
        refs = [RepoRef("octo", f"repo{i}") for i in range(25)]

        outcome = service.request_user_analysis(refs, API_KEY)

        assert outcome.payload == {"requested": 20, "queued": 20, "truncated": True}
        assert service.repos.upsert_pending.call_count == 20
        assert len(outcome.steps) == 1

    def test_every_owner_in_the_batch_is_kicked(self, service):
        from attribution.services.analysis_service import RepoRef
        from attribution.services.scheduling import START_OWNER_QUEUE

        service.repos.find_by_full_name.return_value = None
        refs = [RepoRef("octo", "a"), RepoRef("acme", "b"), RepoRef("octo", "c")]

        outcome = service.request_user_analysis(refs, API_KEY)

        assert [s.task_name for s in outcome.steps] == [START_OWNER_QUEUE] * 2
        assert [s.kwargs for s in outcome.steps] == [{"owner": "octo"}, {"owner": "acme"}]

    def test_existing_repos_keep_their_state(self, service):
        from attribution.services.analysis_service import RepoRef

        synced, errored = make_repo("a"), make_repo("b", status="error")
        service.repos.find_by_full_name.side_effect = [synced, errored]
        pushed_at = datetime(2025, 4, 1, tzinfo=timezone.utc)

        outcome = service.request_user_analysis(
            [RepoRef("octo", "a", pushed_at), RepoRef("octo", "b")], API_KEY
        )

        assert outcome.payload["queued"] == 1
        service.repos.update_metadata.assert_called_once_with(synced.id, {"pushed_at": pushed_at})
        service.repos.upsert_pending.assert_called_once_with("octo", "b", None)


class TestResyncRepo:
    def test_untracked_repo(self, service):
        from attribution.services.errors import NotFoundError

        service.repos.find_by_full_name.return_value = None

        with pytest.raises(NotFoundError):
            service.resync_repo("octo", "demo", "hash", API_KEY)

    @pytest.mark.parametrize("status", ["pending", "syncing"])
    def test_in_flight_repo(self, service, status):
        from attribution.services.errors import AlreadyInProgressError

        service.repos.find_by_full_name.return_value = make_repo("demo", status=status)

        with pytest.raises(AlreadyInProgressError):
            service.resync_repo("octo", "demo", "hash", API_KEY)
        service.throttle.check_and_record.assert_not_called()

    def test_resets_and_kicks(self, service):
        repo = make_repo("demo")
        service.repos.find_by_full_name.return_value = repo

        outcome = service.resync_repo("octo", "demo", "hash", API_KEY)

        assert outcome.payload == {"repo_id": str(repo.id), "status": "pending"}
        service.throttle.check_and_record.assert_called_once_with("octo/demo:hash", "resync_repo")
        service.repos.reset_to_pending.assert_called_once_with(repo.id)

    def test_throttled(self, service):
        from attribution.services.errors import ThrottledError

        service.repos.find_by_full_name.return_value = make_repo("demo")
        service.throttle.check_and_record.side_effect = ThrottledError(
            "cooldown", reason="cooldown", retry_after_seconds=60
        )

        with pytest.raises(ThrottledError):
            service.resync_repo("octo", "demo", "hash", API_KEY)
        service.repos.reset_to_pending.assert_not_called()


class TestResyncUser:
    def test_skips_in_flight_repos(self, service):
        service.repos.find_by_owner.return_value = [
            make_repo("a"),
            make_repo("b", status="error"),
            make_repo("c", status="syncing"),
        ]

        outcome = service.resync_user("octo", "hash", API_KEY)

        assert outcome.payload == {"owner": "octo", "reset_count": 2, "total_repos": 3}
        service.throttle.check_and_record.assert_called_once_with("octo:hash", "resync_user")
        assert len(outcome.steps) == 1


class TestRequestPrivateSync:
    def test_only_a_sealed_token_travels_in_the_step(self, service):
        from attribution.services.scheduling import SYNC_PRIVATE_REPOS
        from attribution.services.token_cipher import open_token

        outcome = service.request_private_sync("jane", " gho_token ", API_KEY)

        assert outcome.payload == {"github_login": "jane", "status": "queued"}
        step = outcome.steps[0]
        assert step.task_name == SYNC_PRIVATE_REPOS
        assert set(step.kwargs) == {"github_login", "sealed_token"}
        assert "gho_token" not in step.kwargs["sealed_token"]
        assert open_token(step.kwargs["sealed_token"]) == "gho_token"

    def test_blank_token(self, service):
        from attribution.services.errors import UnauthorizedError

        with pytest.raises(UnauthorizedError):
            service.request_private_sync("jane", "  ", API_KEY)

"""Tests for the aggregate-only private repository sync."""

from unittest.mock import MagicMock, patch

import pytest


def payload(login="jane", message="Fix bug", date="2025-01-02T10:00:00Z"):
    return {
        "sha": "deadbeef",
        "author": {"login": login, "type": "User"},
        "commit": {
            "message": message,
            "author": {"name": "Jane", "email": "jane@example.com", "date": date},
            "committer": {"name": "Jane", "email": "jane@example.com", "date": date},
        },
    }


def page(commits, has_next=False):
    from attribution.services.github.github_client import CommitPage, RateLimitInfo

    return CommitPage(commits=commits, has_next=has_next, rate_limit=RateLimitInfo())


@pytest.fixture
def client():
    client = MagicMock()
    client.list_private_repositories.return_value = [
        {"full_name": "jane/secret", "private": True},
        {"full_name": "jane/public", "private": False},
        {"full_name": "jane/notes", "private": True},
    ]
    return client


@pytest.fixture
def service(client):
    from attribution.services.private_sync_service import PrivateSyncService

    svc = PrivateSyncService(MagicMock(), client, sleep=MagicMock())
    svc.state = MagicMock()
    svc.weekly = MagicMock()
    svc.daily = MagicMock()
    return svc


class TestPrivateSync:
    @patch("attribution.services.private_sync_service.get_transaction")
    def test_aggregates_by_login(self, mock_transaction, service, client):
        client.list_commits.side_effect = [
            page([payload(), payload(message="Refactor\n\nGenerated with Cursor")]),
            page([payload(date="2025-01-09T10:00:00Z")]),
        ]

        result = service.sync("jane")

        assert result["status"] == "completed"
        assert result["repos"] == 2
        assert result["commits"] == 3
        listed = [call.args[0] for call in client.list_commits.call_args_list]
        assert listed == ["jane/secret", "jane/notes"]

        weekly_rows = service.weekly.replace.call_args.args[0]
        assert service.weekly.replace.call_args.kwargs["scope"] == "jane"
        assert [(row.github_login, row.human, row.cursor) for row in weekly_rows] == [
            ("jane", 1, 1),
            ("jane", 1, 0),
        ]
        dumped = str([row.model_dump() for row in weekly_rows])
        assert "secret" not in dumped
        assert "deadbeef" not in dumped
        service.state.start.assert_called_once_with("jane")
        service.state.complete.assert_called_once_with("jane", 3)

    def test_no_private_repos(self, service, client):
        client.list_private_repositories.return_value = [{"full_name": "jane/public", "private": False}]

        result = service.sync("jane")

        assert result["status"] == "error"
        service.state.fail.assert_called_once_with("jane", "No private repositories found")

    def test_revoked_token(self, service, client):
        from attribution.services.github.exceptions import GithubApiError
        from attribution.services.private_sync_service import TOKEN_REVOKED_MESSAGE

        client.list_private_repositories.side_effect = GithubApiError("Unauthorized", 401)

        result = service.sync("jane")

        assert result["error"] == TOKEN_REVOKED_MESSAGE
        service.state.fail.assert_called_once_with("jane", TOKEN_REVOKED_MESSAGE)

    @patch("attribution.services.private_sync_service.get_transaction")
    def test_inaccessible_repo_is_skipped(self, mock_transaction, service, client):
        from attribution.services.github.exceptions import GithubNotFoundError

        client.list_commits.side_effect = [GithubNotFoundError("gone", 404), page([payload()])]

        result = service.sync("jane")

        assert result["status"] == "completed"
        assert result["commits"] == 1

    @patch("attribution.services.private_sync_service.get_transaction")
    def test_short_rate_limit_is_waited_out(self, mock_transaction, service, client):
        from attribution.services.github.exceptions import GithubRateLimitError

        client.list_commits.side_effect = [
            GithubRateLimitError("limited", retry_after=5),
            page([payload()]),
            page([]),
        ]

        result = service.sync("jane")

        assert result["commits"] == 1
        service.sleep.assert_any_call(5)

    def test_long_rate_limit_fails_the_sync(self, service, client):
        from attribution.services.github.exceptions import GithubRateLimitError

        client.list_private_repositories.side_effect = GithubRateLimitError("limited", retry_after=900)

        result = service.sync("jane")

        assert result["status"] == "error"
        service.state.fail.assert_called_once()


class TestToPrivateCommit:
    def test_keeps_only_aggregation_fields(self):
        from attribution.services.private_sync_service import to_private_commit

        commit = to_private_commit(payload(message="Fix\n\nCo-Authored-By: Claude <noreply@anthropic.com>"))

        assert commit.classification == "claude"
        assert commit.author_login == "jane"
        assert not hasattr(commit, "message")
        assert not hasattr(commit, "sha")

    def test_undated_commit_is_dropped(self):
        from attribution.services.private_sync_service import to_private_commit

        assert to_private_commit({"sha": "x", "commit": {}}) is None

"""Tests for the sealed token handoff to private sync workers."""

import time
from unittest.mock import patch

import pytest


class TestTokenCipher:
    def test_sealed_token_opens(self):
        from attribution.services.token_cipher import open_token, seal_token

        sealed = seal_token("gho_secret")

        assert "gho_secret" not in sealed
        assert open_token(sealed) == "gho_secret"

    def test_old_token_is_rejected(self):
        from attribution.services.github.exceptions import GithubConfigurationError
        from attribution.services.token_cipher import EXPIRED_MESSAGE, _get_cipher, open_token

        sealed = _get_cipher().encrypt_at_time(b"gho_secret", int(time.time()) - 7200).decode()

        with pytest.raises(GithubConfigurationError, match=EXPIRED_MESSAGE):
            open_token(sealed, ttl=3600)

    def test_tampered_token_is_rejected(self):
        from attribution.services.github.exceptions import GithubConfigurationError
        from attribution.services.token_cipher import open_token

        with pytest.raises(GithubConfigurationError):
            open_token("not-a-fernet-token")

    def test_token_sealed_under_another_key_is_rejected(self):
        from attribution.config import settings
        from attribution.services.github.exceptions import GithubConfigurationError
        from attribution.services.token_cipher import open_token, seal_token

        with patch.object(settings, "SECRET_KEY", "rotated"):
            sealed = seal_token("gho_secret")

        with pytest.raises(GithubConfigurationError):
            open_token(sealed)


class TestPrivateSyncTask:
    @patch("attribution.repositories.private_sync.PrivateSyncStateRepository")
    @patch("attribution.tasks.base.get_database")
    @patch("attribution.tasks.private_sync.GitHubClient")
    def test_expired_request_fails_the_login(self, mock_client, mock_db, mock_state):
        from attribution.services.token_cipher import EXPIRED_MESSAGE
        from attribution.tasks.private_sync import sync_private_repos

        result = sync_private_repos.apply(
            kwargs={"github_login": "jane", "sealed_token": "garbage"}
        ).get()

        assert result["status"] == "error"
        assert result["github_login"] == "jane"
        mock_client.assert_not_called()
        mock_state.return_value.fail.assert_called_once_with("jane", EXPIRED_MESSAGE)

"""HTTP-level tests for the analyze and stats routers."""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def client():
    from attribution.database.mongo import get_db
    from attribution.main import app

    app.dependency_overrides[get_db] = lambda: MagicMock()
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAnalyzeRoutes:
    @patch("attribution.api.analyze.dispatch")
    def test_resync_without_key_is_unauthorized(self, mock_dispatch, client):
        from attribution.config import settings

        with patch.object(settings, "ANALYZE_API_KEY", "secret"):
            response = client.post("/api/analyze/resync-repo", json={"owner": "octo", "name": "demo"})

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "UNAUTHORIZED"
        mock_dispatch.assert_not_called()

    @patch("attribution.api.analyze.dispatch")
    @patch("attribution.api.analyze.AnalysisService")
    def test_throttled_resync_sets_retry_after(self, mock_service, mock_dispatch, client):
        from attribution.services.errors import ThrottledError

        mock_service.return_value.resync_repo.side_effect = ThrottledError(
            "Re-sync is on cooldown. Try again in 7 minutes.",
            reason="cooldown",
            retry_after_seconds=420,
        )

        response = client.post(
            "/api/analyze/resync-repo",
            json={"owner": "octo", "name": "demo"},
            headers={"X-Analyze-Api-Key": "secret"},
        )

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "420"
        assert response.json()["error"]["code"] == "RATE_LIMITED"

    @patch("attribution.api.analyze.dispatch")
    @patch("attribution.api.analyze.AnalysisService")
    def test_request_repo_hashes_first_forwarded_address(self, mock_service, mock_dispatch, client):
        import hashlib

        from attribution.services.scheduling import StepOutcome

        mock_service.return_value.request_repo.return_value = StepOutcome(
            {"repo_id": "abc", "status": "pending", "existing": False}, ["step"]
        )

        response = client.post(
            "/api/analyze/repo",
            json={"owner": "octo", "name": "demo"},
            headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
        )

        assert response.status_code == 202
        assert response.json()["repo_id"] == "abc"
        ip_hash = mock_service.return_value.request_repo.call_args.args[2]
        assert ip_hash == hashlib.sha256(b"203.0.113.7").hexdigest()
        mock_dispatch.assert_called_once_with(["step"])

    def test_invalid_owner_is_a_validation_error(self, client):
        response = client.post("/api/analyze/repo", json={"owner": "-bad-", "name": "demo"})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestStatsRoutes:
    @patch("attribution.api.stats.QueryService")
    def test_untracked_repo_is_not_found(self, mock_service, client):
        mock_service.return_value.repo_weekly.return_value = None

        response = client.get("/api/stats/repos/octo/missing/weekly")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    @patch("attribution.api.stats.QueryService")
    def test_bot_leaderboard(self, mock_service, client):
        mock_service.return_value.bot_leaderboard.return_value = [
            {
                "key": "dependabot",
                "label": "Dependabot",
                "commits": 12,
                "additions": 40,
                "repo_count": 3,
                "owner_count": 2,
            }
        ]

        response = client.get("/api/stats/leaderboard/bots")

        assert response.status_code == 200
        assert response.json()[0]["key"] == "dependabot"

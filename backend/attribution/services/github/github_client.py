from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from attribution.config import settings
from attribution.services.github.exceptions import (
    GithubApiError,
    GithubConfigurationError,
    GithubNotFoundError,
    GithubRateLimitError,
    GithubRetryableError,
    GithubSecondaryRateLimitError,
)

API_PREVIEW_HEADERS = {
    "Accept": "application/vnd.github+json",
}

RATE_LIMIT_FALLBACK_MS = 60_000
RATE_LIMIT_BUFFER_MS = 1_000

COMMIT_HISTORY_QUERY = """
query($owner: String!, $name: String!, $since: GitTimestamp!, $first: Int!, $after: String) {
  repository(owner: $owner, name: $name) {
    defaultBranchRef {
      target {
        ... on Commit {
          history(first: $first, since: $since, after: $after) {
            pageInfo { hasNextPage endCursor }
            nodes { oid additions deletions }
          }
        }
      }
    }
  }
  rateLimit { remaining resetAt }
}
"""

logger = logging.getLogger(__name__)


@dataclass
class RateLimitInfo:
    """Quota signal from ``X-RateLimit-*`` headers."""

    remaining: Optional[int] = None
    reset_at_ms: Optional[int] = None
    is_rate_limited: bool = False


@dataclass
class RepositoryResponse:
    not_modified: bool
    data: Dict[str, Any] = field(default_factory=dict)
    etag: Optional[str] = None


@dataclass
class CommitPage:
    commits: List[Dict[str, Any]]
    has_next: bool
    rate_limit: RateLimitInfo


@dataclass
class CommitStatsPage:
    nodes: List[Dict[str, Any]]
    has_next: bool
    end_cursor: Optional[str]
    remaining: Optional[int]
    reset_at: Optional[datetime]


def now_ms() -> int:
    return int(time.time() * 1000)


def extract_rate_limit_info(response: httpx.Response) -> RateLimitInfo:
    remaining_header = response.headers.get("X-RateLimit-Remaining")
    reset_header = response.headers.get("X-RateLimit-Reset")

    remaining = None
    reset_at_ms = None
    try:
        if remaining_header is not None:
            remaining = int(remaining_header)
        if reset_header is not None:
            reset_at_ms = int(reset_header) * 1000
    except ValueError:
        logger.warning(
            f"Unparseable rate limit headers: remaining={remaining_header} reset={reset_header}"
        )

    return RateLimitInfo(
        remaining=remaining,
        reset_at_ms=reset_at_ms,
        is_rate_limited=response.status_code in (403, 429) and remaining == 0,
    )


def retry_delay_ms(info: RateLimitInfo, now: Optional[int] = None) -> int:
    """
    Milliseconds to wait before retrying a rate-limited call.

    Time until the reset instant plus a one second buffer, so at least one
    second when the reset is already past, and a fixed minute when the
    reset header was absent.
    """
    if not info.reset_at_ms:
        return RATE_LIMIT_FALLBACK_MS
    current = now_ms() if now is None else now
    return max(0, info.reset_at_ms - current) + RATE_LIMIT_BUFFER_MS


def page_delay_ms(info: RateLimitInfo) -> int:
    """Pause before the next page, widened when the quota runs low."""
    if info.remaining is not None and info.remaining < settings.LOW_QUOTA_THRESHOLD:
        return settings.PAGE_DELAY_LOW_QUOTA_MS
    return settings.PAGE_DELAY_MS


def parse_github_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse GitHub's ISO-8601 timestamps (trailing ``Z``) into aware datetimes."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _has_next_link(response: httpx.Response) -> bool:
    link_header = response.headers.get("Link")
    if link_header is None:
        return True
    return 'rel="next"' in link_header


class GitHubClient:
    def __init__(
        self,
        token: str,
        api_url: str | None = None,
        graphql_url: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Initialize GitHubClient.

        Args:
            token: Raw GitHub token for authentication
            api_url: GitHub API URL (defaults to api.github.com)
            graphql_url: GraphQL endpoint (defaults to api.github.com/graphql)
            transport: Optional httpx transport, used by tests
        """
        self._token = token

        if not self._token:
            raise GithubConfigurationError("GitHub token is required to call the API")

        self._api_url = (api_url or settings.GITHUB_API_URL).rstrip("/")
        self._graphql_url = graphql_url or settings.GITHUB_GRAPHQL_URL
        self._rest = httpx.Client(
            base_url=self._api_url,
            timeout=60,
            transport=transport or httpx.HTTPTransport(retries=3),
        )

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._token}",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        headers.update(API_PREVIEW_HEADERS)
        return headers

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = self._headers()
        headers.update(kwargs.pop("headers", None) or {})
        try:
            return self._rest.request(method, url, headers=headers, **kwargs)
        except httpx.RequestError as exc:
            raise GithubRetryableError(f"GitHub request failed: {exc}") from exc

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        info = extract_rate_limit_info(response)
        if info.is_rate_limited:
            self._handle_rate_limit(info)

        if response.status_code == 403 and "secondary rate limit" in response.text.lower():
            self._handle_secondary_rate_limit(response)

        if response.status_code == 404:
            raise GithubNotFoundError(f"GitHub resource not found: {response.url}", 404)

        if response.is_error:
            raise GithubApiError(
                f"GitHub API returned {response.status_code}: {response.reason_phrase}",
                response.status_code,
            )
        return response

    def _handle_rate_limit(self, info: RateLimitInfo) -> None:
        delay_ms = retry_delay_ms(info)
        raise GithubRateLimitError("GitHub rate limit reached", retry_after=delay_ms / 1000)

    def _handle_secondary_rate_limit(self, response: httpx.Response) -> None:
        retry_after_header = response.headers.get("Retry-After")
        wait_seconds = 120.0  # Default 2 minutes for secondary

        if retry_after_header:
            try:
                wait_seconds = max(float(retry_after_header), 60.0)
            except ValueError:
                logger.warning(f"Unparseable Retry-After header: {retry_after_header}")

        logger.warning(
            f"GitHub secondary rate limit (abuse detection) hit, "
            f"waiting {wait_seconds}s before retry"
        )
        raise GithubSecondaryRateLimitError(
            "GitHub secondary rate limit (abuse detection) hit",
            retry_after=wait_seconds,
        )

    def _get_json(self, path: str, **kwargs: Any) -> Any:
        response = self._handle_response(self._send("GET", path, **kwargs))
        return response.json()

    def get_repository(self, full_name: str, etag: str | None = None) -> RepositoryResponse:
        """
        Conditional repository metadata fetch.

        A matching ``If-None-Match`` yields 304, which does not count
        against the rate limit and is reported as ``not_modified``.
        """
        headers = {"If-None-Match": etag} if etag else {}
        response = self._send("GET", f"/repos/{full_name}", headers=headers)
        if response.status_code == 304:
            return RepositoryResponse(not_modified=True, etag=etag)

        self._handle_response(response)
        return RepositoryResponse(
            not_modified=False,
            data=response.json(),
            etag=response.headers.get("ETag"),
        )

    def list_commits(
        self,
        full_name: str,
        since: datetime,
        page: int,
        per_page: int | None = None,
    ) -> CommitPage:
        """One page of the default-branch commit listing, newest first."""
        per_page = per_page or settings.COMMITS_PER_PAGE
        response = self._send(
            "GET",
            f"/repos/{full_name}/commits",
            params={"per_page": per_page, "page": page, "since": since.isoformat()},
        )
        self._handle_response(response)

        commits = response.json()
        has_next = len(commits) == per_page and _has_next_link(response)
        return CommitPage(
            commits=commits,
            has_next=has_next,
            rate_limit=extract_rate_limit_info(response),
        )

    def get_pull_request(self, full_name: str, number: int) -> Optional[Dict[str, Any]]:
        """PR metadata, or None when the PR no longer exists."""
        try:
            return self._get_json(f"/repos/{full_name}/pulls/{number}")
        except GithubNotFoundError:
            return None

    def get_tree(self, full_name: str, ref: str) -> List[Dict[str, Any]]:
        """Top-level entries of the tree at ``ref``."""
        data = self._get_json(f"/repos/{full_name}/git/trees/{ref}")
        return data.get("tree", [])

    def get_tree_by_url(self, url: str) -> List[Dict[str, Any]]:
        """Entries of a subtree, addressed by the ``url`` GitHub returned for it."""
        data = self._get_json(url)
        return data.get("tree", [])

    def get_user(self, login: str) -> Dict[str, Any]:
        return self._get_json(f"/users/{login}")

    def list_private_repositories(self, page: int, per_page: int = 100) -> List[Dict[str, Any]]:
        """Private repositories visible to the token's own user."""
        return self._get_json(
            "/user/repos",
            params={"type": "private", "per_page": per_page, "page": page},
        )

    def graphql(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        response = self._send(
            "POST",
            self._graphql_url,
            json={"query": query, "variables": variables},
        )
        self._handle_response(response)
        payload = response.json()
        if payload.get("errors"):
            messages = "; ".join(error.get("message", "") for error in payload["errors"])
            raise GithubApiError(f"GraphQL errors: {messages}", response.status_code)
        return payload.get("data") or {}

    def get_commit_stats_page(
        self,
        owner: str,
        name: str,
        since: datetime,
        cursor: str | None = None,
        first: int | None = None,
    ) -> CommitStatsPage:
        """Additions/deletions for one page of default-branch history."""
        data = self.graphql(
            COMMIT_HISTORY_QUERY,
            {
                "owner": owner,
                "name": name,
                "since": since.isoformat(),
                "first": first or settings.LOC_PAGE_SIZE,
                "after": cursor,
            },
        )

        history = (
            ((data.get("repository") or {}).get("defaultBranchRef") or {}).get("target") or {}
        ).get("history") or {}
        page_info = history.get("pageInfo") or {}
        rate_limit = data.get("rateLimit") or {}

        return CommitStatsPage(
            nodes=history.get("nodes") or [],
            has_next=bool(page_info.get("hasNextPage")),
            end_cursor=page_info.get("endCursor"),
            remaining=rate_limit.get("remaining"),
            reset_at=parse_github_datetime(rate_limit.get("resetAt")),
        )

    def close(self) -> None:
        self._rest.close()

    def __enter__(self) -> "GitHubClient":  # pragma: no cover - convenience
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - convenience
        self.close()


def get_public_github_client() -> GitHubClient:
    """
    Get a GitHub client using the shared pipeline token.

    The first non-empty entry of GITHUB_TOKENS is used.
    """
    tokens = [t.strip() for t in settings.GITHUB_TOKENS or [] if t and t.strip()]

    if not tokens:
        raise GithubConfigurationError(
            "No GitHub tokens configured. Set GITHUB_TOKENS environment variable."
        )

    return GitHubClient(token=tokens[0])

"""Exceptions raised by the GitHub client and handled by the sync pipeline."""

from __future__ import annotations


class GithubError(Exception):
    """Base exception for GitHub access failures."""


class GithubConfigurationError(GithubError):
    """Raised when required configuration (e.g. a token) is missing."""


class GithubApiError(GithubError):
    """Raised for an unexpected non-success response. Terminal for the sync."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class GithubNotFoundError(GithubApiError):
    """Raised when the requested resource does not exist (404)."""


class GithubRateLimitError(GithubError):
    """Raised when the primary rate limit is exhausted."""

    def __init__(self, message: str, retry_after: int | float | None = None):
        super().__init__(message)
        # Seconds until the quota resets, buffer included
        self.retry_after = retry_after


class GithubSecondaryRateLimitError(GithubRateLimitError):
    """
    Raised when GitHub's secondary rate limit (abuse detection) is triggered.

    These require longer backoff (typically 60s+) compared to primary rate limits.
    """


class GithubRetryableError(GithubError):
    """Raised for transient network issues where retrying later may succeed."""

from .exceptions import (
    GithubApiError,
    GithubConfigurationError,
    GithubError,
    GithubNotFoundError,
    GithubRateLimitError,
    GithubRetryableError,
    GithubSecondaryRateLimitError,
)
from .github_client import (
    CommitPage,
    CommitStatsPage,
    GitHubClient,
    RateLimitInfo,
    RepositoryResponse,
    extract_rate_limit_info,
    get_public_github_client,
    parse_github_datetime,
    page_delay_ms,
    retry_delay_ms,
)
from .rate_limiter import RedisRateLimiter, get_rate_limiter

__all__ = [
    "CommitPage",
    "CommitStatsPage",
    "GitHubClient",
    "GithubApiError",
    "GithubConfigurationError",
    "GithubError",
    "GithubNotFoundError",
    "GithubRateLimitError",
    "GithubRetryableError",
    "GithubSecondaryRateLimitError",
    "RateLimitInfo",
    "RedisRateLimiter",
    "RepositoryResponse",
    "extract_rate_limit_info",
    "get_public_github_client",
    "get_rate_limiter",
    "parse_github_datetime",
    "page_delay_ms",
    "retry_delay_ms",
]

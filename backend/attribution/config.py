from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Commit Attribution"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    ENV: str = "dev"  # Environment: "dev", "staging", "prod"

    # Database (MongoDB)
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "attribution"

    # GitHub
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_GRAPHQL_URL: str = "https://api.github.com/graphql"
    GITHUB_TOKENS: List[str] = []
    FRONTEND_BASE_URL: str = "http://localhost:3000"

    # Shared secret for privileged analyze/resync operations
    ANALYZE_API_KEY: Optional[str] = None

    # Key material for tokens handed to workers
    SECRET_KEY: str = "your-secret-key-change-in-production"

    # Celery / Redis
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"
    CELERY_DEFAULT_QUEUE: str = "pipeline.default"
    CELERY_TASK_SOFT_TIME_LIMIT: int = 600
    CELERY_TASK_TIME_LIMIT: int = 900
    CELERY_BROKER_HEARTBEAT: int = 30

    # ==========================================================================
    # Ingestion Pipeline
    # ==========================================================================

    # --- Commit listing ---
    COMMITS_PER_PAGE: int = 100  # Commits fetched per REST page
    COMMIT_LOOKBACK_DAYS: int = 730  # Rolling two-year window
    PAGE_DELAY_MS: int = 100  # Delay before the next page
    PAGE_DELAY_LOW_QUOTA_MS: int = 500  # Delay when remaining quota is low
    LOW_QUOTA_THRESHOLD: int = 100

    # --- LOC enrichment (GraphQL) ---
    LOC_PAGE_SIZE: int = 100
    LOC_MIN_REMAINING: int = 10  # Reschedule until reset below this

    # --- Finalization ---
    COMMIT_DELETE_BATCH_SIZE: int = 500
    MAX_RATE_LIMIT_RETRIES: int = 10

    # --- Rate Limiting (GitHub API) ---
    GITHUB_API_RATE_PER_SECOND: float = 10.0  # Sustained request rate
    GITHUB_API_BURST_ALLOWANCE: int = 5  # Burst before throttling

    # ==========================================================================
    # Recovery & Admin
    # ==========================================================================
    STUCK_REPO_THRESHOLD_MINUTES: int = 15
    ORPHAN_MAX_OWNERS: int = 20
    ORPHAN_STAGGER_SECONDS: int = 5
    STALE_AFTER_HOURS: int = 24
    STALE_MAX_REPOS: int = 50
    STALE_STAGGER_SECONDS: int = 10
    BACKFILL_MAX_REPOS: int = 50
    BACKFILL_STAGGER_SECONDS: int = 10
    RATE_LIMIT_RECORD_RETENTION_DAYS: int = 7

    # --- Request throttling ---
    RESYNC_COOLDOWN_MINUTES: int = 10
    RESYNC_DAILY_LIMIT: int = 6
    REQUEST_REPO_DAILY_LIMIT: int = 5
    USER_ANALYSIS_MAX_REPOS: int = 20

    # --- Private aggregate sync ---
    PRIVATE_SYNC_MAX_REPOS: int = 200
    PRIVATE_SYNC_TOKEN_TTL_SECONDS: int = 3600  # Sealed tokens older than this are rejected

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()

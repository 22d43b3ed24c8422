"""
Prometheus Metrics Integration

This module sets up Prometheus metrics for the FastAPI application and the
counters the sync pipeline updates from the workers.
Metrics are exposed at /api/metrics endpoint.
"""

from typing import Callable

from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator, metrics
from prometheus_fastapi_instrumentator.metrics import Info

from attribution.config import settings

COMMITS_CLASSIFIED = Counter(
    "attribution_commits_classified_total",
    "Total number of commits classified during public syncs",
    ["classification"],
)

REPO_SYNCS_FINISHED = Counter(
    "attribution_repo_syncs_finished_total",
    "Total number of repository syncs that reached a terminal state",
    ["status"],  # synced, error
)

RATE_LIMIT_RETRIES = Counter(
    "attribution_rate_limit_retries_total",
    "Pipeline steps rescheduled because of a GitHub rate limit",
    ["task"],
)


def setup_prometheus(app):
    """
    Initialize Prometheus instrumentation for the FastAPI app.

    This sets up:
    - Default HTTP request metrics (latency, count)
    - /api/metrics endpoint for Prometheus scraping
    """
    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        excluded_handlers=["/api/metrics", "/api/health"],
    )

    instrumentator.add(
        metrics.latency(
            should_include_handler=True,
            should_include_method=True,
            should_include_status=True,
        )
    )
    instrumentator.add(
        metrics.requests(
            should_include_handler=True,
            should_include_method=True,
            should_include_status=True,
        )
    )
    instrumentator.add(build_info())

    instrumentator.instrument(app)
    instrumentator.expose(app, endpoint="/api/metrics", include_in_schema=False)

    return instrumentator


def build_info() -> Callable[[Info], None]:
    """Custom metric to expose build/version info."""
    from prometheus_client import Info as PrometheusInfo

    app_info_metric = PrometheusInfo("attribution_app", "Commit attribution service info")
    app_info_metric.info({"version": settings.APP_VERSION, "app_name": settings.APP_NAME})

    def instrumentation(info: Info) -> None:
        pass  # Info is set once at startup

    return instrumentation


def record_commits_classified(classifications):
    for classification in classifications:
        COMMITS_CLASSIFIED.labels(classification=classification).inc()


def record_sync_finished(status: str):
    REPO_SYNCS_FINISHED.labels(status=status).inc()


def record_rate_limit_retry(task_name: str):
    RATE_LIMIT_RETRIES.labels(task=task_name).inc()

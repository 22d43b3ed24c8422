"""Logging configuration shared by the API process and Celery workers."""

import logging
import os

DEV_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
PROD_FORMAT = "%(levelname)s | %(message)s"


def setup_logging(env: str | None = None) -> None:
    """
    Configure the root logger based on the ENV environment variable.

    ENV=dev: INFO level with detailed format (default)
    ENV=prod/staging: WARNING level, minimal logs
    """
    env = (env or os.getenv("ENV", "dev")).lower()
    is_dev = env == "dev"

    logging.basicConfig(
        level=logging.INFO if is_dev else logging.WARNING,
        format=DEV_FORMAT if is_dev else PROD_FORMAT,
        datefmt="%H:%M:%S",
        force=True,
    )

    # Pipeline progress is useful even in production
    logging.getLogger("attribution.tasks").setLevel(logging.INFO)

    if is_dev:
        logging.getLogger("attribution.request").setLevel(logging.INFO)
        logging.getLogger("attribution.exception").setLevel(logging.INFO)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

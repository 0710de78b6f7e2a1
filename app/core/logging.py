from __future__ import annotations

import logging
import sys

from app.core.config import settings


def setup_logging(level: str | None = None) -> None:
    """Stdout logging for the API process and the poller tasks."""
    root = logging.getLogger()
    if root.handlers:
        return  # prevent duplicate handlers (e.g., in reload)

    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )
    handler.setFormatter(formatter)

    root.setLevel((level or settings.LOG_LEVEL).upper())
    root.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

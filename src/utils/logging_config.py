"""Logging and tracing setup for the discovery service."""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from src.config import config


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOGGER_NAME = "dowhat.discovery"


def setup_logging(*, debug: bool = False, log_file: str | None = None) -> None:
    """Install root handlers: stdout always, a rotating DEBUG file when a path is set.

    ``log_file`` defaults to ``config.LOG_FILE_PATH``; pass "" to skip the file.
    """

    log_file = config.LOG_FILE_PATH if log_file is None else log_file

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(formatter)

    # Avoid duplicate handlers when reloading in dev.
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=2_000_000, backupCount=5
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # supabase-py logs every HTTP request at INFO through httpx.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def setup_langsmith() -> None:
    """Initialize LangSmith tracing for graph runs if enabled.

    Only activated when the API key is present and LANGSMITH_ENABLED is true.
    """

    if not config.LANGSMITH_ENABLED or not config.LANGSMITH_API_KEY:
        return

    os.environ["LANGCHAIN_TRACING_V2"] = "true"
    os.environ["LANGCHAIN_API_KEY"] = config.LANGSMITH_API_KEY

    try:
        from langsmith import Client

        Client()
        logger.info("LangSmith tracing enabled")
    except Exception as exc:  # pragma: no cover - optional dependency
        logger.warning("LangSmith initialization failed: %s", str(exc))


logger = logging.getLogger(LOGGER_NAME)

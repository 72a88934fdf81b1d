"""
Centralized logging configuration.

Modules log through `logging.getLogger(__name__)`; entry points (scripts,
the Celery worker, the API) call configure_logging() once.
"""

from __future__ import annotations

import logging
import sys

from fin_rag.config import settings

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

# Third-party loggers that are chatty at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "anthropic", "chromadb")


def configure_logging(level: str | None = None) -> None:
    """
    Set up root logging with a single stdout handler.

    Args:
        level: Log level name. Defaults to settings.log_level.
    """
    resolved = (level or settings.log_level).upper()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logging.basicConfig(
        level=getattr(logging, resolved, logging.INFO),
        handlers=[handler],
        force=True,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

"""
Logging configuration for the API, the scripts and background runs
"""

import logging
import sys
from typing import Optional
from core.config import settings

# Marks the stdout handler installed here so repeated setup replaces it
HANDLER_NAME = "pipeline-stdout"

# Third-party loggers that are noisy below WARNING
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "aiosqlite", "asyncio")


def _level(name: str, default: int = logging.INFO) -> int:
    return getattr(logging, name.upper(), default)


def setup_logging(level: Optional[str] = None) -> logging.Handler:
    """
    Configure application logging.

    Installs one stdout handler on the root logger using LOG_FORMAT and
    LOG_DATE_FORMAT. Calling it again (API reload, tests) replaces that
    handler instead of stacking a second one; handlers added by others
    are left alone.
    """
    root_level = _level(level or settings.LOG_LEVEL)
    root = logging.getLogger()

    for handler in list(root.handlers):
        if handler.get_name() == HANDLER_NAME:
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(logging.Formatter(settings.LOG_FORMAT, datefmt=settings.LOG_DATE_FORMAT))
    root.addHandler(handler)
    root.setLevel(root_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Chunk engine logs one line per skipped or retried item
    logging.getLogger("ingestion.chunk_engine").setLevel(_level(settings.ENGINE_LOG_LEVEL))

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured at {logging.getLevelName(root_level)} level")
    return handler

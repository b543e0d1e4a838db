"""
Unit tests for logging setup
"""

import logging
import pytest
from core.config import settings
from core.logging import HANDLER_NAME, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    engine = logging.getLogger("ingestion.chunk_engine")
    handlers, level, engine_level = list(root.handlers), root.level, engine.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
    engine.setLevel(engine_level)


def pipeline_handlers(root):
    return [h for h in root.handlers if h.get_name() == HANDLER_NAME]


def test_repeated_setup_installs_a_single_handler(restore_root_logger):
    setup_logging()
    handler = setup_logging()

    assert pipeline_handlers(restore_root_logger) == [handler]
    assert handler.formatter._fmt == settings.LOG_FORMAT
    assert handler.formatter.datefmt == settings.LOG_DATE_FORMAT


def test_levels_follow_settings(restore_root_logger, monkeypatch):
    monkeypatch.setattr(settings, "ENGINE_LOG_LEVEL", "WARNING")

    setup_logging(level="debug")

    assert restore_root_logger.level == logging.DEBUG
    assert logging.getLogger("ingestion.chunk_engine").level == logging.WARNING
    assert logging.getLogger("aiosqlite").level == logging.WARNING
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

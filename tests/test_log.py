from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from mc_statusbot.log import setup_logging


def test_console_handler_only_by_default():
    logger = setup_logging()

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    assert logger.handlers[0].level == logging.INFO


def test_debug_file_handler(tmp_path):
    path = tmp_path / "debug.log"
    logger = setup_logging(True, str(path))
    try:
        file_handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].level == logging.DEBUG

        logging.getLogger("mc_statusbot.test").debug("[TEST] written to file only")
        file_handlers[0].flush()
        assert "[TEST] written to file only" in path.read_text(encoding="utf-8")
    finally:
        setup_logging()


def test_repeated_setup_does_not_stack_handlers():
    setup_logging()
    logger = setup_logging()

    assert len(logger.handlers) == 1

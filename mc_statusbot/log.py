import logging
import sys
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

logger = logging.getLogger("mc_statusbot")


def setup_logging(debug_log_enabled: bool = False, debug_log_path: str = "debug.log") -> logging.Logger:
    """Console is always on at INFO; optionally also keep a rotating DEBUG file."""
    logger.setLevel(logging.DEBUG)  # master gate
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console)

    if debug_log_enabled:
        file_handler = RotatingFileHandler(debug_log_path, maxBytes=5 * 1024 * 1024, backupCount=3)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)

    return logger

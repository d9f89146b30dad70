"""
logging_config.py — logging setup shared by the API and the scripts.

All modules log through `get_logger(__name__)`; `setup_logging()` is called
once at process start (API import, script entry point).
"""

import logging
import sys

from marketplace.core.config import settings

LOG_FORMAT = "%(asctime)s - %(levelname)s - [PID:%(process)d] - %(name)s - %(message)s"


def setup_logging():
    """
    Configures the root logger.

    Output goes to stdout and, when LOG_FILE is set, to that file as well.
    SQLAlchemy's engine logger is kept at WARNING so SQL does not flood the log.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.LOG_FILE:
        handlers.append(logging.FileHandler(settings.LOG_FILE))

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
    )

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name):
    return logging.getLogger(name)

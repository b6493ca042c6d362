"""Logging setup for the form builder API"""

import logging
import sys

from formbuilder.config import settings


class InfoFilter(logging.Filter):
    """Only let INFO and DEBUG records through (WARNING and above go to stderr)"""

    def filter(self, record):
        return record.levelno < logging.WARNING


def setup_logging():
    """
    Send INFO/DEBUG to stdout and WARNING/ERROR to stderr.
    The level comes from the LOG_LEVEL setting.
    """
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    formatter = logging.Formatter("%(asctime)s %(levelname)s:%(name)s:%(message)s")

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(logging.DEBUG)
    stdout_handler.addFilter(InfoFilter())
    stdout_handler.setFormatter(formatter)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.WARNING)
    stderr_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Avoid duplicate output when setup runs twice (reload, tests)
    root_logger.handlers.clear()

    root_logger.addHandler(stdout_handler)
    root_logger.addHandler(stderr_handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for the given module name.

    Args:
        name: Usually __name__ from the calling module

    Returns:
        Logger instance
    """
    return logging.getLogger(name)

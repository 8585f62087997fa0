import logging
import sys
from pythonjsonlogger import jsonlogger

from .settings import settings


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger that writes structured JSON lines to stderr.

    stdout is left to the CLI, which prints its results there.
    """
    logger = logging.getLogger(name)

    # Already configured by an earlier call
    if logger.handlers:
        return logger

    logger.setLevel(settings.log_level.upper())

    handler = logging.StreamHandler(sys.stderr)
    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger

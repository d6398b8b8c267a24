from __future__ import annotations

import logging
import sys
from typing import TextIO

"""Console logging for import runs.

Every line starts with one label (INFO|WARN|ERROR|SUMMARY, DEBUG with
--debug) so runs can be grepped and asserted on. Modules log through
``logging.getLogger(__name__)``; everything under the ``finrecon``
namespace propagates into the single stdout handler installed here.
Debug lines also name the emitting module (``DEBUG [services.matcher] ...``).
"""

__all__ = [
    "APP_LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "set_level",
    "get_logger",
    "log_summary",
    "reset_logging",
]

# between INFO=20 and WARNING=30
SUMMARY_LEVEL = 25

APP_LOGGER_NAME = "finrecon"

_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
        SUMMARY_LEVEL: "SUMMARY",
    }

    def format(self, record: logging.LogRecord) -> str:
        label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        message = record.getMessage()
        if record.levelno <= logging.DEBUG and record.name.startswith(APP_LOGGER_NAME + "."):
            source = record.name[len(APP_LOGGER_NAME) + 1 :]
            return f"{label} [{source}] {message}"
        return f"{label} {message}"


def setup_logging(level: int = logging.INFO, stream: TextIO | None = None) -> logging.Logger:
    """Install the labelled stdout handler on the ``finrecon`` logger.

    Idempotent: later calls return the configured logger unchanged; use
    set_level() to switch to debug output afterwards.
    """
    global _logger

    if _logger is not None:
        return _logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")

    logger = logging.getLogger(APP_LOGGER_NAME)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)
    set_level(level, logger)

    # root may carry its own handlers (pytest, embedding apps)
    logger.propagate = False

    _logger = logger
    return logger


def set_level(level: int, logger: logging.Logger | None = None) -> None:
    logger = logger or get_logger()
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)


def get_logger() -> logging.Logger:
    if _logger is None:
        return setup_logging()
    return _logger


def log_summary(message: str) -> None:
    """Emit the run's closing line at SUMMARY level."""
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Forget the configured logger (tests)."""
    global _logger
    _logger = None

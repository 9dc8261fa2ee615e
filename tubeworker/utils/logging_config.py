"""Centralized logging configuration for tubeworker."""

import logging
import os
import sys

from rich.console import Console
from rich.logging import RichHandler

from tubeworker.constants import LOG_LEVEL_ENV, LOGGER_NAME


class _BelowErrorFilter(logging.Filter):
    """Pass records below ERROR, so stdout and stderr don't both print them."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < logging.ERROR


def configure_logging(rich_output: bool = False) -> None:
    """Configure logging for a tubeworker process.

    Job begin/end lines go to stdout, failures to stderr. With `rich_output`
    a single RichHandler on stderr renders everything instead.

    Respects the TUBEWORKER_LOG_LEVEL environment variable:
    - DEBUG: Verbose logging
    - INFO: Job begin/end lines and above (default)
    - WARNING: Warning and above
    - ERROR: Failures only
    """
    log_level_name = os.getenv(LOG_LEVEL_ENV, "INFO").upper()
    log_level = getattr(logging, log_level_name, logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    if rich_output:
        handler = RichHandler(console=Console(stderr=True), show_path=False, markup=False)
        handler.setLevel(log_level)
        logger.addHandler(handler)
        return

    out_handler = logging.StreamHandler(sys.stdout)
    out_handler.setLevel(log_level)
    out_handler.addFilter(_BelowErrorFilter())

    err_handler = logging.StreamHandler(sys.stderr)
    err_handler.setLevel(max(log_level, logging.ERROR))

    formatter = logging.Formatter("%(message)s")
    for handler in (out_handler, err_handler):
        handler.setFormatter(formatter)
        logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    if name != LOGGER_NAME and not name.startswith(LOGGER_NAME + "."):
        name = f"{LOGGER_NAME}.{name}"
    return logging.getLogger(name)

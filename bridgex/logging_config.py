"""Logging setup shared by the CLI and the export worker threads."""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

LOGGER_NAME = "bridgex"

# Worker threads share handlers, so the thread name keeps per-table lines apart
LOG_FORMAT = "%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# HTTP client libraries log every request at DEBUG
QUIET_LOGGERS = ("urllib3", "requests", "google.auth", "google.resumable_media")


def _attach(logger: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)


def _reset_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    verbose: bool = False,
) -> logging.Logger:
    """Configure the ``bridgex`` logger tree.

    Safe to call more than once: handlers from an earlier call are closed
    and replaced. Unless ``verbose`` is set, the HTTP libraries under
    ``QUIET_LOGGERS`` only report warnings.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Also append log lines to this file
        verbose: Force DEBUG, including third-party HTTP logging

    Returns:
        The ``bridgex`` logger

    Raises:
        ValueError: if ``level`` is not a logging level name

    Example:
        >>> logger = setup_logging(verbose=True, log_file="export.log")
        >>> logger.info("Export started")
    """
    if verbose:
        log_level = logging.DEBUG
    else:
        log_level = logging.getLevelName(level.upper())
        if not isinstance(log_level, int):
            raise ValueError(f"Unknown log level: {level}")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    logger.propagate = False
    _reset_handlers(logger)

    _attach(logger, logging.StreamHandler(sys.stdout), log_level)
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        _attach(logger, logging.FileHandler(path, encoding="utf-8"), log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return ``bridgex.<name>``, leaving already-qualified names alone."""
    if name == LOGGER_NAME or name.startswith(f"{LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")

"""Run logging: one timestamped line per event, to a file and the console.

Line format::

    2026-10-18 09:15:02 [INFO] - Onboarding alice@contoso.com

Levels are DEBUG, VERBOSE, INFO, WARN and ERROR. The log directory is
created on first use; if the file cannot be opened the run continues with
console output only.
"""
from __future__ import annotations
import logging
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, TextIO

VERBOSE = 15
logging.addLevelName(VERBOSE, "VERBOSE")
logging.addLevelName(logging.WARNING, "WARN")

LOGGER_NAME = "lifecycle"
LOG_FORMAT = "%(asctime)s [%(levelname)s] - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Handlers attached by configure_logging(), removed by shutdown_logging()
_handlers: list[logging.Handler] = []


def default_log_file(prefix: str = "lifecycle") -> str:
    return f"{prefix}-{datetime.now():%Y%m%d}.log"


def verbose(logger: logging.Logger, msg: str, *args) -> None:
    logger.log(VERBOSE, msg, *args)


def configure_logging(
    log_dir: Optional[str | Path] = None,
    log_file: Optional[str] = None,
    level: int = logging.INFO,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Attach file and console handlers to the ``lifecycle`` logger.

    Args:
        log_dir: Directory for the log file; created if missing. None disables the file.
        log_file: File name inside ``log_dir`` (defaults to lifecycle-YYYYMMDD.log)
        level: Minimum level for both handlers
        stream: Console stream (defaults to stderr)

    Returns:
        The configured ``lifecycle`` logger
    """
    shutdown_logging()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(stream or sys.stderr)
    console.setFormatter(formatter)
    console.setLevel(level)
    logger.addHandler(console)
    _handlers.append(console)

    if log_dir is not None:
        path = Path(log_dir) / (log_file or default_log_file())
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        except OSError as e:
            logger.warning("Cannot open log file %s (%s); logging to console only", path, e)
        else:
            file_handler.setFormatter(formatter)
            file_handler.setLevel(level)
            logger.addHandler(file_handler)
            _handlers.append(file_handler)
            logger.debug("Logging to %s", path)

    return logger


def shutdown_logging() -> None:
    """Flush, close and detach the handlers added by configure_logging()."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.propagate = True
    while _handlers:
        handler = _handlers.pop()
        logger.removeHandler(handler)
        try:
            handler.flush()
        finally:
            handler.close()


@contextmanager
def logging_session(
    log_dir: Optional[str | Path] = None,
    log_file: Optional[str] = None,
    level: int = logging.INFO,
    stream: Optional[TextIO] = None,
) -> Iterator[logging.Logger]:
    """Configure logging for one run and release the file handle on exit."""
    logger = configure_logging(log_dir, log_file, level=level, stream=stream)
    try:
        yield logger
    finally:
        shutdown_logging()

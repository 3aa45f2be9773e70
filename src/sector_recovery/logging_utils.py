"""Logging utilities for CLI and pipeline modules."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable


DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "sector_recovery.log"
TRANSPORT_LOGGERS: tuple[str, ...] = ("urllib3", "requests")


def configure_logging(
    log_file: Path,
    level: int = logging.INFO,
    *,
    transport_loggers: Iterable[str] = TRANSPORT_LOGGERS,
) -> logging.Logger:
    """Configure process-wide stderr and file logging for a recovery run.

    HTTP transport loggers are capped at WARNING unless ``level`` is DEBUG, so
    per-query connection chatter only shows up in verbose runs.
    """

    log_file.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    formatter = logging.Formatter(fmt=DEFAULT_LOG_FORMAT, datefmt=DEFAULT_DATE_FORMAT)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    stream_handler.setLevel(level)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(formatter)
    file_handler.setLevel(level)

    root_logger.addHandler(stream_handler)
    root_logger.addHandler(file_handler)

    transport_level = level if level <= logging.DEBUG else logging.WARNING
    for name in transport_loggers:
        logging.getLogger(name).setLevel(transport_level)

    logger = logging.getLogger("sector_recovery")
    logger.setLevel(level)
    return logger

"""Structured logging setup using Loguru."""
from __future__ import annotations

import logging
import sys
from pathlib import Path

from loguru import logger

# Stdlib loggers that emit one INFO line per HTTP request
NOISY_LIBRARIES = ("httpx", "httpcore", "openai")

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} - {message}"


def setup_logger(log_level: str = "INFO", log_file: str | None = "logs/docqa.log") -> None:
    """
    Configure loguru for the service.

    - Console: coloured, human-readable, on stderr so CLI answers stay clean
    - File: rotating, compressed (skipped when log_file is None)
    - Provider SDK request logs are held at WARNING unless running at DEBUG
    """
    level = log_level.upper()
    logger.remove()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level=level,
            format=FILE_FORMAT,
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            enqueue=True,
        )

    library_level = logging.DEBUG if level == "DEBUG" else logging.WARNING
    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)

    logger.debug(f"[Logger] level={level} | file={log_file or '-'}")

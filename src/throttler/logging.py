"""Centralized logging configuration for the throttler.

Provides rotating file logs with consistent formatting across all components.
"""

from __future__ import annotations

import logging
import os
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Default configuration
DEFAULT_LOG_DIR = "logs"
DEFAULT_LOG_FILE = "throttler.log"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024  # 5MB
DEFAULT_BACKUP_COUNT = 5
DEFAULT_LOG_LEVEL = "INFO"

# Log format
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    log_dir: str | Path | None = None,
    log_file: str = DEFAULT_LOG_FILE,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    level: str | None = None,
    console: bool = True,
) -> logging.Logger:
    """Set up logging with rotating file handler.

    Args:
        log_dir: Directory for log files. Defaults to 'logs' in current directory.
                 Can be overridden with THROTTLER_LOG_DIR environment variable.
        log_file: Log file name. Defaults to 'throttler.log'.
        max_bytes: Maximum size per log file before rotation. Defaults to 5MB.
        backup_count: Number of backup files to keep. Defaults to 5.
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to INFO.
               Can be overridden with THROTTLER_LOG_LEVEL environment variable.
        console: Whether to also log to console. Defaults to True.

    Returns:
        The root throttler logger.
    """
    if log_dir is None:
        log_dir = os.environ.get("THROTTLER_LOG_DIR", DEFAULT_LOG_DIR)
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    if level is None:
        level = os.environ.get("THROTTLER_LOG_LEVEL", DEFAULT_LOG_LEVEL)
    log_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("throttler")
    logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates on repeated setup
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    log_path = log_dir / log_file
    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    logger.debug("Throttler logging initialized (level=%s, file=%s)", level, log_path)

    return logger


def truncate_output(output: str, max_length: int = 2000) -> str:
    """Truncate long output (HTTP bodies, git stderr) for logging."""
    if len(output) <= max_length:
        return output
    return output[:max_length] + f"\n... [truncated, {len(output) - max_length} more chars]"


def sanitize_for_log(text: str) -> str:
    """Remove credentials from text before it reaches the log.

    Args:
        text: Text that may contain bearer tokens or passwords.

    Returns:
        Sanitized text safe for logging.
    """
    patterns = [
        (r"Bearer [a-zA-Z0-9._~+/=-]+", "Bearer [REDACTED]"),
        (r"Basic [a-zA-Z0-9+/=]+", "Basic [REDACTED]"),
        (r"\"bearer\"\s*:\s*\"[^\"]*\"", '"bearer": "[REDACTED]"'),
        (r"(\w+://[^:/@\s]+):[^@\s]+@", r"\1:[REDACTED]@"),  # user:pass@host URLs
    ]

    result = text
    for pat, replacement in patterns:
        result = re.sub(pat, replacement, result)

    return result

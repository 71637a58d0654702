"""
vite-ssr logging.

Provides:
- Console output with coloured level and step labels (respects NO_COLOR)
- Optional JSONL log file for tooling that tails build output
- ``log_step`` for the "name value" progress lines printed during builds

All package loggers live under the ``vite_ssr`` logger.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

ROOT_LOGGER = "vite_ssr"

_NO_COLOR = bool(os.environ.get("NO_COLOR")) or not sys.stdout.isatty()


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "" if _NO_COLOR else "\033[0m"
    BOLD = "" if _NO_COLOR else "\033[1m"
    DIM = "" if _NO_COLOR else "\033[2m"

    DEBUG = "" if _NO_COLOR else "\033[36m"  # Cyan
    INFO = "" if _NO_COLOR else "\033[32m"  # Green
    WARNING = "" if _NO_COLOR else "\033[33m"  # Yellow
    ERROR = "" if _NO_COLOR else "\033[31m"  # Red
    CRITICAL = "" if _NO_COLOR else "\033[35m"  # Magenta

    STEP = "" if _NO_COLOR else "\033[94m"  # Bright blue
    VALUE = "" if _NO_COLOR else "\033[32m"  # Green


class JSONLFormatter(logging.Formatter):
    """
    One JSON object per line: timestamp, level, logger, message and, when
    present, ``step``/``value`` from ``log_step`` and exception details.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        step = getattr(record, "step", None)
        if step:
            entry["step"] = step
            entry["value"] = getattr(record, "value", "")

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DEBUG,
        logging.INFO: Colors.INFO,
        logging.WARNING: Colors.WARNING,
        logging.ERROR: Colors.ERROR,
        logging.CRITICAL: Colors.CRITICAL,
    }

    def format(self, record: logging.LogRecord) -> str:
        step = getattr(record, "step", None)
        if step:
            value = getattr(record, "value", "")
            return f"{Colors.STEP}{step}{Colors.RESET} {Colors.VALUE}{value}{Colors.RESET}"

        message = record.getMessage()
        if record.levelno != logging.INFO:
            color = self.LEVEL_COLORS.get(record.levelno, "")
            message = f"{color}{record.levelname}{Colors.RESET}: {message}"

        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def setup_logging(
    level: int | str = logging.INFO,
    log_file: Path | str | None = None,
    max_bytes: int = 5 * 1024 * 1024,  # 5MB
    backup_count: int = 3,
) -> logging.Logger:
    """
    Configure the ``vite_ssr`` logger.

    Args:
        level: Minimum log level (name or number)
        log_file: Optional JSONL log file
        max_bytes: Max size per log file before rotation
        backup_count: Number of backup files to keep

    Returns:
        The configured package logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ConsoleFormatter())
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setFormatter(JSONLFormatter())
        file_handler.setLevel(level)
        root_logger.addHandler(file_handler)

    return root_logger


def log_step(logger: logging.Logger, name: str, value: str) -> None:
    """Log a coloured ``name value`` progress line (e.g. ``SSR build generating...``)."""
    logger.info("%s %s", name, value, extra={"step": name, "value": value})

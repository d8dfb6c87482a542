"""
Logging configuration for the CLI.

Console output goes through rich; a debug log file in the OS temp
directory is added when FALCON_DEBUG is set.
"""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

DEBUG_ENV = "FALCON_DEBUG"
LOG_LEVEL_ENV = "FALCON_LOG_LEVEL"
LOG_FILENAME = "falcon-debug.log"

_SECRET_PATTERNS = [
    re.compile(r"(Key\s+)[^\s'\"]+"),
    re.compile(r"((?:api_key|apiKey|FAL_KEY|authorization)['\"]?\s*[:=]\s*['\"]?)[^\s'\",}]+", re.IGNORECASE),
]


def debug_log_path() -> Path:
    return Path(tempfile.gettempdir()) / LOG_FILENAME


def is_debug_enabled() -> bool:
    return os.environ.get(DEBUG_ENV, "").strip().lower() in {"1", "true"}


def redact(text: str) -> str:
    """Mask API keys in a log message."""
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(r"\1[REDACTED]", text)
    return text


class RedactingFilter(logging.Filter):
    """Rewrites records so credentials never reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


def setup_logging(verbose: bool = False, console: Optional[Console] = None) -> None:
    """Configure the ``falcon_cost`` logger hierarchy.

    Args:
        verbose: Show DEBUG records on the console instead of WARNING+
        console: Rich console to log to (defaults to stderr)
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logger = logging.getLogger("falcon_cost")
    logger.setLevel(logging.DEBUG)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
    )
    console_handler.setLevel(level)
    console_handler.addFilter(RedactingFilter())
    logger.addHandler(console_handler)

    if is_debug_enabled():
        file_level = logging.getLevelName(os.environ.get(LOG_LEVEL_ENV, "DEBUG").upper())
        if not isinstance(file_level, int):
            file_level = logging.DEBUG
        file_handler = logging.FileHandler(debug_log_path(), encoding="utf-8")
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(
            "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        ))
        file_handler.addFilter(RedactingFilter())
        logger.addHandler(file_handler)

"""
Logging configuration for commlog.

Import runs print one progress line per imported message, so the console
handler uses a compact format by default; an optional rotating log file
keeps the full format for later debugging of parse failures.

Environment Variables:
    LOG_LEVEL: Set log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to INFO if not set or invalid.

Usage:
    from commlog.logger_config import setup_logging
    setup_logging()  # Uses LOG_LEVEL env var, defaults to INFO

    # Or override explicitly:
    setup_logging(level=logging.DEBUG, log_file="import.log")
"""

import logging
import logging.config
import os
from typing import Optional

CONSOLE_FORMAT = "%(levelname)s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_log_level() -> int:
    """
    Get log level from LOG_LEVEL environment variable.

    Supports: DEBUG, INFO, WARNING, ERROR, CRITICAL (case-insensitive).
    Defaults to INFO if not set or invalid.

    Returns:
        Logging level constant (e.g., logging.INFO).
    """
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, None)

    if level is None or not isinstance(level, int):
        return logging.INFO

    return level


def setup_logging(
    level: Optional[int] = None,
    format_string: Optional[str] = None,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure logging for the application using dictConfig.

    Safe to call more than once; each call replaces the previous
    handler configuration without disabling loggers created at import time.

    Args:
        level: Logging level. If None, reads from LOG_LEVEL env var (default: INFO).
        format_string: Optional custom console format string.
        log_file: Optional file path to write logs to (with rotation).
    """
    if level is None:
        level = get_log_level()

    if format_string is None:
        format_string = CONSOLE_FORMAT

    config: dict = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {
                "format": format_string,
            },
            "file": {
                "format": FILE_FORMAT,
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "console",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            # uvicorn/httpx chatter drowns out import progress otherwise
            "httpx": {"level": logging.WARNING},
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
    }

    if log_file:
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "file",
            "filename": log_file,
            "maxBytes": 10_485_760,  # 10 MB
            "backupCount": 5,
            "encoding": "utf-8",
        }
        config["root"]["handlers"].append("file")

    logging.config.dictConfig(config)

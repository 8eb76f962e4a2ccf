"""
Logging setup for NEIS School Lookup.

Each named logger gets a size-rotated file under LOG_DIR, prefixed with the
day it was opened, and a colorized console handler on stderr. stdout is left
to the CLI's JSON output.
"""

import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

import colorlog

from neis_lookup.config import LoggingConfig


# Loggers already given handlers by setup_logger
_LOGGER_CACHE: Dict[str, logging.Logger] = {}

CONSOLE_COLORS = {
    "DEBUG": "white",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}


class LoggerConfig:
    """Handler settings resolved from LoggingConfig at construction time."""

    def __init__(self):
        self.log_dir = LoggingConfig.LOG_DIR
        self.log_level = getattr(logging, LoggingConfig.LOG_LEVEL.upper(), logging.INFO)
        self.max_bytes = LoggingConfig.MAX_LOG_SIZE
        self.backup_count = LoggingConfig.BACKUP_COUNT

        self.file_format = LoggingConfig.LOG_FORMAT
        self.date_format = LoggingConfig.DATE_FORMAT
        self.console_format = (
            "%(log_color)s%(levelname)-8s%(reset)s "
            "%(cyan)s%(name)s%(reset)s - %(message)s"
        )

        LoggingConfig.ensure_log_directory()

    def get_daily_log_filename(self, logger_name: str) -> str:
        """
        Build the file name for a logger, e.g. '20240304_neis_lookup.log'.

        Dots in the logger name become underscores.
        """
        date_prefix = datetime.now().strftime("%Y%m%d")
        base_name = logger_name.replace(".", "_").lower()
        return f"{date_prefix}_{base_name}.log"

    def get_log_file_path(self, logger_name: str) -> Path:
        return self.log_dir / self.get_daily_log_filename(logger_name)


def setup_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Attach file and console handlers to the named logger.

    Repeated calls with the same name return the same logger without adding
    handlers again. Module loggers below ``name`` propagate into it, so the
    CLI only configures the package root.

    Args:
        name: Logger name, usually the package or ``__name__``
        level: Logger and console level (defaults to LOG_LEVEL)

    Returns:
        Configured logger
    """
    if name in _LOGGER_CACHE:
        return _LOGGER_CACHE[name]

    config = LoggerConfig()
    logger = logging.getLogger(name)
    logger.setLevel(level or config.log_level)

    if logger.handlers:
        return logger

    file_handler = RotatingFileHandler(
        filename=config.get_log_file_path(name),
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(fmt=config.file_format, datefmt=config.date_format)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level or config.log_level)
    console_handler.setFormatter(
        colorlog.ColoredFormatter(
            fmt=config.console_format,
            datefmt=config.date_format,
            log_colors=CONSOLE_COLORS,
        )
    )

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    _LOGGER_CACHE[name] = logger
    return logger

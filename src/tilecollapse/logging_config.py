"""Logging configuration for tilecollapse.

All modules log through loggers below the 'tilecollapse' logger. Nothing is configured on import; applications call
'setup_logging()' once at startup:

    from tilecollapse.logging_config import setup_logging
    setup_logging(logging.DEBUG, log_file="wfc.log")
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import sys

from tilecollapse.constants import (
    LOG_CONSOLE_FORMAT,
    LOG_DATE_FORMAT,
    LOG_FILE_BACKUP_COUNT,
    LOG_FILE_MAX_BYTES,
    LOG_FORMAT,
    LOGGER_NAME,
)

# Marks handlers installed by setup_logging() so they can be replaced on re-initialization.
_HANDLER_ATTRIBUTE = "_tilecollapse_handler"


def setup_logging(
    console_level: int = logging.WARNING,
    log_file: Path | str | None = None,
    file_level: int = logging.DEBUG,
) -> logging.Logger:
    """Configures the 'tilecollapse' logger tree.

    Calling this again replaces the handlers of the previous call.

    Args:
        console_level: Level of the stderr handler.
        log_file: Optional path of a rotating log file.
        file_level: Level of the file handler.

    Returns:
        The configured 'tilecollapse' logger.
    """
    root_logger = logging.getLogger(LOGGER_NAME)
    root_logger.setLevel(min(console_level, file_level) if log_file is not None else console_level)

    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_ATTRIBUTE, False):
            root_logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(LOG_CONSOLE_FORMAT))
    setattr(console_handler, _HANDLER_ATTRIBUTE, True)
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUP_COUNT, encoding="utf-8"
        )
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        setattr(file_handler, _HANDLER_ATTRIBUTE, True)
        root_logger.addHandler(file_handler)

    return root_logger

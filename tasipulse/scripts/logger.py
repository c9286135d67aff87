"""
Logging configuration for TasiPulse.

Every pipeline module logs through a logger created here: console output at
INFO for the run transcript, and a rotating DEBUG file for post-mortems.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from tasipulse.config import settings

ROOT_LOGGER_NAME = "tasipulse"


def _build_formatter() -> logging.Formatter:
    return logging.Formatter(settings.LOG_FORMAT, datefmt=settings.LOG_DATE_FORMAT)


def setup_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Set up and configure a logger instance.

    Args:
        name: Logger name (typically __name__ of calling module)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Handlers are attached once per logger name
    if logger.handlers:
        return logger

    log_level = os.getenv("LOG_LEVEL", settings.LOG_LEVEL)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    logger.propagate = False

    formatter = _build_formatter()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    try:
        settings.ensure_directories_exist()
        file_handler = RotatingFileHandler(
            settings.get_log_file_path("pipeline.log"),
            maxBytes=settings.LOG_FILE_MAX_BYTES,
            backupCount=settings.LOG_FILE_BACKUP_COUNT,
            encoding="utf-8",
        )
    except OSError as e:
        # Read-only containers still get console logging
        logger.warning(f"File logging disabled: {e}")
    else:
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


# Create default logger instance
logger = setup_logger(ROOT_LOGGER_NAME)

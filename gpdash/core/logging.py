"""
GP Dashboard Logging Configuration
Console and rotating file logs for the dashboard API
"""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional
from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Reserve/release/sweep activity gets its own file for support questions
RESERVATION_LOGGER = "gpdash.services.inventory"
RESERVATION_LOG_FILE = "reservations.log"


def _rotating_handler(path: Path, level: int, max_mb: int, backups: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backups,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=FILE_LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(
    log_level: Optional[str] = None,
    log_to_file: Optional[bool] = None,
    log_to_console: bool = True
) -> logging.Logger:
    """
    Configure the "gpdash" logger hierarchy

    Args:
        log_level: Logging level name, defaults to settings.LOG_LEVEL
        log_to_file: Write rotating files under settings.LOG_DIR, defaults to settings.LOG_TO_FILE
        log_to_console: Log to stdout

    Returns:
        The package root logger
    """
    level = getattr(logging, (log_level or settings.LOG_LEVEL).upper(), logging.INFO)
    if log_to_file is None:
        log_to_file = settings.LOG_TO_FILE

    logger = logging.getLogger("gpdash")
    logger.setLevel(level)
    logger.handlers.clear()

    reservation_logger = logging.getLogger(RESERVATION_LOGGER)
    reservation_logger.handlers.clear()

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(console_handler)

    if log_to_file:
        log_dir = settings.LOG_DIR
        log_dir.mkdir(exist_ok=True, parents=True)

        logger.addHandler(_rotating_handler(log_dir / settings.LOG_FILE, level, 10, 5))
        logger.addHandler(_rotating_handler(log_dir / settings.ERROR_LOG_FILE, logging.ERROR, 5, 3))
        # Still propagates to the main log
        reservation_logger.addHandler(_rotating_handler(log_dir / RESERVATION_LOG_FILE, level, 5, 5))

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name"""
    return logging.getLogger(f"gpdash.{name}")


__all__ = [
    'setup_logging',
    'get_logger',
]

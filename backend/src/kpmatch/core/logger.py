"""Logging configuration and setup."""

import sys

from kpmatch.core.config import settings
from loguru import logger


def _is_unresolved(record) -> bool:
    return record["extra"].get("unresolved") is True


def setup_logging() -> None:
    """Configures Loguru logging for console and file output.

    This function removes the default handler, sets up a colorized console
    output to stderr, and initializes a rotated/compressed log file in the
    application's data directory. Unresolved releases are additionally
    written to their own file so operators can review them in one place.
    """
    logger.remove()  # Remove default handler
    logger.configure(extra={"unresolved": False})

    # Console Handler (Stderr)
    logger.add(
        sys.stderr,
        level=settings.LOG_LEVEL,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    )

    # File Handler (Rotated & Compressed)
    log_file = settings.LOG_DIR / "kpmatch.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        str(log_file),
        rotation=settings.LOG_ROTATION,
        retention=settings.LOG_RETENTION,
        compression="zip",
        level=settings.LOG_LEVEL,
        enqueue=True,  # Async logging
        backtrace=True,
        diagnose=True,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
    )

    # Unresolved releases (operator follow-up)
    logger.add(
        str(settings.LOG_DIR / settings.UNRESOLVED_LOG_NAME),
        rotation=settings.LOG_ROTATION,
        retention=settings.LOG_RETENTION,
        level="WARNING",
        enqueue=True,
        filter=_is_unresolved,
        format="{time:YYYY-MM-DD HH:mm:ss} | {message}",
    )

    logger.info(f"Logging initialized. Data Dir: {settings.DATA_DIR}")

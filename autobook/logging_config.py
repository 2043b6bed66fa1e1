"""Logging configuration using loguru"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

# Records outside a booking run carry this in place of an id
NO_BOOKING = "-"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[booking_id]}</cyan> | <level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[booking_id]} | "
    "{name}:{function}:{line} | {message}"
)


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> None:
    """
    Configure loguru for the booking worker.

    Every record carries the id of the booking being processed (bound by
    the worker with ``logger.contextualize``), so one run can be pulled out
    of a shared log with grep. Tracebacks never include local variable
    values: checkout frames hold card details.

    Args:
        verbose: Debug-level console output
        log_file: Rotating file sink, always at debug level
    """
    logger.remove()
    logger.configure(extra={"booking_id": NO_BOOKING})

    logger.add(
        sys.stdout,
        format=CONSOLE_FORMAT,
        level="DEBUG" if verbose else "INFO",
        colorize=True,
        diagnose=False,
    )

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format=FILE_FORMAT,
            level="DEBUG",
            rotation="100 MB",
            retention="30 days",
            compression="zip",
            enqueue=True,
            backtrace=True,
            diagnose=False,
        )
        logger.info(f"Logging to file: {log_file}")

"""Loguru logging configuration."""

import os
import sys
from loguru import logger


def setup_logging(level: str | None = None) -> None:
    """Configure the loguru log level."""
    if level is None:
        # Read the level from the environment
        level = os.environ.get("SCRUBKIT_LOG_LEVEL", os.environ.get("LOG_LEVEL", "INFO")).upper()

    logger.remove()  # drop the default handler
    logger.add(
        sys.stderr,
        format="<level>{time:YYYY-MM-DD HH:mm:ss} | {name}:{function}:{line} | {message}</level>",
        level=level,
        colorize=True,
        backtrace=True,
        diagnose=False,
    )

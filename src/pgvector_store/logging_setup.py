"""Loguru configuration."""

import sys

from loguru import logger


def setup_logging(level: str = "INFO") -> None:
    """Replace loguru's default handler with a single stderr sink at the given level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        colorize=True,
        backtrace=False,
    )
    logger.debug(f"Logging configured at level {level}")

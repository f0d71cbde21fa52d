"""Loguru logging configuration."""

import os
import sys

from loguru import logger


def setup_logging(level: str | None = None, log_file: str | None = None) -> None:
    """Configure loguru sinks and level."""
    if level is None:
        level = os.environ.get("LOG_LEVEL", "INFO").upper()

    logger.remove()
    logger.add(
        sys.stderr,
        format="<level>{time:YYYY-MM-DD HH:mm:ss} | {name}:{function}:{line} | {message}",
        level=level.upper(),
        colorize=True,
        backtrace=True,
        diagnose=False,
    )
    if log_file:
        logger.add(
            log_file,
            level=level.upper(),
            rotation="10 MB",
            retention=5,
            enqueue=True,
        )


if __name__ == "__main__":
    setup_logging()

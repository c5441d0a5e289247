"""
Logging setup.

Provides consistent logging across the service.
"""

import logging
import sys
from typing import Optional

from ..config import config


def setup_logging(
    level: Optional[str] = None,
    format_string: Optional[str] = None
) -> None:
    """
    Setup service logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR); defaults to LOG_LEVEL
        format_string: Custom format string (uses default if None)
    """
    if level is None:
        level = config.LOG_LEVEL

    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=format_string,
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get logger for a module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)

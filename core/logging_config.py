# neon/core/logging_config.py
"""
Logging setup for the engine entry point and scripts.
"""
import logging
import sys
from typing import Optional

from config import Config

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """
    Configure root logging once.

    Args:
        level: Level name, defaults to Config LOG_LEVEL
        log_file: Optional file path, defaults to Config LOG_FILE
    """
    level = (level or Config.get(Config.LOG_LEVEL) or "INFO").upper()
    log_file = log_file or Config.get(Config.LOG_FILE)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers
    )

    # Suppress noisy loggers
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

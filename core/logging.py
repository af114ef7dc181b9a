"""
Logging configuration
"""

import logging
import sys
from typing import Optional


LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO", log_file: Optional[str] = None):
    """
    Configure application logging.

    Records always go to stdout. When log_file is given they are appended
    to it as well; if the file cannot be opened the loader keeps logging
    to the console only.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]
    file_error = None
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))
        except OSError as e:
            file_error = e

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True
    )

    # aiomcache logs every reconnect at DEBUG
    logging.getLogger("aiomcache").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    if file_error:
        logger.warning(
            f"Can't open log file {log_file}: {file_error}. "
            f"Log will be written to the console"
        )
    logger.info(f"Logging configured at {level.upper()} level")

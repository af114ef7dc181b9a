"""
Core utilities and configuration for the installed-apps loader.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Loader settings and environment variable management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import Settings
    from core.exceptions import FatalIOError, StoreWriteError
    from core.logging import setup_logging

Example:
    settings = Settings(WORKERS=8, DRY_RUN=True)
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
"""

__all__ = [
    "Settings",
    "setup_logging",
    # Exceptions
    "LoaderException",
    "IngestionError",
    "FatalIOError",
    "StreamReadError",
    "ParseError",
    "FieldCountError",
    "EmptyFieldError",
    "CoordinateError",
    "RetryableError",
    "LoadError",
    "UnknownShardError",
    "CodecError",
    "StoreWriteError",
]

"""
Custom exceptions for the installed-apps loader with structured error context.

This module provides the exception hierarchy used throughout the loader
pipeline. Each exception carries context information for logging.

Exception Hierarchy:
    LoaderException (base)
    ├── IngestionError
    │   ├── FatalIOError
    │   └── StreamReadError
    ├── ParseError
    │   ├── FieldCountError
    │   ├── EmptyFieldError
    │   └── CoordinateError
    ├── LoadError
    │   ├── UnknownShardError
    │   ├── CodecError
    │   └── StoreWriteError
    └── RetryableError (mixin)

Only FatalIOError is allowed to escape to the command line. Everything
else is absorbed where it is detected and turned into a log line or a
counter increment.
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class LoaderException(Exception):
    """
    Base exception for all loader errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (file, line, key, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Ingestion Errors
# ============================================================================

class IngestionError(LoaderException):
    """Base exception for reading compressed input files."""
    pass


class FatalIOError(IngestionError):
    """
    Raised when an input file cannot be opened or is not gzip data,
    or when no input files were found at all. Aborts the whole run.

    Context should include:
        - file_path: Path to the input file (or the pattern)
    """
    pass


class StreamReadError(IngestionError):
    """
    Raised when decompression fails after the header was accepted.
    Aborts only the ingestion of that file.

    Context should include:
        - file_path: Path to the input file
        - lines_read: Lines handed off before the failure
    """
    pass


# ============================================================================
# Parse Errors
# ============================================================================

class ParseError(LoaderException):
    """Base exception for a single unparseable input line."""
    pass


class FieldCountError(ParseError):
    """Line does not have exactly five tab-separated fields."""
    pass


class EmptyFieldError(ParseError):
    """Device type or device id is empty."""
    pass


class CoordinateError(ParseError):
    """Latitude or longitude is not a valid float."""
    pass


# ============================================================================
# Retry Strategy Mixin
# ============================================================================

class RetryableError(LoaderException):
    """
    Mixin for errors that should trigger retry logic.

    The writer retries every store failure the same way, up to the
    configured attempt budget.
    """
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(LoaderException):
    """Base exception for writing records to the shards."""
    pass


class UnknownShardError(LoadError):
    """
    Raised when a record's device type has no shard configured.

    Context should include:
        - dev_type: The unmatched device type
    """
    pass


class CodecError(LoadError):
    """Raised when a record cannot be serialized to a UserApps payload."""
    pass


class StoreWriteError(RetryableError, LoadError):
    """
    Raised when a single memcached set attempt fails or times out.

    Context should include:
        - shard: Device type of the shard
        - address: host:port of the shard
        - key: The store key being written
    """
    pass

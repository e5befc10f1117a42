"""
DevHive Error Hierarchy

Base error and specific error types raised by the coordination store and
its callers. Errors carry metadata for structured logging.
"""

from typing import Any, Dict, Optional


class DevHiveError(RuntimeError):
    """
    Base error for DevHive components. Carries metadata for structured logging.

    Attributes:
        category: Error category for classification (e.g., "storage", "validation")
        retryable: Whether the operation can be retried
        metadata: Additional context for logging and debugging
    """

    category: str = "runtime"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        metadata: Optional[Dict[str, Any]] = None,
        retryable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.metadata = metadata or {}
        if retryable is not None:
            self.retryable = retryable


# Validation Errors
class ValidationError(DevHiveError, ValueError):
    """Raised when an input is outside its allowed domain."""

    category = "validation"


# Configuration Errors
class ConfigError(DevHiveError):
    """Raised when configuration is invalid or missing."""

    category = "config"


# Entity Errors
class NotFoundError(DevHiveError):
    """Raised when a mutation targets an entity that does not exist."""

    category = "not_found"


class ConflictError(DevHiveError):
    """Raised when a uniqueness rule would be violated (duplicate id, second active sprint)."""

    category = "conflict"


# Storage Errors
class StorageError(DevHiveError):
    """Raised when the backing database cannot be opened, migrated or written."""

    category = "storage"


class StorageBusyError(StorageError):
    """Raised when the write lock could not be acquired within the busy timeout."""

    retryable = True


def is_busy_error(exc: BaseException) -> bool:
    """Return True when a sqlite error indicates lock contention."""
    text = str(exc).lower()
    return "database is locked" in text or "database is busy" in text or "database table is locked" in text

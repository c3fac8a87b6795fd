"""
Dropship exception hierarchy.

All domain-specific exceptions inherit from DropshipError, so callers can
catch any pipeline error with a single base class while still handling the
transfer and archive cases separately.

Hierarchy::

    DropshipError
    ├── ConfigurationError        - settings loading and validation
    ├── EncodingError             - value with no text form
    ├── TransferError             - remote session failures
    │   ├── SessionConnectError   - connect/auth failure
    │   ├── RemotePermissionError - server denied access to a path
    │   └── RemotePathNotFoundError
    ├── ArchiveError              - staging file could not be archived
    ├── DataSourceError           - record retrieval / marking
    └── InitializationError       - startup orchestration failures
"""

from __future__ import annotations


class DropshipError(Exception):
    """Base exception for all Dropship errors."""

    def __init__(self, message: str, *, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# --- Configuration -----------------------------------------------------------


class ConfigurationError(DropshipError):
    """Raised when settings are missing or invalid.

    ``issues`` holds every problem found, not just the first one.
    """

    def __init__(self, issues: list[str] | str) -> None:
        if isinstance(issues, str):
            issues = [issues]
        self.issues = list(issues)
        message = "Invalid configuration:\n" + "\n".join(f"  - {issue}" for issue in self.issues)
        super().__init__(message, details={"issues": self.issues})


# --- Encoding ----------------------------------------------------------------


class EncodingError(DropshipError):
    """Raised when a field value cannot be rendered as text."""

    def __init__(self, field_key: str, value: object) -> None:
        super().__init__(
            f"Field '{field_key}' has un-renderable value of type {type(value).__name__}",
            details={"field": field_key, "type": type(value).__name__},
        )
        self.field_key = field_key


# --- Transfer ----------------------------------------------------------------


class TransferError(DropshipError):
    """Raised when a remote transfer operation fails."""


class SessionConnectError(TransferError):
    """Raised when the SFTP session cannot be established."""


class RemotePermissionError(TransferError):
    """Raised when the server denies access to a remote path."""

    def __init__(self, path: str, message: str | None = None) -> None:
        super().__init__(message or f"Permission denied: {path}", details={"path": path})
        self.path = path


class RemotePathNotFoundError(TransferError):
    """Raised when a remote path does not exist."""

    def __init__(self, path: str, message: str | None = None) -> None:
        super().__init__(message or f"Remote path not found: {path}", details={"path": path})
        self.path = path


# --- Files -------------------------------------------------------------------


class ArchiveError(DropshipError):
    """Raised when a delivered file cannot be archived.

    The source file is left in the staging directory.
    """

    def __init__(self, path: str, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(f"Failed to archive '{path}': {message}", details={"path": path})
        self.path = path
        if cause is not None:
            self.__cause__ = cause


# --- Data source -------------------------------------------------------------


class DataSourceError(DropshipError):
    """Raised when the data source cannot be read or updated."""


# --- Initialization ----------------------------------------------------------


class InitializationError(DropshipError):
    """Raised during startup when a required component fails to initialize.

    Error messages should be informative and actionable. Exception chaining
    is suppressed (``from None``) to keep CLI output clean.
    """

"""
Repository Exceptions

One exception type per repository error kind. Each carries a stable
``error_code``, structured ``details`` and, where applicable, the original
exception as ``__cause__`` so callers can match on type instead of message
text.
"""

from typing import Optional, Any, Dict


class RepositoryError(Exception):
    """Base exception for repository failures."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.error_code = error_code or "REPOSITORY_ERROR"
        self.details = details or {}
        super().__init__(self.message)
        if original_error:
            self.details.setdefault("original_error_type", type(original_error).__name__)
            self.__cause__ = original_error


class BackingStoreError(RepositoryError):
    """Raised when the relational store fails (connection, syntax, constraint)."""

    def __init__(self, operation: str, original_error: Exception):
        super().__init__(
            message=f"Backing store error during {operation}: {original_error}",
            error_code="BACKING_STORE_ERROR",
            details={"operation": operation},
            original_error=original_error,
        )


class RecordNotFoundError(RepositoryError):
    """Raised when an addressed record does not exist."""

    def __init__(self, internal_key: str):
        super().__init__(
            message=f"Record not found: {internal_key}",
            error_code="NOT_FOUND",
            details={"internal_key": internal_key},
        )


class CreationFailedError(RepositoryError):
    """Raised when an insert succeeded but the canonical re-read found nothing."""

    def __init__(self, internal_key: str):
        super().__init__(
            message=f"Failed to read back created record: {internal_key}",
            error_code="CREATION_FAILED",
            details={"internal_key": internal_key},
        )


class UpdateFailedError(RepositoryError):
    """Raised when an update affected zero rows."""

    def __init__(self, internal_key: str):
        super().__init__(
            message=f"Update affected no record: {internal_key}",
            error_code="UPDATE_FAILED",
            details={"internal_key": internal_key},
        )


class InvalidIdentifierError(RepositoryError):
    """Raised for a malformed identifier string."""

    def __init__(self, value: Any, original_error: Optional[Exception] = None):
        super().__init__(
            message=f"Invalid identifier: {value!r}",
            error_code="INVALID_IDENTIFIER",
            details={"value": str(value)},
            original_error=original_error,
        )


class RecordParseError(RepositoryError):
    """Raised when a stored value cannot be decoded into its semantic type."""

    def __init__(
        self,
        field: str,
        value: Any,
        reason: str,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=f"Cannot parse stored field '{field}': {reason}",
            error_code="PARSE_ERROR",
            details={"field": field, "value": None if value is None else str(value)},
            original_error=original_error,
        )
        self.field = field


class InvalidRecordError(RepositoryError):
    """Raised when a write payload misses a required value."""

    def __init__(self, field: str, reason: str):
        super().__init__(
            message=f"Invalid value for '{field}': {reason}",
            error_code="INVALID_RECORD",
            details={"field": field},
        )
        self.field = field

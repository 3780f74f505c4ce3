"""
Custom exceptions for Dflex Sync.

Provides a hierarchy of exceptions that map to HTTP status codes
and include structured error information.
"""

from typing import Any


class DflexSyncException(Exception):
    """
    Base exception for all Dflex Sync errors.

    All custom exceptions should inherit from this class.
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code
            details: Additional error details
        """
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


# =============================================================================
# HTTP 400 - Bad Request Errors
# =============================================================================


class BadRequestError(DflexSyncException):
    """Invalid request parameters or payload."""

    status_code = 400


class ValidationError(BadRequestError):
    """Request validation failed."""

    def __init__(
        self,
        message: str = "Validation error",
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details={"errors": errors or []},
        )


# =============================================================================
# HTTP 500 - Internal Errors
# =============================================================================


class InternalError(DflexSyncException):
    """Unexpected server-side failure."""

    status_code = 500

    def __init__(
        self,
        message: str = "Internal server error",
        code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code=code, details=details)


class DatabaseError(InternalError):
    """A store query failed on the read path."""

    def __init__(self, message: str = "Database error") -> None:
        super().__init__(message=message, code="DATABASE_ERROR")


class BulkUpdateError(InternalError):
    """
    A bulk overlay edit was rolled back.

    Nothing from the request was applied, so both counters are zero.
    """

    def __init__(self, message: str = "Bulk update rolled back") -> None:
        super().__init__(
            message=message,
            code="BULK_UPDATE_FAILED",
            details={"applied": 0, "skipped": 0},
        )

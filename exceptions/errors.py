"""
Custom exception classes for the application.

Every error raised to the API carries a code, a message, an HTTP status
and a details dict, and renders through AppError.to_dict().
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "IMPORT_SESSION_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with the current state of a resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None,
        status_code: int = 503
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=status_code,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500). The backend message is passed through unchanged."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=message,
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# EXCEL PARSER ERRORS
# ===================

class ExcelParseError(ValidationError):
    """Excel file parsing failed."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="EXCEL_PARSE_ERROR",
            message=message,
            details=details
        )


class EmptyWorkbookError(ValidationError):
    """Workbook parsed but contained no data rows."""

    def __init__(self, filename: Optional[str] = None):
        super().__init__(
            code="IMPORT_EMPTY_WORKBOOK",
            message="No rows found in the file.",
            details={"filename": filename}
        )


# ===================
# ORDER IMPORT ERRORS
# ===================

class ImportSessionNotFoundError(NotFoundError):
    """Import session expired or never existed."""

    def __init__(self, session_id: str):
        super().__init__(
            resource="Import session",
            identifier=session_id,
            code="IMPORT_SESSION_NOT_FOUND"
        )


class ImportMappingError(ValidationError):
    """Required order fields have no column mapping."""

    def __init__(self, missing_fields: list[str]):
        super().__init__(
            code="IMPORT_MAPPING_INCOMPLETE",
            message=f"Map required fields: {', '.join(missing_fields)}.",
            details={"missing_fields": missing_fields}
        )


class ImportRowsInvalidError(ValidationError):
    """One or more rows failed validation; nothing was imported."""

    def __init__(self, errors: list[dict]):
        super().__init__(
            code="IMPORT_ROWS_INVALID",
            message=" ".join(e["message"] for e in errors[:3]),
            details={"error_count": len(errors), "errors": errors}
        )


class LargeImportNotAcknowledgedError(ValidationError):
    """Large batch submitted without the acknowledgment flag."""

    def __init__(self, row_count: int, threshold: int):
        super().__init__(
            code="IMPORT_LARGE_BATCH_NOT_ACKNOWLEDGED",
            message=f"Confirm the warning before importing {threshold}+ rows.",
            details={"row_count": row_count, "threshold": threshold}
        )


class ImportInProgressError(ConflictError):
    """Confirm called while the same session is already importing."""

    def __init__(self, session_id: str):
        super().__init__(
            code="IMPORT_IN_PROGRESS",
            message="This import is already running.",
            details={"session_id": session_id}
        )


class ImportTimeoutError(AppError):
    """Bulk write did not finish within the configured timeout."""

    def __init__(self, timeout_seconds: float, chunks_committed: int, chunks_total: int):
        super().__init__(
            code="IMPORT_TIMEOUT",
            message="Import timed out. Please try again.",
            status_code=504,
            details={
                "timeout_seconds": timeout_seconds,
                "chunks_committed": chunks_committed,
                "chunks_total": chunks_total,
                # The chunk in flight when the wait ended may still commit
                "may_be_partially_applied": True,
                "retry_safe": True,
            }
        )


# ===================
# HIERARCHY ERRORS
# ===================

class HierarchyLevelNotFoundError(NotFoundError):
    """Hierarchy level not found."""

    def __init__(self, level_id: str):
        super().__init__(
            resource="Hierarchy level",
            identifier=level_id,
            code="HIERARCHY_LEVEL_NOT_FOUND"
        )


class HierarchyCreationError(ExternalServiceError):
    """One or more hierarchy nodes could not be created during import."""

    def __init__(self, results: list[dict]):
        failed = [r for r in results if r.get("error")]
        super().__init__(
            service="hierarchy",
            message=f"Failed to create {len(failed)} hierarchy item(s). No orders were imported.",
            details={"results": results, "failed_count": len(failed)},
            status_code=502
        )

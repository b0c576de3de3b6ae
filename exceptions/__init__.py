"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    ExternalServiceError,
    DatabaseError,

    # Excel parser
    ExcelParseError,
    EmptyWorkbookError,

    # Order import
    ImportSessionNotFoundError,
    ImportMappingError,
    ImportRowsInvalidError,
    LargeImportNotAcknowledgedError,
    ImportInProgressError,
    ImportTimeoutError,

    # Hierarchy
    HierarchyLevelNotFoundError,
    HierarchyCreationError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ExternalServiceError",
    "DatabaseError",

    # Excel parser
    "ExcelParseError",
    "EmptyWorkbookError",

    # Order import
    "ImportSessionNotFoundError",
    "ImportMappingError",
    "ImportRowsInvalidError",
    "LargeImportNotAcknowledgedError",
    "ImportInProgressError",
    "ImportTimeoutError",

    # Hierarchy
    "HierarchyLevelNotFoundError",
    "HierarchyCreationError",
]

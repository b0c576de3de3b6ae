"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema
from models.order import (
    OrderStatus,
    Priority,
    OrderField,
    REQUIRED_FIELDS,
    OPTIONAL_FIELDS,
    BulkImportSummary,
    OrderImportResult,
)
from models.hierarchy import (
    HierarchyLevel,
    HierarchyNode,
    HierarchyNodeCreate,
    NodeCreationResult,
    HierarchyFieldOption,
)
from models.order_import import (
    RawRow,
    ParsedWorkbook,
    ImportRow,
    RowError,
    ImportBuildResult,
    ImportSession,
    ImportPreview,
    MappingUpdate,
    ImportConfirmRequest,
)

__all__ = [
    # Base
    "BaseSchema",

    # Orders
    "OrderStatus",
    "Priority",
    "OrderField",
    "REQUIRED_FIELDS",
    "OPTIONAL_FIELDS",
    "BulkImportSummary",
    "OrderImportResult",

    # Hierarchy
    "HierarchyLevel",
    "HierarchyNode",
    "HierarchyNodeCreate",
    "NodeCreationResult",
    "HierarchyFieldOption",

    # Import
    "RawRow",
    "ParsedWorkbook",
    "ImportRow",
    "RowError",
    "ImportBuildResult",
    "ImportSession",
    "ImportPreview",
    "MappingUpdate",
    "ImportConfirmRequest",
]

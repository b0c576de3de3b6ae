"""
Order import schemas.

Covers the whole wizard: raw workbook rows, field/value mappings,
validated import rows, row errors, the server-side session and the
preview returned after every step.
"""

import math
from datetime import date, datetime, time
from typing import Any, Literal, Optional, Union

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.base import BaseSchema
from models.hierarchy import HierarchyFieldOption, HierarchyLevel
from models.order import OrderStatus, Priority
from utils.text_utils import cell_to_text

CellValue = Union[bool, int, float, datetime, date, str]

WizardStep = Literal["map", "preview"]


# ===================
# RAW INPUT
# ===================

class RawRow(BaseModel):
    """
    One spreadsheet row, schema-checked before promotion to ImportRow.

    Cells keep their native type (openpyxl yields datetimes and numbers)
    so date parsing and provenance see the original value. Empty cells
    are "".
    """

    model_config = ConfigDict(validate_assignment=True)

    row_number: int = Field(..., ge=2, description="1-based spreadsheet row (header is row 1)")
    cells: dict[str, CellValue] = Field(default_factory=dict)

    @field_validator("cells", mode="before")
    @classmethod
    def normalize_cells(cls, v: Any) -> dict:
        if not isinstance(v, dict):
            raise ValueError("cells must be a mapping of header to value")
        return {str(key).strip(): _normalize_cell(value) for key, value in v.items()}

    def get(self, header: Optional[str]) -> CellValue:
        """Raw cell under header, or "" when unmapped/absent."""
        if not header:
            return ""
        return self.cells.get(header, "")

    def text(self, header: Optional[str]) -> str:
        """Trimmed text of the cell under header."""
        return cell_to_text(self.get(header)).strip()

    def to_payload(self) -> dict[str, Any]:
        """JSON-safe copy of the row for provenance (source_payload)."""
        payload: dict[str, Any] = {}
        for key, value in self.cells.items():
            if isinstance(value, (datetime, date)):
                payload[key] = value.isoformat()
            else:
                payload[key] = value
        return payload


def _normalize_cell(value: Any) -> Any:
    if value is None or value is pd.NaT:
        return ""
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return ""
    if isinstance(value, time):
        return value.isoformat()
    if isinstance(value, (bool, int, float, datetime, date, str)):
        return value
    return str(value)


class ParsedWorkbook(BaseModel):
    """First worksheet of an uploaded workbook."""

    headers: list[str] = Field(default_factory=list)
    rows: list[RawRow] = Field(default_factory=list)


# ===================
# VALIDATED OUTPUT
# ===================

class ImportRow(BaseSchema):
    """A fully validated, enum-resolved order ready for bulk persistence."""

    order_number: str = Field(..., min_length=1)
    customer_name: str = Field(..., min_length=1)
    due_date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    priority: Priority = Priority.NORMAL
    status: OrderStatus = OrderStatus.DRAFT
    customer_email: Optional[str] = None
    product_name: Optional[str] = None
    quantity: Optional[Union[int, float]] = None
    notes: Optional[str] = None
    hierarchy: Optional[dict[str, str]] = Field(
        None,
        description="Level id → label (or node id once hierarchy items are resolved)"
    )
    source_payload: Optional[dict[str, Any]] = None


class RowError(BaseSchema):
    """Validation failure for one source row (row 0 = whole batch)."""

    row: int = Field(..., ge=0)
    message: str


class ImportBuildResult(BaseSchema):
    """Valid rows and row errors from one validation pass."""

    rows: list[ImportRow] = Field(default_factory=list)
    errors: list[RowError] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


# ===================
# WIZARD SESSION
# ===================

class ImportSession(BaseSchema):
    """Server-side state of one import wizard run."""

    model_config = ConfigDict(str_strip_whitespace=False)

    session_id: str
    tenant_id: Optional[str] = None
    file_name: str = ""
    file_hash: str = ""
    step: WizardStep = "map"
    headers: list[str] = Field(default_factory=list)
    rows: list[RawRow] = Field(default_factory=list)
    levels: list[HierarchyLevel] = Field(default_factory=list)
    mapping: dict[str, str] = Field(default_factory=dict)
    status_mapping: dict[str, OrderStatus] = Field(default_factory=dict)
    priority_mapping: dict[str, Priority] = Field(default_factory=dict)
    defaulted_status_values: list[str] = Field(default_factory=list)
    defaulted_priority_values: list[str] = Field(default_factory=list)
    create_hierarchy_items: bool = False
    acknowledge_large_import: bool = False
    is_importing: bool = False


class ValueMappingEntry(BaseSchema):
    """One raw value and the enum it maps to."""

    raw: str
    value: str
    defaulted: bool = Field(
        False,
        description="True when the raw value was not recognized and the safe default was applied"
    )


class FieldOption(BaseSchema):
    """An order field offered in the mapping step."""

    key: str
    label: str
    required: bool = False


class PreviewRow(BaseSchema):
    """A source row as currently mapped, for on-screen preview."""

    order_number: str = ""
    customer_name: str = ""
    due_date: str = ""
    product_name: str = ""
    status: str = ""


class ImportPreview(BaseSchema):
    """Everything the wizard needs to render the map and preview steps."""

    session_id: str
    file_name: str
    step: WizardStep
    headers: list[str]
    fields: list[FieldOption]
    hierarchy_fields: list[HierarchyFieldOption]
    mapping: dict[str, str]
    status_values: list[ValueMappingEntry]
    priority_values: list[ValueMappingEntry]
    create_hierarchy_items: bool
    acknowledge_large_import: bool
    row_count: int
    valid_row_count: int
    error_count: int
    errors: list[RowError]
    preview_rows: list[PreviewRow]
    large_import: bool
    import_enabled: bool
    expires_in_minutes: int


# ===================
# REQUESTS
# ===================

class MappingUpdate(BaseSchema):
    """
    Partial update of the wizard state.

    Mapping entries are merged; a null or blank header unmaps the field.
    """

    mapping: Optional[dict[str, Optional[str]]] = None
    status_mapping: Optional[dict[str, OrderStatus]] = None
    priority_mapping: Optional[dict[str, Priority]] = None
    create_hierarchy_items: Optional[bool] = None
    acknowledge_large_import: Optional[bool] = None
    step: Optional[WizardStep] = None


class ImportConfirmRequest(BaseSchema):
    """Commit the session's rows."""

    acknowledge_large_import: bool = Field(
        False,
        description="Required for batches at or above the large-import threshold"
    )

"""
Excel parser for order imports.

Reads the first worksheet of an uploaded .xlsx workbook into RawRow
objects (header row → keys), builds the downloadable import template,
and pre-fills column mappings for files that follow the template.
"""

from io import BytesIO
from pathlib import Path
from typing import Iterable, Optional, Union
import structlog

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment
from pydantic import ValidationError as PydanticValidationError

from exceptions import ExcelParseError, EmptyWorkbookError
from models.order import REQUIRED_FIELDS, OPTIONAL_FIELDS
from models.hierarchy import HierarchyFieldOption
from models.order_import import ParsedWorkbook, RawRow
from utils.text_utils import normalize_enum

logger = structlog.get_logger(__name__)

# Template column order
BASE_ORDER_COLUMNS = [
    "Order #",
    "Customer Name",
    "Customer Email",
    "Product",
    "Quantity",
    "Due Date",
    "Priority",
    "Status",
    "Notes",
]

TEMPLATE_SHEET_NAME = "Orders"
HEADER_FILL = PatternFill(start_color="DDEBF7", end_color="DDEBF7", fill_type="solid")


def parse_orders_workbook(
    file: Union[str, Path, BytesIO],
    filename: Optional[str] = None,
) -> ParsedWorkbook:
    """
    Parse the first worksheet of an order workbook.

    Args:
        file: File path (str/Path) or file-like object (BytesIO)
        filename: Original upload name, for logs and errors

    Returns:
        ParsedWorkbook with stripped headers and one RawRow per data row

    Raises:
        ExcelParseError: If the file can't be read as .xlsx
        EmptyWorkbookError: If the sheet has no data rows
    """
    logger.info("parsing_orders_workbook", filename=filename, file_type=type(file).__name__)

    try:
        df = pd.read_excel(file, sheet_name=0, header=0, dtype=object, engine="openpyxl")
    except Exception as e:
        logger.error("orders_workbook_read_failed", filename=filename, error=str(e))
        raise ExcelParseError(
            message="Failed to read Excel file. Upload an .xlsx workbook.",
            details={"filename": filename, "original_error": str(e)}
        )

    df.columns = [str(col).strip() for col in df.columns]

    # Blank header cells come back as "Unnamed: N"; drop them when the column is empty too
    empty_unnamed = [
        col for col in df.columns
        if col.startswith("Unnamed:") and df[col].isna().all()
    ]
    if empty_unnamed:
        df = df.drop(columns=empty_unnamed)

    df = df.dropna(how="all").reset_index(drop=True)

    if df.empty:
        logger.warning("orders_workbook_empty", filename=filename)
        raise EmptyWorkbookError(filename)

    headers = list(df.columns)
    rows: list[RawRow] = []
    try:
        for idx, record in enumerate(df.to_dict(orient="records")):
            rows.append(RawRow(row_number=idx + 2, cells=record))
    except PydanticValidationError as e:
        raise ExcelParseError(
            message="Workbook contains cells that can't be read",
            details={"filename": filename, "original_error": str(e)}
        )

    logger.info(
        "orders_workbook_parsed",
        filename=filename,
        header_count=len(headers),
        row_count=len(rows)
    )

    return ParsedWorkbook(headers=headers, rows=rows)


def build_orders_template(level_names: Iterable[str]) -> BytesIO:
    """
    Build an empty import template.

    Args:
        level_names: Hierarchy level names; each becomes a "Hierarchy:<name>" column

    Returns:
        BytesIO containing the .xlsx file
    """
    headers = BASE_ORDER_COLUMNS + [f"Hierarchy:{name}" for name in level_names]

    wb = Workbook()
    ws = wb.active
    ws.title = TEMPLATE_SHEET_NAME

    for col_idx, header in enumerate(headers, start=1):
        cell = ws.cell(row=1, column=col_idx, value=header)
        cell.font = Font(bold=True)
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center")
        ws.column_dimensions[cell.column_letter].width = max(14, len(header) + 4)

    ws.freeze_panes = "A2"

    output = BytesIO()
    wb.save(output)
    output.seek(0)

    logger.info("orders_template_built", column_count=len(headers))
    return output


def _match_key(text: str) -> str:
    """'Order #' → 'order', 'Order Number' → 'ordernumber'."""
    return normalize_enum(text).replace("_", "")


def suggest_field_mapping(
    headers: list[str],
    hierarchy_fields: list[HierarchyFieldOption],
) -> dict[str, str]:
    """
    Pre-fill the field mapping from header names.

    A header matches a field when its normalized text equals the field's
    label ("Due Date") or key ("dueDate"). Each header is used at most once.
    """
    candidates: list[tuple[str, set[str]]] = [
        (field.value, {_match_key(field.label), _match_key(field.value)})
        for field in (*REQUIRED_FIELDS, *OPTIONAL_FIELDS)
    ]
    candidates += [(opt.key, {_match_key(opt.label)}) for opt in hierarchy_fields]

    mapping: dict[str, str] = {}
    used: set[str] = set()
    for field_key, keys in candidates:
        for header in headers:
            if header in used:
                continue
            if _match_key(header) in keys:
                mapping[field_key] = header
                used.add(header)
                break

    logger.debug("field_mapping_suggested", mapped=len(mapping), headers=len(headers))
    return mapping

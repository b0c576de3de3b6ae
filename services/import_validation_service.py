"""
Row validation for order imports.

Turns raw workbook rows plus the current field/value mappings into
validated ImportRow objects and a list of row errors. Validation is pure
and synchronous so it can be recomputed after every mapping change.

Rules (in order):
    1. Any required field without a column mapping → one batch error, no rows.
    2. Missing required values → one error per row naming the fields.
    3. Duplicate order numbers → first occurrence wins.
    4. Status/priority resolved through value mappings with safe defaults.
    5. Non-numeric quantity → "Invalid Quantity."
    6. Mapped hierarchy values and the raw row attached as provenance.
"""

import csv
import io
import math
import re
from typing import Iterable, Mapping, Optional, Union
import structlog

from models.hierarchy import HierarchyFieldOption, HierarchyLevel
from models.order import OrderField, OrderStatus, Priority, REQUIRED_FIELDS
from models.order_import import (
    ImportBuildResult,
    ImportRow,
    PreviewRow,
    RawRow,
    RowError,
)
from services.value_mapping_service import resolve_priority, resolve_status
from utils.date_utils import parse_date_cell
from utils.text_utils import normalize_enum

logger = structlog.get_logger(__name__)

# Row 1 is the header; the first data row (index 0) is row 2
HEADER_ROW_OFFSET = 2

LARGE_IMPORT_THRESHOLD = 1000

_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


def hierarchy_field_options(levels: Iterable[HierarchyLevel]) -> list[HierarchyFieldOption]:
    """Mappable hierarchy columns (assignment levels excluded)."""
    return [
        HierarchyFieldOption(key=level.field_key, label=level.field_label, level_id=level.id)
        for level in levels
        if level.importable
    ]


def missing_required_mappings(mapping: Mapping[str, str]) -> list[str]:
    """Labels of required fields with no column mapped."""
    return [field.label for field in REQUIRED_FIELDS if not mapping.get(field.value)]


def parse_quantity(text: str) -> tuple[Optional[Union[int, float]], bool]:
    """
    Parse a quantity cell.

    Returns:
        (value, ok). Empty text gives (None, True); garbage gives (None, False).
    """
    if not text:
        return None, True
    if not _NUMBER.match(text):
        return None, False
    value = float(text)
    if not math.isfinite(value):
        return None, False
    if value.is_integer():
        return int(value), True
    return value, True


def build_import_rows(
    rows: list[RawRow],
    mapping: Mapping[str, str],
    status_mapping: Mapping[str, OrderStatus],
    priority_mapping: Mapping[str, Priority],
    hierarchy_fields: Iterable[HierarchyFieldOption] = (),
) -> ImportBuildResult:
    """
    Validate raw rows against the current mappings.

    Args:
        rows: Raw rows in file order
        mapping: Field key → workbook header
        status_mapping: Raw status value → OrderStatus
        priority_mapping: Raw priority value → Priority
        hierarchy_fields: Hierarchy columns that may be mapped

    Returns:
        ImportBuildResult with valid rows and row errors (both may be non-empty)
    """
    missing = missing_required_mappings(mapping)
    if missing:
        return ImportBuildResult(
            rows=[],
            errors=[RowError(row=0, message=f"Map required fields: {', '.join(missing)}.")]
        )

    def column(field: OrderField) -> Optional[str]:
        return mapping.get(field.value) or None

    mapped_hierarchy = [
        (opt.level_id, mapping[opt.key])
        for opt in hierarchy_fields
        if mapping.get(opt.key)
    ]

    seen_order_numbers: set[str] = set()
    import_rows: list[ImportRow] = []
    errors: list[RowError] = []

    for index, row in enumerate(rows):
        row_number = index + HEADER_ROW_OFFSET

        order_number = row.text(column(OrderField.ORDER_NUMBER))
        customer_name = row.text(column(OrderField.CUSTOMER_NAME))
        due_date = parse_date_cell(row.get(column(OrderField.DUE_DATE)))

        if not order_number or not customer_name or not due_date:
            missing_values = [
                field.label
                for field, value in (
                    (OrderField.ORDER_NUMBER, order_number),
                    (OrderField.CUSTOMER_NAME, customer_name),
                    (OrderField.DUE_DATE, due_date),
                )
                if not value
            ]
            errors.append(RowError(
                row=row_number,
                message=f"Missing required values: {', '.join(missing_values)}."
            ))
            continue

        if order_number in seen_order_numbers:
            errors.append(RowError(row=row_number, message=f"Duplicate Order # {order_number}."))
            continue
        seen_order_numbers.add(order_number)

        priority = resolve_priority(row.text(column(OrderField.PRIORITY)), priority_mapping)
        status = resolve_status(row.text(column(OrderField.STATUS)), status_mapping)

        quantity, quantity_ok = parse_quantity(row.text(column(OrderField.QUANTITY)))
        if not quantity_ok:
            errors.append(RowError(row=row_number, message="Invalid Quantity."))
            continue

        hierarchy: dict[str, str] = {}
        for level_id, header in mapped_hierarchy:
            value = row.text(header)
            if value:
                hierarchy[level_id] = value

        import_rows.append(ImportRow(
            order_number=order_number,
            customer_name=customer_name,
            due_date=due_date,
            priority=priority,
            status=status,
            customer_email=row.text(column(OrderField.CUSTOMER_EMAIL)) or None,
            product_name=row.text(column(OrderField.PRODUCT_NAME)) or None,
            quantity=quantity,
            notes=row.text(column(OrderField.NOTES)) or None,
            hierarchy=hierarchy or None,
            source_payload=row.to_payload(),
        ))

    logger.debug(
        "import_rows_built",
        source_rows=len(rows),
        valid_rows=len(import_rows),
        error_count=len(errors)
    )

    return ImportBuildResult(rows=import_rows, errors=errors)


def build_preview_rows(
    rows: list[RawRow],
    mapping: Mapping[str, str],
    limit: int = 5,
) -> list[PreviewRow]:
    """First rows as currently mapped; values are shown even when invalid."""
    def column(field: OrderField) -> Optional[str]:
        return mapping.get(field.value) or None

    return [
        PreviewRow(
            order_number=row.text(column(OrderField.ORDER_NUMBER)),
            customer_name=row.text(column(OrderField.CUSTOMER_NAME)),
            due_date=parse_date_cell(row.get(column(OrderField.DUE_DATE))),
            product_name=row.text(column(OrderField.PRODUCT_NAME)),
            status=normalize_enum(row.get(column(OrderField.STATUS))),
        )
        for row in rows[:limit]
    ]


def is_large_import(row_count: int, threshold: int = LARGE_IMPORT_THRESHOLD) -> bool:
    return row_count >= threshold


def is_import_enabled(
    row_count: int,
    error_count: int,
    acknowledged: bool,
    is_importing: bool = False,
    threshold: int = LARGE_IMPORT_THRESHOLD,
) -> bool:
    """
    Whether the Import action may run.

    Blocked while importing, while any row error exists, and for batches
    of `threshold`+ rows until the user acknowledges the large import.
    """
    if is_importing or error_count > 0 or row_count == 0:
        return False
    if is_large_import(row_count, threshold) and not acknowledged:
        return False
    return True


def errors_to_csv(errors: Iterable[RowError]) -> str:
    """
    Render row errors as CSV with a `row,error` header.

    The message is always quoted with internal quotes doubled:
        2,"Duplicate Order # PO-1."
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    buffer.write("row,error\n")
    for error in errors:
        writer.writerow([error.row, error.message])
    return buffer.getvalue().rstrip("\n")

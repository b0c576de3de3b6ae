"""
Unit tests for the order workbook parser and template.
"""

from datetime import datetime
from io import BytesIO

import pandas as pd
import pytest
from openpyxl import load_workbook

from exceptions import EmptyWorkbookError, ExcelParseError
from models.hierarchy import HierarchyFieldOption
from parsers.orders_excel_parser import (
    BASE_ORDER_COLUMNS,
    build_orders_template,
    parse_orders_workbook,
    suggest_field_mapping,
)


def create_excel_file(rows: list[list], columns: list[str]) -> BytesIO:
    """Helper to create test Excel files in memory."""
    output = BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        pd.DataFrame(rows, columns=columns).to_excel(writer, sheet_name="Orders", index=False)
    output.seek(0)
    return output


class TestParseWorkbook:

    def test_headers_and_rows(self):
        excel_file = create_excel_file(
            [["PO-1", "Acme", "2026-01-15"], ["PO-2", "Globex", "2026-02-01"]],
            [" Order # ", "Customer Name", "Due Date"],
        )

        workbook = parse_orders_workbook(excel_file, filename="orders.xlsx")

        assert workbook.headers == ["Order #", "Customer Name", "Due Date"]
        assert len(workbook.rows) == 2
        assert workbook.rows[0].row_number == 2
        assert workbook.rows[1].text("Customer Name") == "Globex"

    def test_native_dates_preserved(self):
        excel_file = create_excel_file(
            [["PO-1", datetime(2026, 3, 4)]],
            ["Order #", "Due Date"],
        )

        workbook = parse_orders_workbook(excel_file)

        value = workbook.rows[0].get("Due Date")
        assert isinstance(value, datetime)
        assert value.date().isoformat() == "2026-03-04"

    def test_empty_cells_are_blank(self):
        excel_file = create_excel_file([["PO-1", None]], ["Order #", "Notes"])

        workbook = parse_orders_workbook(excel_file)

        assert workbook.rows[0].get("Notes") == ""

    def test_no_data_rows(self):
        excel_file = create_excel_file([], ["Order #", "Customer Name"])

        with pytest.raises(EmptyWorkbookError) as exc_info:
            parse_orders_workbook(excel_file, filename="empty.xlsx")

        assert exc_info.value.message == "No rows found in the file."

    def test_not_an_excel_file(self):
        with pytest.raises(ExcelParseError):
            parse_orders_workbook(BytesIO(b"order,customer\nPO-1,Acme"), filename="orders.csv")


class TestTemplate:

    def test_template_columns(self):
        buffer = build_orders_template(["Contract", "Category"])

        ws = load_workbook(buffer).active
        headers = [cell.value for cell in ws[1]]

        assert ws.title == "Orders"
        assert headers == BASE_ORDER_COLUMNS + ["Hierarchy:Contract", "Hierarchy:Category"]
        assert ws.max_row == 1


class TestSuggestFieldMapping:

    def test_template_headers_round_trip(self):
        contract = HierarchyFieldOption(key="hierarchy:lvl-c", label="Hierarchy:Contract", level_id="lvl-c")
        headers = BASE_ORDER_COLUMNS + ["Hierarchy:Contract"]

        mapping = suggest_field_mapping(headers, [contract])

        assert mapping == {
            "orderNumber": "Order #",
            "customerName": "Customer Name",
            "dueDate": "Due Date",
            "customerEmail": "Customer Email",
            "productName": "Product",
            "quantity": "Quantity",
            "priority": "Priority",
            "status": "Status",
            "notes": "Notes",
            "hierarchy:lvl-c": "Hierarchy:Contract",
        }

    def test_field_keys_and_case_match(self):
        mapping = suggest_field_mapping(["ORDERNUMBER", "due date", "Something"], [])

        assert mapping == {"orderNumber": "ORDERNUMBER", "dueDate": "due date"}

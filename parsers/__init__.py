"""
Excel and file parsers module.
"""

from parsers.orders_excel_parser import (
    parse_orders_workbook,
    build_orders_template,
    suggest_field_mapping,
)

__all__ = [
    "parse_orders_workbook",
    "build_orders_template",
    "suggest_field_mapping",
]

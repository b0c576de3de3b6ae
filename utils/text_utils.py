"""
Text utilities for spreadsheet cell values.

Used to turn free-text cells into enum slugs, compare hierarchy labels,
and render cells as the text a user typed.
"""

import math
import re
from datetime import date, datetime
from typing import Any

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_enum(value: Any) -> str:
    """
    Turn a free-text cell into an enum slug.

    - " Ready For Engineering " → "ready_for_engineering"
    - "In-Production!" → "in_production"
    - "" / "   " / None → ""

    An empty result means "no mapping"; callers decide the fallback.
    """
    text = cell_to_text(value).strip().lower()
    if not text:
        return ""
    return _NON_ALNUM.sub("_", text).strip("_")


def normalize_label(label: str) -> str:
    """Case-insensitive comparison key for hierarchy node labels."""
    return (label or "").strip().lower()


def cell_to_text(value: Any) -> str:
    """
    Render a cell value as text without reformatting it.

    Integral floats lose their trailing ".0" (Excel stores 1001 as 1001.0),
    dates render as ISO, empty/NaN cells render as "".
    """
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, datetime):
        if value.time() == datetime.min.time():
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)

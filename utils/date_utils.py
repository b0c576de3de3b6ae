"""
Date-cell normalization for spreadsheet imports.

Cells arrive as native dates (openpyxl), ISO strings, European dotted
dates, US slashed dates, or free text. Everything is reduced to a
canonical YYYY-MM-DD string, or "" when the cell can't be read as a date.

Pattern precedence is fixed: ISO → dotted (D.M.YYYY) → slashed (M/D/YYYY)
→ generic parser. "01/02/2026" is therefore always January 2nd.
"""

import re
import warnings
from datetime import date, datetime
from typing import Any, Optional

import pandas as pd

ISO_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
DOTTED_PATTERN = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")
SLASHED_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def parse_date_cell(value: Any) -> str:
    """
    Convert a spreadsheet cell to a YYYY-MM-DD string.

    Args:
        value: Cell value (date, datetime, pandas Timestamp, str, number, None)

    Returns:
        ISO date string, or "" if empty or unparseable. Never raises.

    Examples:
        >>> parse_date_cell("2026-3-4")
        '2026-03-04'
        >>> parse_date_cell("04.03.2026")
        '2026-03-04'
        >>> parse_date_cell("03/04/2026")
        '2026-03-04'
        >>> parse_date_cell("not-a-date")
        ''
    """
    if value is None or value is pd.NaT:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    raw = str(value).strip()
    if not raw:
        return ""

    match = ISO_PATTERN.match(raw)
    if match:
        year, month, day = match.groups()
        return _format_parts(year, month, day)

    match = DOTTED_PATTERN.match(raw)
    if match:
        day, month, year = match.groups()
        return _format_parts(year, month, day)

    match = SLASHED_PATTERN.match(raw)
    if match:
        month, day, year = match.groups()
        return _format_parts(year, month, day)

    return _parse_generic(raw)


def _format_parts(year: str, month: str, day: str) -> str:
    """Build ISO string from regex groups; impossible dates give ""."""
    try:
        return date(int(year), int(month), int(day)).isoformat()
    except ValueError:
        return ""


def _parse_generic(raw: str) -> str:
    """Last-resort parse through pandas (dateutil under the hood)."""
    try:
        with warnings.catch_warnings():
            # pandas warns when it has to guess the format per element
            warnings.simplefilter("ignore")
            parsed: Optional[pd.Timestamp] = pd.to_datetime(raw, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return ""
    if parsed is None or pd.isna(parsed):
        return ""
    return parsed.date().isoformat()

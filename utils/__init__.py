"""
Shared helpers for spreadsheet cell values.
"""

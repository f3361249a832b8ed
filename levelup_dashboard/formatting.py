"""
Display formatting for report tables and spreadsheet cells.

Exports are inconsistent about percentages: some hold 0-1 ratios, others
already-multiplied values. format_value() renders both as "xx.xx%" without
per-game configuration: values <= 1 are scaled by 100, larger ones are not.
"""

import re
from collections.abc import Iterable
from typing import Any

import pandas as pd

from .config import DATE_COLUMNS, PERCENTAGE_COLUMNS
from .loaders.utils import is_blank, safe_float

# 24/03/2025, 2025-03-24, 03-24-2025 ...
_DATE_LIKE = re.compile(r"^\d{1,4}[/-]\d{1,2}[/-]\d{1,4}")


def is_percent_column(column: str, percent_columns: Iterable[str] | None = None) -> bool:
    lowered = str(column).lower()
    patterns = PERCENTAGE_COLUMNS if percent_columns is None else percent_columns
    return any(p.lower() in lowered for p in patterns)


def is_date_column(column: str, date_columns: Iterable[str] | None = None) -> bool:
    lowered = str(column).lower()
    patterns = DATE_COLUMNS if date_columns is None else date_columns
    return any(d.lower() in lowered for d in patterns)


def looks_like_date(value: Any) -> bool:
    return isinstance(value, str) and bool(_DATE_LIKE.match(value.strip()))


def format_percent(num: float) -> str:
    """Ratio (<= 1) or already-percent (> 1) number as 'xx.xx%'."""
    if num <= 1:
        return f"{num * 100:.2f}%"
    return f"{num:.2f}%"


def format_value(
    value: Any,
    column: str,
    percent_columns: Iterable[str] | None = None,
    date_columns: Iterable[str] | None = None,
) -> str:
    """Render one cell for display.

    Rules, first match wins:
    1. date columns and date-looking strings pass through untouched
    2. numbers in percentage columns render as 'xx.xx%'
    3. other numbers: integers bare, the rest with two decimals
    4. anything else as str(); blanks and NaN as ''
    """
    if is_blank(value):
        return ""

    if is_date_column(column, date_columns) or looks_like_date(value):
        return str(value)

    num = safe_float(value)
    if num is None:
        return str(value)

    if is_percent_column(column, percent_columns):
        return format_percent(num)

    if num.is_integer():
        return str(int(num))
    return f"{num:.2f}"


def excel_value(value: Any, column: str) -> Any:
    """Cell value for spreadsheet export.

    Percentages become display strings; other numbers stay numeric so the
    spreadsheet can still sort and sum them.
    """
    if is_blank(value):
        return ""
    if is_date_column(column) or looks_like_date(value):
        return value

    num = safe_float(value)
    if num is None:
        return value
    if is_percent_column(column):
        return format_percent(num)
    if num.is_integer():
        return int(num)
    return round(num, 2)


def format_frame(
    df: pd.DataFrame,
    percent_columns: Iterable[str] | None = None,
    date_columns: Iterable[str] | None = None,
) -> pd.DataFrame:
    """String copy of a table with every cell passed through format_value()."""
    formatted = {
        col: [format_value(v, col, percent_columns, date_columns) for v in df[col]]
        for col in df.columns
    }
    return pd.DataFrame(formatted, columns=list(df.columns), index=df.index)


def _header_forms(header: str) -> tuple[str, str]:
    lowered = str(header).lower().strip()
    return lowered, re.sub(r"\s+", "", lowered)


def _match_header(header: str, names: Iterable[str]) -> int | None:
    """Index of the configured name that refers to header, or None."""
    names = list(names)
    lowered, compact = _header_forms(header)
    for idx, name in enumerate(names):
        if _header_forms(name)[0] == lowered:
            return idx
    for idx, name in enumerate(names):
        if _header_forms(name)[1] == compact:
            return idx
    return None


def apply_column_settings(
    df: pd.DataFrame,
    column_order: Iterable[str] = (),
    column_renames: dict[str, str] | None = None,
    hidden_columns: Iterable[str] = (),
) -> pd.DataFrame:
    """Reorder, hide and rename columns for display.

    Header matching ignores case and whitespace. Columns missing from
    column_order keep their relative order after the listed ones.
    """
    column_order = list(column_order)
    hidden_columns = list(hidden_columns)
    columns = [c for c in df.columns if _match_header(c, hidden_columns) is None]

    if column_order:
        indexed = [(c, _match_header(c, column_order)) for c in columns]
        listed = sorted((item for item in indexed if item[1] is not None), key=lambda item: item[1])
        columns = [c for c, _ in listed] + [c for c, idx in indexed if idx is None]

    renames = {}
    if column_renames:
        keys = list(column_renames)
        for col in columns:
            if col in column_renames:
                renames[col] = column_renames[col]
                continue
            idx = _match_header(col, keys)
            if idx is not None:
                renames[col] = column_renames[keys[idx]]

    return df.loc[:, columns].rename(columns=renames)

"""
Shared utilities for data ingestion: numeric coercion, level parsing,
CSV text round-tripping, file-name sanitising.
"""

import io
import logging
import math
import re
import unicodedata
from typing import Any

import pandas as pd

logger = logging.getLogger(__name__)


def is_blank(val: Any) -> bool:
    """True for None, empty/whitespace strings and float NaN."""
    if val is None:
        return True
    if isinstance(val, str):
        return not val.strip()
    if isinstance(val, float):
        return math.isnan(val)
    return False


def safe_float(val: Any) -> float | None:
    """Coerce a value to float, returning None for non-numeric values.

    Handles percentage strings like "78%" and thousands separators like
    "1,250". Infinite and NaN results are treated as non-numeric.
    """
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        result = float(val)
    else:
        text = str(val).strip().replace("%", "").replace(",", "")
        if not text:
            return None
        try:
            result = float(text)
        except ValueError:
            return None
    if not math.isfinite(result):
        return None
    return result


def parse_level(val: Any) -> int | None:
    """Parse a level number. Returns None when the value is not numeric."""
    num = safe_float(val)
    if num is None:
        return None
    return int(num)


def read_csv_text(text: str) -> pd.DataFrame:
    """Parse CSV export text (header row, comma-delimited, standard quoting).

    Every cell is kept as a string; empty cells become "". Blank lines are
    skipped. Empty input yields an empty DataFrame.
    """
    if not text or not text.strip():
        return pd.DataFrame()
    df = pd.read_csv(
        io.StringIO(text),
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
    )
    df.columns = [str(c).strip() for c in df.columns]
    logger.info("Parsed CSV export with %d rows, %d columns", len(df), len(df.columns))
    return df


def to_csv_text(df: pd.DataFrame) -> str:
    """Serialise a table back to CSV text in the same dialect it was read in."""
    if df.empty and not len(df.columns):
        return ""
    return df.to_csv(index=False)


def slugify_filename(name: str) -> str:
    """Strip accents and replace anything outside [A-Za-z0-9._-] with '_'."""
    decomposed = unicodedata.normalize("NFD", name)
    ascii_only = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r"[^a-zA-Z0-9._-]", "_", ascii_only)

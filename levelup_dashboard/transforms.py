"""
Data transforms: detect the layout of a BI export and pivot it into
wide format (one row per level, one column per metric).

Three input layouts are handled:

- long: one row per (level, metric) with a metric-name and a value column
- A/B: one row per (level, arm) with a column whose values say
  "Baseline" or "Variant ..."
- wide: anything else, returned unchanged
"""

import logging

import numpy as np
import pandas as pd

from .columns import find_column, metric_text, metric_value, normalize_key
from .config import AB_PIVOT_METRICS, LEVEL_COLUMNS, META_COLUMNS
from .loaders.utils import is_blank, parse_level

logger = logging.getLogger(__name__)

LONG_METRIC_COLUMNS = ["Metrics", "Metric Name", "Metric Result", "Measure Names"]
LONG_VALUE_COLUMNS = ["Value", "Measure Values"]

MEASURE_NAMES = "Measure Names"
MEASURE_VALUES = "Measure Values"

# Rows inspected when looking for the Baseline/Variant indicator column
VARIANT_SAMPLE_ROWS = 10


def to_wide(df: pd.DataFrame) -> pd.DataFrame:
    """Pivot a long or A/B export into wide format.

    Returns a copy of the input when neither layout is detected.
    """
    if df.empty:
        return df.copy()

    columns = list(df.columns)
    metric_col = next((c for c in LONG_METRIC_COLUMNS if c in columns), None)
    value_col = next((c for c in LONG_VALUE_COLUMNS if c in columns), None)
    if metric_col and value_col:
        return pivot_long_format(df, metric_col, value_col)

    variant_col = detect_variant_column(df)
    if variant_col:
        return pivot_variant_format(df, variant_col)

    return df.copy()


def detect_variant_column(df: pd.DataFrame) -> str | None:
    """Return the first column whose sampled values mention baseline/variant."""
    for record in df.head(VARIANT_SAMPLE_ROWS).to_dict("records"):
        for col, val in record.items():
            text = "" if is_blank(val) else str(val).lower()
            if "baseline" in text or "variant" in text:
                return col
    return None


def pivot_long_format(df: pd.DataFrame, metric_col: str, value_col: str) -> pd.DataFrame:
    """Pivot one-row-per-metric data into one row per level.

    Parameters
    ----------
    df : Long-format export.
    metric_col : Column holding the metric name.
    value_col : Column holding the metric value.

    Returns
    -------
    DataFrame with a 'Level' column followed by one column per metric name,
    in first-seen level order. "Total User" style metric names are stored
    under 'TotalUser'.
    """
    level_col = find_column(df.columns, "LevelID", "Level")
    if level_col is None:
        logger.warning("Long-format export has no level column; leaving it unpivoted")
        return df.copy()

    pivoted: dict[str, dict] = {}
    for record in df.to_dict("records"):
        level = record.get(level_col)
        if is_blank(level):
            continue
        acc = pivoted.setdefault(level, {"Level": level})

        metric_name = record.get(metric_col)
        if is_blank(metric_name):
            continue
        metric_name = str(metric_name).strip()
        if normalize_key(metric_name) == "totaluser":
            metric_name = "TotalUser"
        acc[metric_name] = record.get(value_col)

    result = pd.DataFrame(list(pivoted.values()))
    logger.info("Pivoted long-format export to %d wide rows", len(result))
    return result


def pivot_variant_format(df: pd.DataFrame, variant_col: str) -> pd.DataFrame:
    """Pivot Baseline/Variant rows into one row per level.

    For each metric in AB_PIVOT_METRICS the output carries
    '<metric> Baseline' and '<metric> Variant A'. A level missing one arm
    keeps its row with NaN on that side.
    """
    level_col = find_column(df.columns, *LEVEL_COLUMNS)
    if level_col is None:
        logger.warning("A/B export has no level column; leaving it unpivoted")
        return df.copy()

    groups: dict[str, dict] = {}
    for record in df.to_dict("records"):
        level = record.get(level_col)
        if is_blank(level):
            continue
        group = groups.setdefault(level, {
            "baseline": None,
            "variant": None,
            "FinalCluster": metric_text(record, *META_COLUMNS["FinalCluster"]),
            "RevisionNumber": metric_text(record, *META_COLUMNS["RevisionNumber"]),
        })

        arm = "" if is_blank(record.get(variant_col)) else str(record[variant_col]).lower()
        # First matching row wins for each arm
        if "baseline" in arm:
            if group["baseline"] is None:
                group["baseline"] = record
        elif "variant" in arm:
            if group["variant"] is None:
                group["variant"] = record

    def _level_sort_key(level):
        parsed = parse_level(level)
        return (parsed is None, parsed if parsed is not None else 0)

    rows = []
    for level in sorted(groups, key=_level_sort_key):
        group = groups[level]
        parsed = parse_level(level)
        wide_row = {
            "Level": parsed if parsed is not None else level,
            "FinalCluster": group["FinalCluster"],
            "RevisionNumber": group["RevisionNumber"],
        }
        for metric in AB_PIVOT_METRICS:
            wide_row[f"{metric} Baseline"] = _arm_value(group["baseline"], metric)
            wide_row[f"{metric} Variant A"] = _arm_value(group["variant"], metric)
        rows.append(wide_row)

    result = pd.DataFrame(rows)
    logger.info("Pivoted A/B export to %d wide rows", len(result))
    return result


def _arm_value(record: dict | None, metric: str) -> float:
    if record is None:
        return np.nan
    value = metric_value(record, metric)
    return np.nan if value is None else value


def pivot_measure_values(df: pd.DataFrame) -> pd.DataFrame:
    """Spread 'Measure Names'/'Measure Values' into one column per measure.

    Rows are grouped by every other column (the dimensions). Exports
    without both measure columns are returned unchanged.
    """
    if MEASURE_NAMES not in df.columns or MEASURE_VALUES not in df.columns:
        return df.copy()

    dimensions = [c for c in df.columns if c not in (MEASURE_NAMES, MEASURE_VALUES)]
    grouped: dict[tuple, dict] = {}
    for record in df.to_dict("records"):
        key = tuple(record[d] for d in dimensions)
        if key not in grouped:
            grouped[key] = {d: record[d] for d in dimensions}
        measure = record[MEASURE_NAMES]
        if not is_blank(measure):
            grouped[key][measure] = record[MEASURE_VALUES]

    result = pd.DataFrame(list(grouped.values()))
    logger.info("Pivoted measure values into %d rows", len(result))
    return result
